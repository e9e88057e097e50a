"""
Driver Registry - pick a bank driver by name or configuration.
"""

from functools import partial

from structlog import get_logger

from bankgate.config import GatewaySettings, get_settings
from bankgate.exceptions import DriverNotFoundError
from bankgate.models.domain import Invoice
from bankgate.services.driver import Driver
from bankgate.services.parsian import ParsianDriver
from bankgate.services.sadad import SadadDriver
from bankgate.services.transport import TransportFactory, soap_transport_factory

logger = get_logger(__name__)

DRIVERS: dict[str, type[ParsianDriver] | type[SadadDriver]] = {
    ParsianDriver.name: ParsianDriver,
    SadadDriver.name: SadadDriver,
}


def create_driver(
    invoice: Invoice,
    name: str | None = None,
    settings: GatewaySettings | None = None,
    transport_factory: TransportFactory | None = None,
) -> Driver:
    """
    Build a driver bound to an invoice.

    Args:
        invoice: Invoice to pay
        name: Driver name (defaults to settings.default_driver)
        settings: Gateway settings (defaults to the environment-loaded instance)
        transport_factory: Builds transports per endpoint (defaults to SOAP transports
            using settings.transport_timeout)

    Raises:
        DriverNotFoundError: If no driver is registered under the name
    """
    settings = settings or get_settings()
    name = (name or settings.default_driver).lower()

    driver_cls = DRIVERS.get(name)
    if driver_cls is None:
        logger.error("driver_not_found", driver=name, available=sorted(DRIVERS))
        raise DriverNotFoundError(name)

    logger.info("driver_created", driver=name, invoice_id=invoice.uuid)
    driver_settings = settings.for_driver(name)
    if transport_factory is None:
        transport_factory = partial(soap_transport_factory, timeout=settings.transport_timeout)
    return driver_cls(invoice, driver_settings, transport_factory)  # type: ignore[arg-type]
