"""
Driver Protocol - Bank-agnostic three-phase payment interface.

purchase -> pay (redirect) -> verify. Every bank implements the protocol on
its own; the helpers below are the pieces all of them share.
"""

import zlib
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from structlog import get_logger

from bankgate.exceptions import DriverStateError, GatewayTransportError
from bankgate.models.domain import Invoice, Receipt, RedirectionForm
from bankgate.observability.metrics import track_remote_call
from bankgate.services.transport import Transport, TransportFactory

logger = get_logger(__name__)

RIAL_PER_TOMAN = 10


class Driver(Protocol):
    """
    Payment driver protocol.

    A driver instance is bound to one invoice and one settings block for
    its whole life; concurrent payments need separate instances.
    """

    name: str
    invoice: Invoice

    async def purchase(self) -> str:
        """
        Register the invoice with the bank.

        Returns:
            Bank transaction id (token), also stored on the invoice

        Raises:
            PurchaseFailedError: If the bank rejects the request
            GatewayTransportError: If the bank could not be reached
        """
        ...

    def pay(self) -> RedirectionForm:
        """
        Build the redirect to the bank's payment page.

        Raises:
            DriverStateError: If purchase has not succeeded yet
        """
        ...

    async def verify(self, callback: Mapping[str, Any]) -> Receipt:
        """
        Confirm the payment after the bank redirects the user back.

        Args:
            callback: Query/POST fields of the bank's callback request

        Returns:
            Receipt with the bank settlement reference

        Raises:
            InvalidPaymentError: If the payment was cancelled or rejected
            GatewayTransportError: If the bank could not be reached
        """
        ...


def order_id_for(uuid: str) -> int:
    """Numeric order id for legacy integer fields: unsigned CRC-32 of the invoice id."""
    return zlib.crc32(uuid.encode("utf-8"))


def to_rial(amount: Decimal) -> int:
    """Convert a Toman amount to integer Rials."""
    rials = Decimal(amount) * RIAL_PER_TOMAN
    return int(rials.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def resolve_description(invoice: Invoice, default: str) -> str:
    """Invoice-supplied description, else the driver default."""
    description = invoice.get_detail("description")
    if description:
        return str(description)
    return default


def is_success(code: Any) -> bool:
    """Bank status codes signal success with 0 (int or string)."""
    if code is None or isinstance(code, bool):
        return False
    return str(code).strip() == "0"


def require_transaction_id(invoice: Invoice) -> str:
    transaction_id = invoice.get_transaction_id()
    if not transaction_id:
        raise DriverStateError(f"Invoice {invoice.uuid} has no transaction id; purchase first")
    return transaction_id


def ensure_not_purchased(invoice: Invoice) -> None:
    if invoice.get_transaction_id():
        raise DriverStateError(
            f"Invoice {invoice.uuid} was already purchased "
            f"(transaction id {invoice.get_transaction_id()})"
        )


def callback_field(callback: Mapping[str, Any], key: str) -> str | None:
    """Read a callback field; blank values count as missing."""
    value = callback.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@asynccontextmanager
async def open_transport(
    factory: TransportFactory, endpoint: str, namespace: str | None
) -> AsyncIterator[Transport]:
    """Transport for one phase, closed when the phase ends."""
    transport = factory(endpoint, namespace)
    try:
        yield transport
    finally:
        await transport.aclose()


async def call_remote(
    transport: Transport,
    driver: str,
    operation: str,
    payload: Mapping[str, Any],
) -> Any:
    """
    Invoke one remote operation with logging and metrics.

    An empty response (None, "" or an empty mapping) means the bank did not
    answer and is reported as a transport failure.

    Raises:
        GatewayTransportError: If the call fails or returns nothing
    """
    logger.info("remote_call_started", driver=driver, operation=operation)

    with track_remote_call(driver, operation) as tracker:
        response = await transport.call(operation, payload)
        if response is None or response == "" or response == {}:
            tracker.set_outcome("empty")
            logger.error("remote_call_empty_response", driver=driver, operation=operation)
            raise GatewayTransportError(operation, "bank gateway did not respond")

    logger.info("remote_call_completed", driver=driver, operation=operation)
    return response
