"""
bankgate - SOAP bank payment gateway drivers.
"""

from bankgate.config import ConfigurationError, GatewaySettings, ParsianSettings, SadadSettings
from bankgate.exceptions import (
    DriverNotFoundError,
    DriverStateError,
    GatewayError,
    GatewayTransportError,
    InvalidPaymentError,
    PaymentError,
    PurchaseFailedError,
)
from bankgate.models.domain import Invoice, Receipt, RedirectionForm
from bankgate.services.registry import create_driver

__all__ = [
    "ConfigurationError",
    "DriverNotFoundError",
    "DriverStateError",
    "GatewayError",
    "GatewaySettings",
    "GatewayTransportError",
    "InvalidPaymentError",
    "Invoice",
    "ParsianSettings",
    "PaymentError",
    "PurchaseFailedError",
    "Receipt",
    "RedirectionForm",
    "SadadSettings",
    "create_driver",
]
