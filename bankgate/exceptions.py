"""
Exception Classes - Strongly typed exception hierarchy.

GatewayError covers everything the bank or the wire can do to a payment.
Programmer/state mistakes live outside that tree so callers can tell
"our code is wrong" from "the bank said no".
"""

from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    pass


class GatewayTransportError(GatewayError):
    """Raised when a remote call produced no usable response (network, fault, empty body)."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"Transport failure during {operation}: {message}")


class PaymentError(GatewayError):
    """Raised when the bank explicitly rejected a payment step."""

    default_message = "Payment rejected by bank"

    def __init__(self, status: Any = None, message: str | None = None) -> None:
        self.status = status
        self.message = message or self.default_message
        if status is None:
            super().__init__(self.message)
        else:
            super().__init__(f"{self.message} (status: {status})")


class PurchaseFailedError(PaymentError):
    """Raised when the purchase phase is rejected or returns an unrecognized status."""

    default_message = "Purchase failed"


class InvalidPaymentError(PaymentError):
    """Raised when a callback is cancelled/incomplete or verify/settle is rejected."""

    default_message = "Invalid payment"


class DriverStateError(RuntimeError):
    """Raised when a driver phase is called out of order (e.g. pay before purchase)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Driver state error: {message}")


class DriverNotFoundError(LookupError):
    """Raised when no driver is registered under a name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Driver not found: {name}")
