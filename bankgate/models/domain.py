"""
Domain Models - Invoice, Receipt and redirect instruction as dataclasses.

Receipt and RedirectionForm are immutable. Invoice is owned by the caller;
drivers only touch its transaction id.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from bankgate.exceptions import DriverStateError


@dataclass
class Invoice:
    """Payable amount with a stable unique id and a one-shot transaction id slot."""

    amount: Decimal
    uuid: str = field(default_factory=lambda: str(uuid4()))
    details: dict[str, Any] = field(default_factory=dict)
    transaction_id: str | None = None

    def __post_init__(self) -> None:
        """Validate invoice fields."""
        try:
            amount = Decimal(str(self.amount))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid invoice amount: {self.amount!r}") from exc
        if not amount.is_finite() or amount <= 0:
            raise ValueError(f"Invoice amount must be positive: {self.amount}")
        self.amount = amount

        if not self.uuid:
            raise ValueError("uuid cannot be empty")

    def __setattr__(self, name: str, value: Any) -> None:
        # uuid seeds the order id sent to the bank; it must not drift between phases
        if name == "uuid" and "uuid" in self.__dict__:
            raise AttributeError("Invoice uuid is immutable")
        super().__setattr__(name, value)

    def set_transaction_id(self, transaction_id: str) -> None:
        """Store the bank token. Allowed once per invoice."""
        if not transaction_id:
            raise ValueError("transaction_id cannot be empty")
        if self.transaction_id is not None:
            raise DriverStateError(
                f"Invoice {self.uuid} already has transaction id {self.transaction_id}"
            )
        self.transaction_id = transaction_id

    def get_transaction_id(self) -> str | None:
        return self.transaction_id

    def get_detail(self, key: str, default: Any = None) -> Any:
        return self.details.get(key, default)


@dataclass(frozen=True)
class Receipt:
    """Immutable proof of payment."""

    gateway_name: str
    reference_id: str
    date: datetime = field(default_factory=lambda: datetime.now(UTC))
    card_number_masked: str | None = None


@dataclass(frozen=True)
class RedirectionForm:
    """
    Instruction to auto-submit a form to the bank's payment page.

    The hosting application renders and submits it.
    """

    action: str
    inputs: dict[str, str]
    method: str = "POST"

    def as_dict(self) -> dict[str, Any]:
        """Plain mapping for JSON responses."""
        return {"action": self.action, "inputs": dict(self.inputs), "method": self.method}
