"""
Parsian Payment Driver Implementation.

Token flow: SalePaymentRequest returns a token, the user pays on the bank
page, ConfirmPayment finalises the sale in one step.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from structlog import get_logger

from bankgate.config import ParsianSettings
from bankgate.exceptions import GatewayTransportError, InvalidPaymentError, PurchaseFailedError
from bankgate.models.domain import Invoice, Receipt, RedirectionForm
from bankgate.observability.logging import log_context
from bankgate.observability.metrics import metrics
from bankgate.services.driver import (
    call_remote,
    callback_field,
    ensure_not_purchased,
    is_success,
    open_transport,
    order_id_for,
    require_transaction_id,
    resolve_description,
    to_rial,
)
from bankgate.services.transport import TransportFactory, soap_transport_factory

logger = get_logger(__name__)


class ParsianDriver:
    """
    Parsian (PEC) gateway driver.

    Implements the Driver protocol for Parsian's token based IPG.
    """

    name = "parsian"

    def __init__(
        self,
        invoice: Invoice,
        settings: ParsianSettings,
        transport_factory: TransportFactory = soap_transport_factory,
    ) -> None:
        """
        Initialize Parsian driver.

        Args:
            invoice: Invoice this driver pays
            settings: Parsian settings block
            transport_factory: Builds a transport per endpoint
        """
        self.invoice = invoice
        self.settings = settings
        self.transport_factory = transport_factory

    async def purchase(self) -> str:
        """
        Request a payment token from Parsian.

        Returns:
            Token, also stored as the invoice transaction id

        Raises:
            PurchaseFailedError: If Parsian rejects the sale request
            GatewayTransportError: If Parsian could not be reached
        """
        ensure_not_purchased(self.invoice)

        with log_context(driver=self.name, invoice_id=self.invoice.uuid):
            data = self.prepare_purchase_data()
            logger.info(
                "parsian_purchase_requested",
                amount=data["Amount"],
                order_id=data["OrderId"],
            )

            async with open_transport(
                self.transport_factory,
                self.settings.require("api_purchase_url"),
                self.settings.api_namespace_url,
            ) as transport:
                response = await call_remote(
                    transport, self.name, "SalePaymentRequest", {"requestData": data}
                )

            result = _unwrap(response, "SalePaymentRequest")
            status = result.get("Status")
            token = result.get("Token")

            if not is_success(status) or not token:
                logger.warning(
                    "parsian_purchase_rejected",
                    status=status,
                    message=result.get("Message"),
                )
                metrics.record_payment(self.name, "purchase", success=False)
                raise PurchaseFailedError(status=status, message=result.get("Message"))

            self.invoice.set_transaction_id(str(token))
            logger.info("parsian_purchase_succeeded", token=str(token))
            metrics.record_payment(self.name, "purchase", success=True)

        return str(token)

    def pay(self) -> RedirectionForm:
        """Redirect the user to Parsian's payment page with the token."""
        return RedirectionForm(
            action=self.settings.require("api_payment_url"),
            inputs={"RefId": require_transaction_id(self.invoice)},
            method="POST",
        )

    async def verify(self, callback: Mapping[str, Any]) -> Receipt:
        """
        Confirm a Parsian payment.

        Args:
            callback: Fields Parsian posted back (status, Token, RRN)

        Returns:
            Receipt carrying the RRN

        Raises:
            InvalidPaymentError: If the user cancelled or Parsian rejected confirmation
            GatewayTransportError: If Parsian could not be reached
        """
        with log_context(driver=self.name, invoice_id=self.invoice.uuid):
            status = callback_field(callback, "status")
            token = self.invoice.get_transaction_id() or callback_field(callback, "Token")

            if not is_success(status) or not token:
                logger.warning("parsian_callback_rejected", status=status, has_token=bool(token))
                metrics.record_payment(self.name, "verify", success=False)
                raise InvalidPaymentError(
                    status=status, message="Transaction was cancelled by the user"
                )

            async with open_transport(
                self.transport_factory,
                self.settings.require("api_verification_url"),
                self.settings.api_namespace_url,
            ) as transport:
                response = await call_remote(
                    transport,
                    self.name,
                    "ConfirmPayment",
                    {"requestData": self.prepare_verification_data(token)},
                )

            result = _unwrap(response, "ConfirmPayment")
            status = result.get("Status")
            rrn = _positive_reference(result.get("RRN"))

            if not is_success(status) or rrn is None:
                logger.warning(
                    "parsian_confirm_rejected",
                    status=status,
                    rrn=result.get("RRN"),
                    message=result.get("Message"),
                )
                metrics.record_payment(self.name, "verify", success=False)
                raise InvalidPaymentError(
                    status=status, message=f"Bank returned error code {status}"
                )

            logger.info("parsian_payment_confirmed", rrn=rrn)
            metrics.record_payment(self.name, "verify", success=True)

        return self.create_receipt(rrn, result.get("CardNumberMasked") or None)

    def create_receipt(self, reference_id: str, card_number_masked: str | None = None) -> Receipt:
        return Receipt(
            gateway_name=self.name,
            reference_id=reference_id,
            card_number_masked=card_number_masked,
        )

    def prepare_verification_data(self, token: str) -> dict[str, Any]:
        return {
            "LoginAccount": self.settings.require("login_account"),
            "Token": token,
        }

    def prepare_purchase_data(self) -> dict[str, Any]:
        return {
            "LoginAccount": self.settings.require("login_account"),
            "Amount": to_rial(self.invoice.amount),
            "OrderId": order_id_for(self.invoice.uuid),
            "CallBackUrl": self.settings.require("callback_url"),
            "AdditionalData": resolve_description(self.invoice, self.settings.description),
        }


def _unwrap(response: Any, operation: str) -> Mapping[str, Any]:
    """
    Result element of a wrapped SOAP reply; bare mappings pass through.

    Raises:
        GatewayTransportError: If the result element is empty or the reply is not a mapping
    """
    key = f"{operation}Result"
    if isinstance(response, Mapping) and key in response:
        response = response[key]
    if not response:
        logger.error("parsian_empty_result", operation=operation)
        raise GatewayTransportError(operation, "bank gateway did not respond")
    if not isinstance(response, Mapping):
        logger.error("parsian_malformed_result", operation=operation, response=repr(response))
        raise GatewayTransportError(operation, f"unexpected reply: {response!r}")
    return response


def _positive_reference(value: Any) -> str | None:
    """RRN as a string if it is a positive number."""
    if value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not number.is_finite() or number <= 0:
        return None
    return str(value).strip()
