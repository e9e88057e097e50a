"""
Sadad Payment Driver Implementation.

Two-step confirmation: bpVerifyRequest then bpSettleRequest. Money counts as
captured only when both succeed; any failure once verify has been sent
triggers a best-effort bpReversalRequest before the error surfaces.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from structlog import get_logger

from bankgate.config import SadadSettings
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
from bankgate.services.transport import Transport, TransportFactory, soap_transport_factory

logger = get_logger(__name__)


class SadadDriver:
    """
    Sadad gateway driver.

    Implements the Driver protocol with settle and reversal semantics.
    """

    name = "sadad"

    def __init__(
        self,
        invoice: Invoice,
        settings: SadadSettings,
        transport_factory: TransportFactory = soap_transport_factory,
    ) -> None:
        """
        Initialize Sadad driver.

        Args:
            invoice: Invoice this driver pays
            settings: Sadad settings block
            transport_factory: Builds a transport per endpoint
        """
        self.invoice = invoice
        self.settings = settings
        self.transport_factory = transport_factory

    async def purchase(self) -> str:
        """
        Register the sale with bpPayRequest.

        Returns:
            RefId, also stored as the invoice transaction id

        Raises:
            PurchaseFailedError: If Sadad answers with a non-zero code or a malformed reply
            GatewayTransportError: If Sadad could not be reached or sent an unreadable reply
        """
        ensure_not_purchased(self.invoice)

        with log_context(driver=self.name, invoice_id=self.invoice.uuid):
            data = self.prepare_purchase_data()
            logger.info(
                "sadad_purchase_requested",
                amount=data["amount"],
                order_id=data["orderId"],
            )

            async with open_transport(
                self.transport_factory,
                self.settings.require("api_purchase_url"),
                self.settings.api_namespace_url,
            ) as transport:
                response = await call_remote(transport, self.name, "bpPayRequest", data)

            raw = str(_scalar(response, "bpPayRequest")).strip()
            code, _, ref_id = raw.partition(",")
            ref_id = ref_id.strip()

            if not is_success(code) or not ref_id:
                logger.warning("sadad_purchase_rejected", response=raw)
                metrics.record_payment(self.name, "purchase", success=False)
                raise PurchaseFailedError(status=code.strip() or None, message=raw)

            self.invoice.set_transaction_id(ref_id)
            logger.info("sadad_purchase_succeeded", ref_id=ref_id)
            metrics.record_payment(self.name, "purchase", success=True)

        return ref_id

    def pay(self) -> RedirectionForm:
        """Redirect the user to Sadad's payment page with the RefId."""
        return RedirectionForm(
            action=self.settings.require("api_payment_url"),
            inputs={"RefId": require_transaction_id(self.invoice)},
            method="POST",
        )

    async def verify(self, callback: Mapping[str, Any]) -> Receipt:
        """
        Verify and settle a Sadad payment.

        Args:
            callback: Fields Sadad posted back (ResCode, SaleOrderId, SaleReferenceId)

        Returns:
            Receipt carrying SaleReferenceId

        Raises:
            InvalidPaymentError: If the callback is negative/incomplete, or verify/settle
                is rejected (after a reversal attempt)
            GatewayTransportError: If verify/settle could not reach Sadad (after a
                reversal attempt)
        """
        with log_context(driver=self.name, invoice_id=self.invoice.uuid):
            res_code = callback_field(callback, "ResCode")
            if not is_success(res_code):
                logger.warning("sadad_callback_rejected", res_code=res_code)
                metrics.record_payment(self.name, "verify", success=False)
                raise InvalidPaymentError(status=res_code, message="Transaction was not successful")

            data = self.prepare_verification_data(callback)
            if not data["saleOrderId"] or not data["saleReferenceId"]:
                logger.warning(
                    "sadad_callback_incomplete",
                    has_sale_order_id=bool(data["saleOrderId"]),
                    has_sale_reference_id=bool(data["saleReferenceId"]),
                )
                metrics.record_payment(self.name, "verify", success=False)
                raise InvalidPaymentError(
                    status=res_code, message="Callback is missing SaleOrderId or SaleReferenceId"
                )

            async with open_transport(
                self.transport_factory,
                self.settings.require("api_verification_url"),
                self.settings.api_namespace_url,
            ) as transport:
                # step 1: verify, step 2: settle
                await self._confirm_or_reverse(
                    transport, data, "bpVerifyRequest", "Transaction verification failed"
                )
                await self._confirm_or_reverse(
                    transport, data, "bpSettleRequest", "Settlement request failed"
                )

            logger.info("sadad_payment_settled", sale_reference_id=data["saleReferenceId"])
            metrics.record_payment(self.name, "verify", success=True)

        return self.create_receipt(data["saleReferenceId"])

    async def _confirm_or_reverse(
        self,
        transport: Transport,
        data: Mapping[str, Any],
        operation: str,
        failure_message: str,
    ) -> None:
        """Run one confirmation step; on any failure reverse, then raise."""
        try:
            response = await call_remote(transport, self.name, operation, data)
            code = _scalar(response, operation)
        except GatewayTransportError:
            logger.error("sadad_confirmation_unreachable", operation=operation)
            metrics.record_payment(self.name, "verify", success=False)
            await self._reverse(transport, data)
            raise

        if not is_success(code):
            logger.warning("sadad_confirmation_rejected", operation=operation, code=code)
            metrics.record_payment(self.name, "verify", success=False)
            await self._reverse(transport, data)
            raise InvalidPaymentError(status=code, message=failure_message)

    async def _reverse(self, transport: Transport, data: Mapping[str, Any]) -> None:
        """
        Best-effort bpReversalRequest.

        The failure that led here decides the outcome, so reversal problems
        are logged and counted but never raised.
        """
        try:
            response = await call_remote(transport, self.name, "bpReversalRequest", data)
            code = _scalar(response, "bpReversalRequest")
        except GatewayTransportError as exc:
            logger.error(
                "sadad_reversal_failed",
                sale_reference_id=data["saleReferenceId"],
                error=str(exc),
            )
            metrics.record_reversal(self.name, success=False)
            return

        if is_success(code):
            logger.info("sadad_reversal_succeeded", sale_reference_id=data["saleReferenceId"])
            metrics.record_reversal(self.name, success=True)
        else:
            logger.error(
                "sadad_reversal_rejected",
                sale_reference_id=data["saleReferenceId"],
                code=code,
            )
            metrics.record_reversal(self.name, success=False)

    def create_receipt(self, reference_id: str) -> Receipt:
        return Receipt(gateway_name=self.name, reference_id=reference_id)

    def prepare_verification_data(self, callback: Mapping[str, Any]) -> dict[str, Any]:
        sale_order_id = callback_field(callback, "SaleOrderId")
        return {
            "terminalId": self.settings.require("terminal_id"),
            "userName": self.settings.require("username"),
            "userPassword": self.settings.require("password"),
            "orderId": sale_order_id,
            "saleOrderId": sale_order_id,
            "saleReferenceId": callback_field(callback, "SaleReferenceId"),
        }

    def prepare_purchase_data(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now()
        return {
            "terminalId": self.settings.require("terminal_id"),
            "userName": self.settings.require("username"),
            "userPassword": self.settings.require("password"),
            "callBackUrl": self.settings.require("callback_url"),
            "amount": to_rial(self.invoice.amount),
            "localDate": now.strftime("%Y%m%d"),
            "localTime": now.strftime("%H%M%S"),
            "orderId": order_id_for(self.invoice.uuid),
            "additionalData": resolve_description(self.invoice, self.settings.description),
            "payerId": self.invoice.get_detail("payerId", 0),
        }


def _scalar(response: Any, operation: str) -> Any:
    """
    Sadad operations return a bare value; zeep may wrap it under "return".

    Raises:
        GatewayTransportError: If a mapping reply has no usable "return" value
    """
    if not isinstance(response, Mapping):
        return response
    if "return" not in response:
        logger.error("sadad_malformed_reply", operation=operation, response=repr(response))
        raise GatewayTransportError(operation, f"unexpected reply: {dict(response)!r}")
    value = response["return"]
    if value is None or value == "":
        logger.error("sadad_empty_reply", operation=operation)
        raise GatewayTransportError(operation, "bank gateway did not respond")
    return value
