"""
Server-side payment confirmation.

Two ways an order learns it has been paid:

- PaymentVerifier: the storefront, after the browser confirms a payment,
  asks the server to check the intent with the processor before the order
  is confirmed. Guards against tampered amounts, intents belonging to other
  orders and double recording.
- PaymentWebhookHandler: the processor pushes signed payment_intent events;
  succeeded marks the order paid, payment_failed marks it failed.

Both write a ``payments`` row for a successful payment and update the order.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from payments.gateway import PaymentGateway, StripeGateway, to_plain
from shared.config import Settings
from shared.errors import PaymentVerificationError, RecordStoreError, ValidationError
from shared.models import OrderStatus, Payment, PaymentStatus, utc_now
from shared.record_store import RecordStore
from shared.requests import FunctionRequest

logger = logging.getLogger("payments")

SUCCEEDED = "succeeded"


def _intent_metadata(intent: dict[str, Any]) -> dict[str, Any]:
    return dict(intent.get("metadata") or {})


def _record_payment(record_store: RecordStore, order_id: str, intent: dict[str, Any]) -> Payment:
    payment = Payment(
        order_id=order_id,
        payment_intent_id=intent["id"],
        amount=intent["amount"],
        currency=intent["currency"],
        status=PaymentStatus.COMPLETED.value,
        metadata=_intent_metadata(intent),
    )
    record_store.insert("payments", payment.to_record())
    return payment


def _update_order(record_store: RecordStore, order_id: str, payment_status: str, status: str) -> None:
    record_store.update(
        "orders",
        {
            "payment_status": payment_status,
            "status": status,
            "updated_at": utc_now().isoformat(),
        },
        eq={"id": order_id},
    )


# =============================================================================
# Verification (called by the storefront)
# =============================================================================

class VerifyPaymentRequest(FunctionRequest):
    """Body of ``verify-payment``. expectedAmount is in minor units."""
    required_fields = ("payment_intent_id", "expected_amount", "order_id")
    missing_message = "Missing required parameters"

    payment_intent_id: Optional[str] = None
    expected_amount: Optional[int] = None
    order_id: Optional[str] = None


class PaymentVerificationResult(BaseModel):
    success: bool = True
    payment_intent_id: str = Field(..., serialization_alias="paymentIntentId")
    amount: int
    currency: str
    status: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PaymentVerifier:
    """Confirm a payment intent against the order it claims to pay for."""

    def __init__(
        self,
        settings: Settings,
        record_store: RecordStore,
        gateway: Optional[PaymentGateway] = None,
    ):
        self.settings = settings
        self.record_store = record_store
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = StripeGateway.from_settings(self.settings)
        return self._gateway

    def verify(self, request: VerifyPaymentRequest) -> PaymentVerificationResult:
        """
        Check the intent, record the payment and confirm the order.

        Raises:
            PaymentVerificationError: If status, amount or order do not match,
                or the payment was already recorded
            PaymentProcessorError: If the processor cannot return the intent
            RecordStoreError: If the payment or order cannot be written
        """
        intent = to_plain(self.gateway.retrieve_payment_intent(request.payment_intent_id))

        if intent["status"] != SUCCEEDED:
            raise PaymentVerificationError(f"Payment not successful. Status: {intent['status']}")

        if intent["amount"] != request.expected_amount:
            raise PaymentVerificationError(
                f"Amount mismatch. Expected: {request.expected_amount}, Actual: {intent['amount']}"
            )

        intent_order_id = _intent_metadata(intent).get("orderId")
        if intent_order_id != request.order_id:
            raise PaymentVerificationError(
                f"Order ID mismatch. Expected: {request.order_id}, Actual: {intent_order_id}"
            )

        try:
            existing = self.record_store.maybe_single(
                "payments",
                "id",
                eq={"payment_intent_id": request.payment_intent_id, "status": PaymentStatus.COMPLETED.value},
            )
        except RecordStoreError as e:
            raise RecordStoreError("Database error checking for duplicate payments") from e
        if existing is not None:
            raise PaymentVerificationError("Payment already processed")

        try:
            _record_payment(self.record_store, request.order_id, intent)
        except RecordStoreError as e:
            raise RecordStoreError("Failed to record payment") from e

        try:
            _update_order(self.record_store, request.order_id, PaymentStatus.PAID.value, OrderStatus.CONFIRMED.value)
        except RecordStoreError as e:
            raise RecordStoreError("Failed to update order status") from e

        logger.info(f"Verified payment {intent['id']} for order {request.order_id}")
        return PaymentVerificationResult(
            payment_intent_id=intent["id"],
            amount=intent["amount"],
            currency=intent["currency"],
            status=intent["status"],
        )


# =============================================================================
# Webhook (called by the processor)
# =============================================================================

class PaymentWebhookHandler:
    """Apply signed payment_intent events to orders."""

    def __init__(
        self,
        settings: Settings,
        record_store: RecordStore,
        gateway: Optional[PaymentGateway] = None,
    ):
        self.settings = settings
        self.record_store = record_store
        self._gateway = gateway

    def handle(self, payload: bytes, signature: Optional[str]) -> dict[str, bool]:
        """
        Verify and apply one webhook delivery.

        Raises:
            ConfigurationError: If the processor secret or signing secret is missing
            ValidationError: If the signature header is missing
            PaymentProcessorError: If the signature does not verify
        """
        message = "Stripe webhook not configured"
        webhook_secret = self.settings.require("stripe_webhook_secret", message)
        gateway = self._gateway or StripeGateway.from_settings(self.settings, message)

        if not signature:
            raise ValidationError("Missing Stripe signature")

        event = to_plain(gateway.construct_webhook_event(payload, signature, webhook_secret))
        event_type = event["type"]
        intent = event["data"]["object"]
        order_id = _intent_metadata(intent).get("orderId")

        if event_type == "payment_intent.succeeded" and order_id:
            _record_payment(self.record_store, order_id, intent)
            _update_order(self.record_store, order_id, PaymentStatus.PAID.value, OrderStatus.PAYMENT_SUCCESS.value)
            logger.info(f"Webhook: order {order_id} paid ({intent['id']})")
        elif event_type == "payment_intent.payment_failed" and order_id:
            _update_order(self.record_store, order_id, PaymentStatus.FAILED.value, OrderStatus.FAILED.value)
            logger.info(f"Webhook: payment failed for order {order_id} ({intent['id']})")
        else:
            logger.debug(f"Webhook: ignoring {event_type}")

        return {"received": True}
