"""
Payment intent creation for checkout.

The storefront cannot hold the processor secret, so it asks this service for
a payment intent. The service validates the amount, converts it to minor
units, creates the intent with the processor and hands back only what the
browser needs to finish the payment: the client secret and the intent id.

Design decisions:
- Amount is validated before the processor is contacted
- Minor-unit conversion rounds half up (19.99 -> 1999, 0.125 -> 13)
- Only redirect-free payment methods are allowed (allow_redirects="never")
- The processor object never leaves this module; the response model has
  exactly two fields
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field

from payments.gateway import PaymentGateway, StripeGateway
from shared.config import Settings
from shared.errors import ValidationError
from shared.requests import FunctionRequest

logger = logging.getLogger("payments")

DEFAULT_CURRENCY = "usd"

# Provenance tag added to every intent's metadata
CREATED_VIA = "marketplace_function"


def to_minor_units(amount: Any) -> int:
    """
    Convert a positive major-unit amount to integer minor units.

    Raises:
        ValidationError: If the amount is missing, not a number, not finite, or <= 0
    """
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Invalid amount")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Invalid amount")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CreatePaymentIntentRequest(FunctionRequest):
    """Body of ``stripe-payment``. Amount is in major units (19.99 = $19.99)."""
    amount: Any = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def check(self) -> None:
        to_minor_units(self.amount)

    @property
    def minor_amount(self) -> int:
        return to_minor_units(self.amount)

    @property
    def normalized_currency(self) -> str:
        return (self.currency or DEFAULT_CURRENCY).lower()


class PaymentIntentResponse(BaseModel):
    """The only two values a browser ever gets back."""
    client_secret: str = Field(..., serialization_alias="clientSecret")
    payment_intent_id: str = Field(..., serialization_alias="paymentIntentId")

    def to_response(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class PaymentIntentService:
    """
    Create payment intents with the processor.

    Example:
        service = PaymentIntentService(settings)
        response = service.create(CreatePaymentIntentRequest.parse({"amount": 19.99}))
        response.to_response()  # {"clientSecret": "...", "paymentIntentId": "pi_..."}
    """

    def __init__(self, settings: Settings, gateway: Optional[PaymentGateway] = None):
        """
        Args:
            settings: Process settings; the processor secret is read from here
            gateway: Processor gateway. Defaults to a StripeGateway built from settings
                     when the first intent is created.
        """
        self.settings = settings
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = StripeGateway.from_settings(self.settings)
        return self._gateway

    @staticmethod
    def build_params(request: CreatePaymentIntentRequest) -> dict[str, Any]:
        """Processor parameters for a validated request."""
        params: dict[str, Any] = {
            "amount": request.minor_amount,
            "currency": request.normalized_currency,
            "metadata": {**(request.metadata or {}), "created_via": CREATED_VIA},
            "automatic_payment_methods": {
                "enabled": True,
                "allow_redirects": "never",
            },
        }
        if request.customer_email:
            params["receipt_email"] = request.customer_email
        return params

    def create(self, request: CreatePaymentIntentRequest) -> PaymentIntentResponse:
        """
        Create a payment intent.

        Raises:
            ConfigurationError: If the processor secret is not configured
            PaymentProcessorError: If the processor rejects the request
        """
        gateway = self.gateway
        params = self.build_params(request)

        logger.info(f"Creating payment intent for amount: {params['amount']} {params['currency']}")
        intent = gateway.create_payment_intent(**params)
        logger.info(f"Payment intent created: {intent.id}")

        return PaymentIntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
        )
