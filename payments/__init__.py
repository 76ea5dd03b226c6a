"""
Checkout payments.

- stripe-payment: create a payment intent, return only the client secret and id
- verify-payment: confirm a payment server-side and mark the order paid
- stripe-webhook: apply signed processor events to orders
- PaymentClient: storefront wrapper that reaches these through the record store
"""

from payments.gateway import PaymentGateway, StripeGateway
from payments.intents import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    PaymentIntentService,
    to_minor_units,
)
from payments.verification import (
    PaymentVerifier,
    PaymentWebhookHandler,
    VerifyPaymentRequest,
)
from payments.client import (
    PaymentClient,
    SUPPORTED_PAYMENT_METHODS,
    format_currency,
    publishable_config,
)

__all__ = [
    "PaymentGateway",
    "StripeGateway",
    "CreatePaymentIntentRequest",
    "PaymentIntentResponse",
    "PaymentIntentService",
    "to_minor_units",
    "PaymentVerifier",
    "PaymentWebhookHandler",
    "VerifyPaymentRequest",
    "PaymentClient",
    "SUPPORTED_PAYMENT_METHODS",
    "format_currency",
    "publishable_config",
]
