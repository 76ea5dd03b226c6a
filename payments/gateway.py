"""
Payment processor gateway.

A thin adapter over the ``stripe`` library. The rest of the code talks to
PaymentGateway, so tests can hand in a fake and the processor credential is
passed per request instead of being set on the stripe module globally.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import stripe

from shared.config import Settings
from shared.errors import PaymentProcessorError, ValidationError

logger = logging.getLogger("payments")


def _processor_message(error: stripe.StripeError, fallback: str) -> str:
    return error.user_message or str(error) or fallback


def to_plain(value: Any) -> Any:
    """
    Convert processor objects to plain dicts and lists, recursively.

    Depending on the library release a StripeObject is either a dict subclass
    or a mapping-less object exposing ``to_dict()``; callers only see dicts.
    """
    if isinstance(value, stripe.StripeObject) and not isinstance(value, dict):
        value = value.to_dict()
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    return value


class PaymentGateway(ABC):
    @abstractmethod
    def create_payment_intent(self, **params: Any) -> Any:
        """Create a payment intent; returns the processor object (id, client_secret, ...)."""
        pass

    @abstractmethod
    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        """Retrieve a payment intent by ID, as a plain dict."""
        pass

    @abstractmethod
    def construct_webhook_event(self, payload: bytes, signature: str, webhook_secret: str) -> dict[str, Any]:
        """Verify a webhook signature and return the event as a plain dict."""
        pass


class StripeGateway(PaymentGateway):
    """PaymentGateway backed by the Stripe API."""

    def __init__(self, secret_key: str, api_version: str = "2023-10-16"):
        self._secret_key = secret_key
        self._api_version = api_version

    @classmethod
    def from_settings(cls, settings: Settings, message: str = "Stripe secret key not configured") -> "StripeGateway":
        """
        Raises:
            ConfigurationError: If STRIPE_SECRET_KEY is not set
        """
        secret_key = settings.require("stripe_secret_key", message)
        return cls(secret_key, api_version=settings.stripe_api_version)

    def _request_options(self) -> dict[str, str]:
        return {"api_key": self._secret_key, "stripe_version": self._api_version}

    def create_payment_intent(self, **params: Any) -> stripe.PaymentIntent:
        try:
            return stripe.PaymentIntent.create(**params, **self._request_options())
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {e}")
            raise PaymentProcessorError(
                _processor_message(e, "Failed to create payment intent"),
                code=e.code,
            ) from e

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, **self._request_options())
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving payment intent {payment_intent_id}: {e}")
            raise PaymentProcessorError(
                _processor_message(e, "Payment intent not found"),
                code=e.code,
            ) from e
        return to_plain(intent)

    def construct_webhook_event(self, payload: bytes, signature: str, webhook_secret: str) -> dict[str, Any]:
        try:
            event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Rejected webhook with bad signature: {e}")
            raise PaymentProcessorError("Invalid Stripe signature") from e
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e
        return to_plain(event)
