"""
Storefront-side payment helpers.

The storefront never calls the processor with a secret credential. It invokes
the ``stripe-payment`` and ``verify-payment`` functions through the record
store's function invocation, and uses the constants and formatting helpers
below for display.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from pydantic import BaseModel

from shared.config import Settings
from shared.errors import PaymentClientError, RecordStoreError
from shared.record_store import FunctionInvocationError, RecordStore

logger = logging.getLogger("payments")

# Payment method types the checkout offers
SUPPORTED_PAYMENT_METHODS = [
    "card",
    "link",
    "apple_pay",
    "google_pay",
    "klarna",
    "afterpay_clearpay",
    "us_bank_account",
]

CHECKOUT_CURRENCY = "usd"
CHECKOUT_COUNTRY = "US"

# en-US currency symbols; other currencies are shown with their ISO code
_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "CAD": "CA$",
    "AUD": "A$",
    "MXN": "MX$",
    "KRW": "₩",
    "VND": "₫",
}

# ISO 4217 currencies displayed without a fractional part
_ZERO_DECIMAL_CURRENCIES = {
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
}


def format_currency(amount: int, currency: str = CHECKOUT_CURRENCY) -> str:
    """
    Format an amount in minor units for display (en-US).

    Zero-decimal currencies are rounded to whole units.

    Examples:
        format_currency(1999) -> "$19.99"
        format_currency(123456, "eur") -> "€1,234.56"
        format_currency(1000, "jpy") -> "¥10"
        format_currency(100, "chf") -> "CHF 1.00"
    """
    code = currency.upper()
    digits = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    value = (Decimal(amount) / 100).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP)
    number = f"{abs(value):,.{digits}f}"
    symbol = _CURRENCY_SYMBOLS.get(code)
    text = f"{symbol}{number}" if symbol else f"{code} {number}"
    return f"-{text}" if value < 0 else text


def publishable_config(settings: Settings) -> dict[str, str]:
    """
    Browser-safe checkout configuration.

    Raises:
        ConfigurationError: If STRIPE_PUBLISHABLE_KEY is not set
    """
    return {
        "publishableKey": settings.require("stripe_publishable_key", "Stripe publishable key not configured"),
        "currency": CHECKOUT_CURRENCY,
        "country": CHECKOUT_COUNTRY,
    }


class VerificationOutcome(BaseModel):
    """What the storefront learns from a verification attempt."""
    success: bool
    payment_intent_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class PaymentClient:
    """
    Wrapper the storefront uses to reach the payment functions.

    Example:
        client = PaymentClient(RestRecordStore(url, anon_key))
        intent = client.create_payment_intent(19.99, customer_email="ava@example.com")
        intent["client_secret"], intent["id"]
    """

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def _invoke(self, function_name: str, body: dict[str, Any], fallback: str) -> dict[str, Any]:
        """Invoke a function and raise PaymentClientError on any failure shape."""
        try:
            data = self.record_store.invoke(function_name, body)
        except FunctionInvocationError as e:
            logger.error(f"{function_name} returned {e.status}: {e.message}")
            raise PaymentClientError(e.message or fallback) from e
        except RecordStoreError as e:
            logger.error(f"{function_name} could not be reached: {e.message}")
            raise PaymentClientError(e.message or fallback) from e

        if data.get("error"):
            raise PaymentClientError(str(data["error"]))
        return data

    def create_payment_intent(
        self,
        amount: float,
        currency: str = CHECKOUT_CURRENCY,
        customer_email: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, str]:
        """
        Ask the server for a payment intent.

        Returns:
            {"client_secret": ..., "id": ...}

        Raises:
            PaymentClientError: With a human-readable message on any failure
        """
        logger.info(f"Creating payment intent for amount: {amount}")
        data = self._invoke(
            "stripe-payment",
            {
                "amount": amount,
                "currency": currency,
                "customerEmail": customer_email,
                "metadata": metadata or {},
            },
            "Failed to create payment intent",
        )
        logger.info(f"Payment intent created: {data.get('paymentIntentId')}")
        return {"client_secret": data.get("clientSecret"), "id": data.get("paymentIntentId")}

    def verify_payment(self, payment_intent_id: str, expected_amount: int, order_id: str) -> VerificationOutcome:
        """
        Ask the server to verify a payment. Never raises; failures come back
        as ``success=False`` with an error message.
        """
        try:
            data = self._invoke(
                "verify-payment",
                {
                    "paymentIntentId": payment_intent_id,
                    "expectedAmount": expected_amount,
                    "orderId": order_id,
                },
                "Payment verification failed",
            )
        except PaymentClientError as e:
            return VerificationOutcome(success=False, error=str(e))

        return VerificationOutcome(
            success=True,
            payment_intent_id=data.get("paymentIntentId"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            status=data.get("status"),
        )
