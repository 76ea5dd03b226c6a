"""
Tests for payment intent creation.

The processor is never contacted: the Stripe library calls are patched, the
way the payment system tests in the wider code base do it.
"""

from unittest.mock import MagicMock, patch

import pytest
import stripe

from payments import CreatePaymentIntentRequest, PaymentIntentService, StripeGateway, to_minor_units
from shared.errors import ConfigurationError, PaymentProcessorError, ValidationError


def stripe_intent(intent_id: str = "pi_3Nabc", client_secret: str = "pi_3Nabc_secret_xyz") -> MagicMock:
    intent = MagicMock()
    intent.id = intent_id
    intent.client_secret = client_secret
    intent.amount = 1999
    intent.status = "requires_payment_method"
    return intent


class TestMinorUnits:
    """Tests for major -> minor unit conversion."""

    @pytest.mark.parametrize("amount,expected", [
        (19.99, 1999),
        (1, 100),
        ("24.50", 2450),
        (0.125, 13),
        (0.01, 1),
        (1234.565, 123457),
    ])
    def test_conversion(self, amount, expected):
        """Test that conversion rounds half up on the decimal value."""
        assert to_minor_units(amount) == expected

    @pytest.mark.parametrize("amount", [0, -5, None, "abc", "", True, float("nan"), float("inf")])
    def test_invalid(self, amount):
        """Test that non-positive, non-numeric and non-finite amounts are rejected."""
        with pytest.raises(ValidationError, match="Invalid amount"):
            to_minor_units(amount)


class TestCreatePaymentIntent:
    """Tests for the service, with the Stripe API patched."""

    @patch("stripe.PaymentIntent.create")
    def test_returns_exactly_secret_and_id(self, mock_create, settings):
        """Test that the response carries only clientSecret and paymentIntentId."""
        mock_create.return_value = stripe_intent()

        response = PaymentIntentService(settings).create(
            CreatePaymentIntentRequest.parse({"amount": 19.99})
        ).to_response()

        assert response == {"clientSecret": "pi_3Nabc_secret_xyz", "paymentIntentId": "pi_3Nabc"}

    @patch("stripe.PaymentIntent.create")
    def test_processor_parameters(self, mock_create, settings):
        """Test amount, currency, metadata tag and payment method options sent to Stripe."""
        mock_create.return_value = stripe_intent()

        PaymentIntentService(settings).create(CreatePaymentIntentRequest.parse({
            "amount": 19.99,
            "currency": "EUR",
            "customerEmail": "ava@example.com",
            "metadata": {"orderId": "ord-1001", "created_via": "spoofed"},
        }))

        kwargs = mock_create.call_args.kwargs
        assert kwargs["amount"] == 1999
        assert kwargs["currency"] == "eur"
        assert kwargs["receipt_email"] == "ava@example.com"
        assert kwargs["metadata"] == {"orderId": "ord-1001", "created_via": "marketplace_function"}
        assert kwargs["automatic_payment_methods"] == {"enabled": True, "allow_redirects": "never"}
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["stripe_version"] == "2023-10-16"

    @patch("stripe.PaymentIntent.create")
    def test_defaults(self, mock_create, settings):
        """Test default currency and no receipt_email when none given."""
        mock_create.return_value = stripe_intent()

        PaymentIntentService(settings).create(CreatePaymentIntentRequest.parse({"amount": 5}))

        kwargs = mock_create.call_args.kwargs
        assert kwargs["currency"] == "usd"
        assert "receipt_email" not in kwargs
        assert kwargs["metadata"] == {"created_via": "marketplace_function"}

    @patch("stripe.PaymentIntent.create")
    def test_invalid_amount_never_reaches_processor(self, mock_create, settings):
        """Test that validation happens before any processor call."""
        with pytest.raises(ValidationError, match="Invalid amount"):
            CreatePaymentIntentRequest.parse({"amount": 0})
        with pytest.raises(ValidationError, match="Invalid amount"):
            CreatePaymentIntentRequest.parse({})
        mock_create.assert_not_called()

    @patch("stripe.PaymentIntent.create")
    def test_missing_secret_key(self, mock_create, unconfigured_settings):
        """Test that a missing secret fails closed without contacting Stripe."""
        request = CreatePaymentIntentRequest.parse({"amount": 10})

        with pytest.raises(ConfigurationError) as exc_info:
            PaymentIntentService(unconfigured_settings).create(request)

        assert exc_info.value.message == "Stripe secret key not configured"
        mock_create.assert_not_called()

    @patch("stripe.PaymentIntent.create")
    def test_processor_error(self, mock_create, settings):
        """Test that a Stripe error becomes PaymentProcessorError with its message and code."""
        mock_create.side_effect = stripe.InvalidRequestError(
            "Amount must be at least $0.50 usd", "amount", code="amount_too_small"
        )

        with pytest.raises(PaymentProcessorError) as exc_info:
            PaymentIntentService(settings).create(CreatePaymentIntentRequest.parse({"amount": 0.2}))

        assert "Amount must be at least $0.50 usd" in exc_info.value.message
        assert exc_info.value.code == "amount_too_small"

    def test_injected_gateway(self, settings, gateway):
        """Test that an injected gateway is used instead of Stripe."""
        response = PaymentIntentService(settings, gateway=gateway).create(
            CreatePaymentIntentRequest.parse({"amount": "12.00"})
        )

        assert response.payment_intent_id == "pi_fake_1"
        assert gateway.created[0]["amount"] == 1200


class TestStripeGateway:
    """Tests for the Stripe adapter itself."""

    @patch("stripe.PaymentIntent.retrieve")
    def test_retrieve_passes_request_options(self, mock_retrieve):
        """Test that the secret and API version are sent per request."""
        mock_retrieve.return_value = {"id": "pi_1", "status": "succeeded"}

        intent = StripeGateway("sk_test_abc", api_version="2023-10-16").retrieve_payment_intent("pi_1")

        assert intent["status"] == "succeeded"
        mock_retrieve.assert_called_once_with("pi_1", api_key="sk_test_abc", stripe_version="2023-10-16")

    @patch("stripe.PaymentIntent.retrieve")
    def test_retrieve_returns_plain_dict(self, mock_retrieve):
        """Test that the library's PaymentIntent object is handed back as nested dicts."""
        mock_retrieve.return_value = stripe.PaymentIntent.construct_from(
            {"id": "pi_1", "status": "succeeded", "amount": 500, "metadata": {"orderId": "ord-1"}},
            "sk_test_abc",
        )

        intent = StripeGateway("sk_test_abc").retrieve_payment_intent("pi_1")

        assert type(intent) is dict
        assert type(intent["metadata"]) is dict
        assert intent["metadata"] == {"orderId": "ord-1"}

    @patch("stripe.PaymentIntent.retrieve")
    def test_retrieve_error(self, mock_retrieve):
        """Test that a missing intent becomes PaymentProcessorError."""
        mock_retrieve.side_effect = stripe.InvalidRequestError(
            "No such payment_intent: 'pi_missing'", "intent", code="resource_missing"
        )

        with pytest.raises(PaymentProcessorError) as exc_info:
            StripeGateway("sk_test_abc").retrieve_payment_intent("pi_missing")
        assert exc_info.value.code == "resource_missing"

    def test_from_settings_requires_secret(self, unconfigured_settings):
        """Test that the gateway cannot be built without a secret."""
        with pytest.raises(ConfigurationError, match="Stripe secret key not configured"):
            StripeGateway.from_settings(unconfigured_settings)
