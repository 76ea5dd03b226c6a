"""
Shared pytest fixtures for the marketplace function tests.

These fixtures provide consistent test data and reset state between tests.
"""

from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from payments.gateway import PaymentGateway
from shared.config import Settings
from shared.errors import PaymentProcessorError
from shared.record_store import InMemoryRecordStore


class FakeGateway(PaymentGateway):
    """
    In-process PaymentGateway.

    Intents are plain dicts keyed by id; created intents get sequential ids.
    Every call is recorded so tests can assert on the parameters sent.
    """

    def __init__(self, intents: Optional[dict[str, dict[str, Any]]] = None):
        self.intents = dict(intents or {})
        self.created: list[dict[str, Any]] = []
        self.retrieved: list[str] = []
        self.event: Optional[dict[str, Any]] = None

    def create_payment_intent(self, **params: Any) -> Any:
        self.created.append(params)
        intent_id = f"pi_fake_{len(self.created)}"
        return SimpleNamespace(
            id=intent_id,
            client_secret=f"{intent_id}_secret_abc",
            amount=params["amount"],
            currency=params["currency"],
            status="requires_payment_method",
            metadata=params["metadata"],
        )

    def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        self.retrieved.append(payment_intent_id)
        if payment_intent_id not in self.intents:
            raise PaymentProcessorError(f"No such payment_intent: '{payment_intent_id}'", code="resource_missing")
        return self.intents[payment_intent_id]

    def construct_webhook_event(self, payload: bytes, signature: str, webhook_secret: str) -> Any:
        if signature != "t=1,v1=valid":
            raise PaymentProcessorError("Invalid Stripe signature")
        return self.event


def make_intent(
    intent_id: str = "pi_paid_1001",
    amount: int = 6450,
    status: str = "succeeded",
    order_id: Optional[str] = "ord-1001",
    currency: str = "usd",
) -> dict[str, Any]:
    """A payment intent as the processor returns it."""
    metadata = {"created_via": "marketplace_function"}
    if order_id is not None:
        metadata["orderId"] = order_id
    return {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "currency": currency,
        "status": status,
        "metadata": metadata,
    }


@pytest.fixture
def data_dir() -> Path:
    """Path to the JSON fixtures directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def record_store(data_dir: Path) -> InMemoryRecordStore:
    """
    Fresh InMemoryRecordStore instance for each test.

    Uses the real JSON fixtures but creates a new instance
    so writes in one test never leak into another.
    """
    return InMemoryRecordStore(data_dir=data_dir)


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    """Fully configured settings, independent of the process environment."""
    return Settings(
        _env_file=None,
        supabase_url="https://project.supabase.test",
        supabase_service_role_key="service-role-key",
        supabase_anon_key="anon-key",
        record_store_backend="memory",
        data_dir=data_dir,
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
        stripe_webhook_secret="whsec_test_123",
    )


@pytest.fixture
def unconfigured_settings(data_dir: Path) -> Settings:
    """Settings with every credential empty."""
    return Settings(
        _env_file=None,
        supabase_url="",
        supabase_service_role_key="",
        supabase_anon_key="",
        record_store_backend="memory",
        data_dir=data_dir,
        stripe_secret_key="",
        stripe_publishable_key="",
        stripe_webhook_secret="",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    """Fake processor with one succeeded intent for ord-1001 ($64.50)."""
    return FakeGateway(intents={"pi_paid_1001": make_intent()})


@pytest.fixture
def intent_factory():
    """Build processor-shaped payment intents (see make_intent)."""
    return make_intent


# =============================================================================
# User Fixtures
# =============================================================================

@pytest.fixture
def ava_user_id() -> str:
    """User with no preference row (defaults apply: in_app + email)."""
    return "user-ava"


@pytest.fixture
def bella_user_id() -> str:
    """User who opted out of order updates."""
    return "user-bella"


@pytest.fixture
def chloe_user_id() -> str:
    """User with every channel disabled but order updates on."""
    return "user-chloe"


@pytest.fixture
def dana_user_id() -> str:
    """User with in_app + push enabled, email off."""
    return "user-dana"


@pytest.fixture
def elle_user_id() -> str:
    """User with all channels on and order_updates_enabled NULL."""
    return "user-elle"


# =============================================================================
# Order Fixtures
# =============================================================================

@pytest.fixture
def multi_store_order_id() -> str:
    """
    Order ID for Ava's order.
    Items from store-glow (x2) and store-lash, both owned by merchant-mia,
    plus store-popup which has no owner. Driver omar is assigned.
    """
    return "ord-1001"


@pytest.fixture
def empty_order_id() -> str:
    """Order ID with no order items and no delivery."""
    return "ord-1002"


@pytest.fixture
def ownerless_order_id() -> str:
    """Order ID whose only store has no owner."""
    return "ord-1003"


@pytest.fixture
def two_merchant_order_id() -> str:
    """
    Order ID with stores owned by merchant-mia and merchant-noor.
    Already paid (pi_settled_1004); delivery has no driver yet.
    """
    return "ord-1004"
