"""
Domain models for the marketplace functions.

These mirror the rows the functions read and write in the record store.
Only the columns the functions actually use are modelled; anything else in a
row is ignored on load.

Design decisions:
- Using Pydantic for validation and serialization
- Nullable columns stay Optional so a NULL in the store is not silently
  turned into a default
- Channel order is fixed by the Channel enum definition order
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Channel(str, Enum):
    """
    Notification delivery channels.

    Iteration order (in_app, email, push) is the order notifications are
    written in, so tests and callers can rely on it.
    """
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"


class OrderStatus(str, Enum):
    """Order states the payment functions move an order into."""
    CONFIRMED = "confirmed"
    PAYMENT_SUCCESS = "payment_success"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    """Order-level payment state and payment row state."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    COMPLETED = "completed"


# =============================================================================
# Orders, stores, deliveries
# =============================================================================

class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)


class Order(_Row):
    """A customer order. Has 1..N order items and 0..1 delivery."""
    id: str
    customer_id: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    total_amount: Optional[float] = None
    updated_at: Optional[datetime] = None


class OrderItem(_Row):
    """One line of an order; links the order to the store that sells the product."""
    order_id: str
    store_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = 1
    price: Optional[float] = None


class Store(_Row):
    """A merchant storefront. owner_id is the merchant's user id and may be NULL."""
    id: str
    name: Optional[str] = None
    owner_id: Optional[str] = None


class Delivery(_Row):
    """Delivery assignment for an order. driver_id is NULL until a driver is assigned."""
    order_id: str
    driver_id: Optional[str] = None
    status: Optional[str] = None


# =============================================================================
# Notification preferences
# =============================================================================

class NotificationPreference(_Row):
    """
    Per-user notification settings.

    Columns are nullable in the store. A NULL channel flag means the channel
    is off; only an explicit ``order_updates_enabled = false`` opts the user
    out of order notifications altogether.
    """
    user_id: str
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    order_updates_enabled: Optional[bool] = None

    @classmethod
    def defaults(cls, user_id: str) -> "NotificationPreference":
        """Policy applied when a user has no preference row."""
        return cls(
            user_id=user_id,
            in_app_enabled=True,
            email_enabled=True,
            push_enabled=False,
            order_updates_enabled=True,
        )

    @property
    def opted_out_of_order_updates(self) -> bool:
        return self.order_updates_enabled is False

    def channel_enabled(self, channel: Channel) -> bool:
        """Check if this user wants notifications on a channel."""
        flag = {
            Channel.IN_APP: self.in_app_enabled,
            Channel.EMAIL: self.email_enabled,
            Channel.PUSH: self.push_enabled,
        }[Channel(channel)]
        return bool(flag)

    def enabled_channels(self) -> Iterator[Channel]:
        """Yield enabled channels in fixed order (in_app, email, push)."""
        return (channel for channel in Channel if self.channel_enabled(channel))


# =============================================================================
# Notifications and payments (rows the functions write)
# =============================================================================

class Notification(_Row):
    """A notification row. Created by the dispatchers, read state is managed elsewhere."""
    user_id: str
    title: str
    message: str
    type: Channel = Channel.IN_APP
    read: bool = False

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Payment(_Row):
    """A completed payment recorded against an order."""
    order_id: str
    payment_intent_id: str
    amount: int = Field(..., description="Amount in minor units (cents)")
    currency: str
    status: str = PaymentStatus.COMPLETED.value
    completed_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
