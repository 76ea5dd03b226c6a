"""
Shared infrastructure for the marketplace functions.

This package contains code used by both the notification and payment functions:
- Domain models (Order, Store, Delivery, NotificationPreference, etc.)
- Record store access (in-memory fixtures or REST backend)
- Settings loaded from the environment
- The error taxonomy reported to callers
"""

from shared.models import (
    Channel,
    Order,
    OrderItem,
    Store,
    Delivery,
    NotificationPreference,
    Notification,
    Payment,
)
from shared.record_store import (
    RecordStore,
    InMemoryRecordStore,
    RestRecordStore,
    create_record_store,
)
from shared.config import Settings, get_settings
from shared.errors import (
    MarketplaceError,
    ValidationError,
    NotFoundError,
    ConfigurationError,
    PaymentProcessorError,
    PaymentVerificationError,
    RecordStoreError,
)

__all__ = [
    "Channel",
    "Order",
    "OrderItem",
    "Store",
    "Delivery",
    "NotificationPreference",
    "Notification",
    "Payment",
    "RecordStore",
    "InMemoryRecordStore",
    "RestRecordStore",
    "create_record_store",
    "Settings",
    "get_settings",
    "MarketplaceError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "PaymentProcessorError",
    "PaymentVerificationError",
    "RecordStoreError",
]
