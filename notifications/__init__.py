"""
Notification fan-out for order events.

- notify-user: one user, channels chosen by their preferences
- notify-merchant: merchants owning the stores in an order
- notify-driver: the driver assigned to an order
"""

from notifications.dispatcher import (
    NotificationDispatcher,
    UserNotifier,
    MerchantNotifier,
    DriverNotifier,
)
from notifications.requests import DispatchResult, NotifyUserRequest, NotifyOrderRequest

__all__ = [
    "NotificationDispatcher",
    "UserNotifier",
    "MerchantNotifier",
    "DriverNotifier",
    "DispatchResult",
    "NotifyUserRequest",
    "NotifyOrderRequest",
]
