"""
Notification dispatchers for order events.

Three variants share one shape: resolve who should hear about the event,
decide which channels to use, and write one notification row per
(recipient, channel) in a single batched insert.

- UserNotifier: one user, channels chosen by their preferences
- MerchantNotifier: every merchant owning a store in the order, in-app only
- DriverNotifier: the driver assigned to the order, in-app only, always

Design decisions:
- Stateless: a dispatcher holds only its record store, nothing per request
- Rows are written in one insert, so a fan-out succeeds or fails as a whole
- No de-duplication across calls: dispatching the same event twice writes
  two batches
- "No store" is malformed order data (NotFoundError); "stores without an
  owner" is tolerated and writes nothing
- Driver notifications skip preferences; delivery instructions are mandatory
"""

import logging
from typing import Iterable, Optional

from notifications.requests import DispatchResult, NotifyOrderRequest, NotifyUserRequest
from shared.errors import NotFoundError, RecordStoreError
from shared.models import Channel, Delivery, Notification, NotificationPreference
from shared.record_store import RecordStore

logger = logging.getLogger("notifications")


def _distinct(values: Iterable[Optional[str]]) -> list[str]:
    """Drop empty values and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(v for v in values if v))


class NotificationDispatcher:
    """Base class: holds the record store and writes notification batches."""

    failure_message = "Failed to create notifications"

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def _write(self, notifications: list[Notification]) -> None:
        """Insert all notifications in one write. No-op for an empty batch."""
        if not notifications:
            return
        try:
            self.record_store.insert("notifications", [n.to_record() for n in notifications])
        except RecordStoreError as e:
            logger.error(f"{self.failure_message}: {e.message}")
            raise


class UserNotifier(NotificationDispatcher):
    """
    Notify a single user about an order event.

    Example:
        notifier = UserNotifier(record_store)
        result = notifier.notify(NotifyUserRequest.parse(body))
        result.to_response()  # {"success": True} or {"skipped": True}
    """

    def load_preference(self, user_id: str) -> Optional[NotificationPreference]:
        row = self.record_store.maybe_single(
            "notification_preferences",
            "user_id,email_enabled,push_enabled,in_app_enabled,order_updates_enabled",
            eq={"user_id": user_id},
        )
        if row is None:
            return None
        row.setdefault("user_id", user_id)
        return NotificationPreference(**row)

    def notify(self, request: NotifyUserRequest) -> DispatchResult:
        preference = self.load_preference(request.user_id)

        if preference is not None and preference.opted_out_of_order_updates:
            logger.info(f"User {request.user_id} opted out of order updates, skipping")
            return DispatchResult.opted_out()

        effective = preference or NotificationPreference.defaults(request.user_id)
        notifications = [
            Notification(
                user_id=request.user_id,
                title=request.title,
                message=request.message,
                type=channel,
            )
            for channel in effective.enabled_channels()
        ]

        if not notifications:
            logger.info(f"User {request.user_id} has no delivery channel enabled")
        self._write(notifications)

        logger.info(
            f"Notified user {request.user_id} on "
            f"{[n.type for n in notifications] or 'no channels'}"
        )
        return DispatchResult.delivered(notifications)


class MerchantNotifier(NotificationDispatcher):
    """Notify the merchants whose stores appear in an order."""

    failure_message = "Failed to notify merchants"

    def resolve_merchants(self, order_id: str) -> list[str]:
        """
        Order -> order items -> stores -> owners.

        Raises:
            NotFoundError: If the order has no items with a store
        """
        items = self.record_store.select("order_items", "store_id", eq={"order_id": order_id})
        store_ids = _distinct(item.get("store_id") for item in items)
        if not store_ids:
            raise NotFoundError("No store found for order")

        stores = self.record_store.select("stores", "owner_id", in_={"id": store_ids})
        return _distinct(store.get("owner_id") for store in stores)

    def notify(self, request: NotifyOrderRequest) -> DispatchResult:
        merchant_ids = self.resolve_merchants(request.order_id)
        if not merchant_ids:
            logger.info(f"Order {request.order_id}: stores have no owner on record, nothing to send")

        notifications = [
            Notification(
                user_id=merchant_id,
                title=request.title,
                message=request.message,
                type=Channel.IN_APP,
            )
            for merchant_id in merchant_ids
        ]
        self._write(notifications)

        logger.info(f"Order {request.order_id}: notified {len(notifications)} merchant(s)")
        return DispatchResult.delivered(notifications)


class DriverNotifier(NotificationDispatcher):
    """Notify the driver assigned to an order."""

    failure_message = "Failed to notify driver"

    def resolve_driver(self, order_id: str) -> str:
        """
        Raises:
            NotFoundError: If the order has no delivery or the delivery has no driver
        """
        row = self.record_store.maybe_single("deliveries", "order_id,driver_id", eq={"order_id": order_id})
        delivery = Delivery(**row) if row else None
        if delivery is None or not delivery.driver_id:
            raise NotFoundError("No driver assigned for order")
        return delivery.driver_id

    def notify(self, request: NotifyOrderRequest) -> DispatchResult:
        driver_id = self.resolve_driver(request.order_id)

        notification = Notification(
            user_id=driver_id,
            title=request.title,
            message=request.message,
            type=Channel.IN_APP,
        )
        self._write([notification])

        logger.info(f"Order {request.order_id}: notified driver {driver_id}")
        return DispatchResult.delivered([notification])
