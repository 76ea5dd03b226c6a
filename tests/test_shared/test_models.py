"""
Tests for the domain models.

These tests verify preference policy and the rows the functions write.
"""

from shared.models import Channel, Notification, NotificationPreference, Payment, Store


class TestNotificationPreference:
    """Tests for preference flags and channel resolution."""

    def test_defaults_policy(self):
        """Test that a user without a row gets in_app + email, no push."""
        pref = NotificationPreference.defaults("user-x")

        assert list(pref.enabled_channels()) == [Channel.IN_APP, Channel.EMAIL]
        assert not pref.opted_out_of_order_updates

    def test_channel_order_is_fixed(self):
        """Test that channels come back as in_app, email, push regardless of input order."""
        pref = NotificationPreference(
            user_id="user-x",
            push_enabled=True,
            email_enabled=True,
            in_app_enabled=True,
        )

        assert list(pref.enabled_channels()) == [Channel.IN_APP, Channel.EMAIL, Channel.PUSH]

    def test_null_flag_means_disabled(self):
        """Test that a NULL channel column is treated as off."""
        pref = NotificationPreference(user_id="user-x", in_app_enabled=True)

        assert pref.channel_enabled(Channel.IN_APP)
        assert not pref.channel_enabled(Channel.EMAIL)
        assert not pref.channel_enabled(Channel.PUSH)

    def test_only_explicit_false_opts_out(self):
        """Test that order_updates_enabled NULL does not opt the user out."""
        assert NotificationPreference(user_id="u", order_updates_enabled=False).opted_out_of_order_updates
        assert not NotificationPreference(user_id="u", order_updates_enabled=None).opted_out_of_order_updates
        assert not NotificationPreference(user_id="u", order_updates_enabled=True).opted_out_of_order_updates

    def test_channel_enabled_accepts_string(self):
        """Test that channel lookups work with raw column values."""
        pref = NotificationPreference(user_id="u", push_enabled=True)
        assert pref.channel_enabled("push")

    def test_extra_columns_ignored(self):
        """Test that unmodelled columns in a row are dropped."""
        pref = NotificationPreference(user_id="u", email_enabled=True, quiet_hours="22-07")
        assert not hasattr(pref, "quiet_hours")


class TestNotification:
    """Tests for notification rows."""

    def test_to_record(self):
        """Test the row written to the notifications table."""
        record = Notification(user_id="user-ava", title="Shipped", message="On its way", type=Channel.PUSH).to_record()

        assert record == {
            "user_id": "user-ava",
            "title": "Shipped",
            "message": "On its way",
            "type": "push",
            "read": False,
        }

    def test_defaults_to_in_app_unread(self):
        """Test that a notification defaults to in_app and unread."""
        notification = Notification(user_id="u", title="t", message="m")

        assert notification.type == "in_app"
        assert notification.read is False


class TestPayment:
    """Tests for payment rows."""

    def test_to_record(self):
        """Test the row written to the payments table."""
        record = Payment(
            order_id="ord-1001",
            payment_intent_id="pi_1",
            amount=1999,
            currency="usd",
            metadata={"orderId": "ord-1001"},
        ).to_record()

        assert record["status"] == "completed"
        assert record["amount"] == 1999
        assert record["metadata"] == {"orderId": "ord-1001"}
        # Serialized as an ISO timestamp string
        assert isinstance(record["completed_at"], str)
        assert "T" in record["completed_at"]


class TestStore:
    def test_owner_may_be_null(self):
        """Test that a store without an owner loads."""
        store = Store(id="store-popup", name="Weekend Pop-up", owner_id=None)
        assert store.owner_id is None
