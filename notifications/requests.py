"""Request and result models for the notification functions."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from shared.models import Notification
from shared.requests import FunctionRequest

MISSING_FIELDS = "Missing notification fields"


class NotifyUserRequest(FunctionRequest):
    """
    Body of ``notify-user``.

    ``type`` is accepted for compatibility with existing callers and never
    validated; the channels actually written come from the user's preferences.
    """
    required_fields = ("user_id", "title", "message")
    missing_message = MISSING_FIELDS

    user_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    type: Any = None


class NotifyOrderRequest(FunctionRequest):
    """Body of ``notify-merchant`` and ``notify-driver``: an order plus the message."""
    required_fields = ("order_id", "title", "message")
    missing_message = MISSING_FIELDS

    order_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None


class DispatchResult(BaseModel):
    """
    Outcome of a dispatch.

    Serializes to ``{"success": true}`` or ``{"skipped": true}``; the rows
    written are kept for logging and tests but never sent to the caller.
    """
    success: Optional[bool] = None
    skipped: Optional[bool] = None
    notifications: list[Notification] = Field(default_factory=list, exclude=True)

    @classmethod
    def delivered(cls, notifications: list[Notification]) -> "DispatchResult":
        return cls(success=True, notifications=notifications)

    @classmethod
    def opted_out(cls) -> "DispatchResult":
        return cls(skipped=True)

    def to_response(self) -> dict:
        return self.model_dump(exclude_none=True)
