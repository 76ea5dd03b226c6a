"""
Error taxonomy for the marketplace functions.

Every failure a function can report to its caller is one of the classes below.
Handlers raise them; only the API layer (api/main.py) turns them into HTTP
responses, using ``status_code`` and ``str(error)`` as the message.

Design decisions:
- Closed set of kinds, all mapped to 400 (callers treat every failure alike)
- Messages are written for the caller and never contain credential values
- Processor and record-store messages are carried as data, not parsed
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for every error a function reports to its caller."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """Required input is missing or invalid."""

    default_message = "Invalid request"


class NotFoundError(MarketplaceError):
    """A related record the request depends on does not exist (no store, no driver)."""

    default_message = "Record not found"


class ConfigurationError(MarketplaceError):
    """
    A server-side credential or setting is missing.

    The message names the missing setting, never its value.
    """

    default_message = "Server not configured"


class PaymentProcessorError(MarketplaceError):
    """The payment processor rejected or failed the request."""

    default_message = "Payment processor error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class PaymentVerificationError(MarketplaceError):
    """A payment intent does not match what the order expects."""

    default_message = "Payment verification failed"


class RecordStoreError(MarketplaceError):
    """The record store rejected a read or write."""

    default_message = "Record store request failed"


class PaymentClientError(Exception):
    """
    Raised by the client-side payment wrapper.

    Not a MarketplaceError: it never crosses the HTTP boundary, it is what
    storefront code sees when a remote payment function fails.
    """
