"""
FastAPI application serving the marketplace functions.

This application provides:
1. Notification functions (/functions/v1/notify-user, notify-merchant, notify-driver)
2. Payment functions (/functions/v1/stripe-payment, verify-payment, stripe-webhook)
3. Browser-safe checkout configuration (/payments/config)

Run with:
    uvicorn api.main:app --reload

Every response carries permissive CORS headers and any OPTIONS request is
answered with an empty 200, so the storefront can call the functions from
the browser.

Design decisions:
- Handlers are synchronous and run in the thread pool, one request each
- Collaborators (settings, record store, gateway) are built once, lazily,
  and can be swapped with reset_app_state() in tests
- Errors are mapped to a status and JSON envelope here and nowhere else
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

from notifications import (
    DriverNotifier,
    MerchantNotifier,
    NotifyOrderRequest,
    NotifyUserRequest,
    UserNotifier,
)
from payments import (
    CreatePaymentIntentRequest,
    PaymentGateway,
    PaymentIntentService,
    PaymentVerifier,
    PaymentWebhookHandler,
    VerifyPaymentRequest,
    publishable_config,
)
from shared.config import Settings, get_settings
from shared.errors import MarketplaceError, ValidationError
from shared.record_store import InMemoryRecordStore, RecordStore, create_record_store

logger = logging.getLogger("functions_api")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, stripe-signature",
}


# =============================================================================
# Application state
# =============================================================================

# Module-level instances, built on first use
_settings: Optional[Settings] = None
_record_store: Optional[RecordStore] = None
_payment_gateway: Optional[PaymentGateway] = None


def get_app_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def get_record_store() -> RecordStore:
    """
    Get the record store instance.

    Raises:
        ConfigurationError: If the REST backend is configured without credentials
    """
    global _record_store
    if _record_store is None:
        _record_store = create_record_store(get_app_settings())
        if isinstance(_record_store, InMemoryRecordStore):
            register_local_functions(_record_store)
    return _record_store


def get_payment_gateway() -> Optional[PaymentGateway]:
    """Injected gateway, or None to let services build a StripeGateway from settings."""
    return _payment_gateway


def reset_app_state(
    settings: Optional[Settings] = None,
    record_store: Optional[RecordStore] = None,
    payment_gateway: Optional[PaymentGateway] = None,
) -> None:
    """Reset application state (for testing)."""
    global _settings, _record_store, _payment_gateway
    _settings = settings
    _record_store = record_store
    _payment_gateway = payment_gateway


# =============================================================================
# Function handlers (decoded JSON body in, response body out)
# =============================================================================

def notify_user(body: Any) -> dict[str, Any]:
    request = NotifyUserRequest.parse(body)
    return UserNotifier(get_record_store()).notify(request).to_response()


def notify_merchant(body: Any) -> dict[str, Any]:
    request = NotifyOrderRequest.parse(body)
    return MerchantNotifier(get_record_store()).notify(request).to_response()


def notify_driver(body: Any) -> dict[str, Any]:
    request = NotifyOrderRequest.parse(body)
    return DriverNotifier(get_record_store()).notify(request).to_response()


def stripe_payment(body: Any) -> dict[str, Any]:
    request = CreatePaymentIntentRequest.parse(body)
    service = PaymentIntentService(get_app_settings(), gateway=get_payment_gateway())
    return service.create(request).to_response()


def verify_payment(body: Any) -> dict[str, Any]:
    request = VerifyPaymentRequest.parse(body)
    verifier = PaymentVerifier(get_app_settings(), get_record_store(), gateway=get_payment_gateway())
    return verifier.verify(request).to_response()


FUNCTIONS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "notify-user": notify_user,
    "notify-merchant": notify_merchant,
    "notify-driver": notify_driver,
    "stripe-payment": stripe_payment,
    "verify-payment": verify_payment,
}


def register_local_functions(store: InMemoryRecordStore) -> None:
    """Let an in-memory store invoke the functions in-process."""
    for name, handler in FUNCTIONS.items():
        store.register_function(name, handler)


# =============================================================================
# Error envelopes
# =============================================================================

@dataclass(frozen=True)
class FunctionEnvelope:
    """How a function reports failure: fallback message and response shape."""
    name: str
    failure_message: str
    success_flag: bool = True

    def error_body(self, message: Optional[str]) -> dict[str, Any]:
        body: dict[str, Any] = {"error": message or self.failure_message}
        if self.success_flag:
            body = {"success": False, **body}
        return body


ENVELOPES = {
    "notify-user": FunctionEnvelope("notify-user", "Failed to notify user"),
    "notify-merchant": FunctionEnvelope("notify-merchant", "Failed to notify merchants"),
    "notify-driver": FunctionEnvelope("notify-driver", "Failed to notify driver"),
    "stripe-payment": FunctionEnvelope("stripe-payment", "Failed to create payment intent", success_flag=False),
    "verify-payment": FunctionEnvelope("verify-payment", "Payment verification failed"),
    "stripe-webhook": FunctionEnvelope("stripe-webhook", "Webhook error", success_flag=False),
    "payments-config": FunctionEnvelope("payments-config", "Payment configuration unavailable", success_flag=False),
}


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON body")


async def serve_function(
    request: Request,
    name: str,
    handler: Callable[[Any], dict[str, Any]],
    parse_json: bool = True,
) -> JSONResponse:
    """
    Run one function invocation and map the outcome to an HTTP response.

    MarketplaceError -> its status (400) with the function's error envelope.
    Anything else is logged with traceback and reported the same way.
    """
    envelope = ENVELOPES[name]
    try:
        body = await _read_json(request) if parse_json else None
        payload = await run_in_threadpool(handler, body)
    except MarketplaceError as e:
        logger.warning(f"{name} failed: {e.message}")
        return JSONResponse(envelope.error_body(e.message), status_code=e.status_code)
    except Exception as e:
        logger.exception(f"{name} failed unexpectedly")
        return JSONResponse(envelope.error_body(str(e)), status_code=400)
    return JSONResponse(payload, status_code=200)


# =============================================================================
# Application
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    settings = get_app_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logging.info(f"Starting marketplace functions (record store: {settings.record_store_backend})")
    yield
    logging.info("Shutting down")


app = FastAPI(
    title="Marketplace Functions",
    description="""
    Server-side functions for the beauty marketplace storefront.

    ## Notifications

    - `notify-user`: notify a customer on the channels they enabled
    - `notify-merchant`: notify the merchants whose stores are in an order
    - `notify-driver`: notify the driver assigned to an order

    ## Payments

    - `stripe-payment`: create a payment intent, returns client secret + id only
    - `verify-payment`: confirm a payment server-side and mark the order paid
    - `stripe-webhook`: processor events (signed)
    """,
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def cors(request: Request, call_next):
    """Answer pre-flight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "marketplace-functions"}


# =============================================================================
# Functions
# =============================================================================

functions = APIRouter(prefix="/functions/v1")


@functions.post("/notify-user", tags=["Notifications"])
async def notify_user_endpoint(request: Request):
    """
    Notify one user about an order event.

    Body: `{userId, title, message, type?}`. Writes one in-app/email/push
    notification per channel the user enabled. Returns `{skipped: true}` when
    the user opted out of order updates.
    """
    return await serve_function(request, "notify-user", notify_user)


@functions.post("/notify-merchant", tags=["Notifications"])
async def notify_merchant_endpoint(request: Request):
    """
    Notify the owners of every store in an order (in-app).

    Body: `{orderId, title, message}`.
    """
    return await serve_function(request, "notify-merchant", notify_merchant)


@functions.post("/notify-driver", tags=["Notifications"])
async def notify_driver_endpoint(request: Request):
    """
    Notify the driver assigned to an order (in-app, regardless of preferences).

    Body: `{orderId, title, message}`.
    """
    return await serve_function(request, "notify-driver", notify_driver)


@functions.post("/stripe-payment", tags=["Payments"])
async def stripe_payment_endpoint(request: Request):
    """
    Create a payment intent.

    Body: `{amount, currency?, customerEmail?, metadata?}` with amount in
    major units. Returns `{clientSecret, paymentIntentId}`.
    """
    return await serve_function(request, "stripe-payment", stripe_payment)


@functions.post("/verify-payment", tags=["Payments"])
async def verify_payment_endpoint(request: Request):
    """
    Verify a payment intent against an order and mark the order paid.

    Body: `{paymentIntentId, expectedAmount, orderId}` with expectedAmount in
    minor units.
    """
    return await serve_function(request, "verify-payment", verify_payment)


@functions.post("/stripe-webhook", tags=["Payments"])
async def stripe_webhook_endpoint(request: Request):
    """Receive signed payment_intent events from the processor."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    def handle(_body: Any) -> dict[str, Any]:
        handler = PaymentWebhookHandler(get_app_settings(), get_record_store(), gateway=get_payment_gateway())
        return handler.handle(payload, signature)

    return await serve_function(request, "stripe-webhook", handle, parse_json=False)


app.include_router(functions)


# =============================================================================
# Checkout configuration
# =============================================================================

@app.get("/payments/config", tags=["Payments"])
async def payments_config(request: Request):
    """Publishable key and checkout defaults for the browser."""
    return await serve_function(
        request,
        "payments-config",
        lambda _body: publishable_config(get_app_settings()),
        parse_json=False,
    )
