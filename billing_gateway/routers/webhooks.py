"""Webhook receiver - verifies provider signatures and dispatches subscription events."""

import hashlib
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from billing_gateway.config import Settings, settings as app_settings
from billing_gateway.dependencies import get_alerter, get_dispatcher, get_settings, get_verifier
from billing_gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    HandlerError,
    MethodNotAllowed,
    PayloadTooLarge,
)
from billing_gateway.notifiers import Notifier
from billing_gateway.webhooks import Dispatcher, InboundNotification, SignatureVerifier, WebhookResponse
from billing_gateway.webhooks.alerts import send_error_notification
from billing_gateway.webhooks.events import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the raw body, refusing anything over ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(f"Declared body of {declared} bytes exceeds {limit}")

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLarge(f"Body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def _event_key(request: Request, body: bytes, settings: Settings) -> str:
    """Idempotency key: provider event id, or a digest of the exact body."""
    event_id = request.headers.get(settings.event_id_header)
    if event_id:
        return f"id:{event_id}"
    return f"sha256:{hashlib.sha256(body).hexdigest()}"


@router.post("/razorpay", response_model=WebhookResponse)
@limiter.limit(app_settings.webhook_rate_limit)
async def receive_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    verifier: SignatureVerifier = Depends(get_verifier),
    dispatcher: Dispatcher = Depends(get_dispatcher),
    alerter: Notifier = Depends(get_alerter),
):
    """Receive a subscription webhook, verify it and run its handler."""
    logger.info(f"Webhook received at {utcnow().isoformat()}")

    try:
        body = await _read_body(request, settings.max_body_bytes)
    except PayloadTooLarge as e:
        logger.warning(f"Rejected webhook: {e}")
        return JSONResponse(status_code=413, content={"error": "Payload too large"})

    try:
        verifier.verify(body, request.headers.get(settings.signature_header))
    except ConfigurationError as e:
        logger.error("WEBHOOK_SECRET not configured")
        await send_error_notification(e, request, body, alerter)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Webhook secret not configured",
                "message": "Please add WEBHOOK_SECRET to your environment variables",
            },
        )
    except AuthenticationError:
        return JSONResponse(status_code=400, content={"error": "Invalid webhook signature"})

    try:
        notification = InboundNotification.model_validate_json(body)
    except ValidationError as e:
        logger.warning(f"Signed webhook body is not a valid notification: {e.error_count()} error(s)")
        return JSONResponse(status_code=400, content={"error": "Invalid webhook payload"})

    subscription_id = (notification.subscription or {}).get("id", "N/A")
    logger.info(
        f"Processing event {notification.event} created at {notification.created_at} "
        f"(subscription {subscription_id})"
    )

    try:
        result = await dispatcher.dispatch(notification, _event_key(request, body, settings))
        return WebhookResponse(
            event=notification.event,
            timestamp=utcnow().isoformat(),
            result=result.model_dump(mode="json"),
        )
    except HandlerError as e:
        logger.error(f"Webhook processing error: {e}")
        error: Exception = e
    except Exception as e:
        logger.exception(f"Unexpected webhook processing error: {e!r}")
        error = e

    await send_error_notification(error, request, body, alerter)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "Webhook processing failed",
            "timestamp": utcnow().isoformat(),
        },
    )


@router.api_route("/razorpay", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def reject_method(request: Request):
    raise MethodNotAllowed(f"{request.method} not allowed")
