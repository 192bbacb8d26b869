"""Operator error reports for failed webhook deliveries."""

import json
import logging
import traceback
from typing import Any

from fastapi import Request

from billing_gateway.notifiers import Notifier

from .events import ErrorReport, utcnow

logger = logging.getLogger(__name__)


def _parse_body(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _entity_id(data: dict[str, Any], resource: str) -> str:
    try:
        value = data["payload"][resource]["entity"]["id"]
    except (KeyError, TypeError):
        return "N/A"
    return str(value) if value else "N/A"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "N/A"


def build_error_report(error: BaseException, request: Request, body: bytes) -> ErrorReport:
    """Assemble diagnostics from the error and whatever of the body parses."""
    data = _parse_body(body)
    event = data.get("event")
    return ErrorReport(
        message=str(error),
        stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        timestamp=utcnow().isoformat(),
        webhook_event=event if isinstance(event, str) and event else "unknown",
        subscription_id=_entity_id(data, "subscription"),
        payment_id=_entity_id(data, "payment"),
        user_agent=request.headers.get("user-agent", "N/A"),
        ip_address=client_ip(request),
    )


async def send_error_notification(
    error: BaseException, request: Request, body: bytes, alerter: Notifier
) -> ErrorReport | None:
    """Forward an ErrorReport to the alert channel. Never raises."""
    try:
        report = build_error_report(error, request, body)
        logger.error(f"Webhook error report: {report.model_dump(exclude={'stack'})}")
        await alerter.send("webhook_error", report.model_dump())
        return report
    except Exception as e:
        logger.error(f"Failed to send error notification via {alerter.channel_name}: {e!r}")
        return None
