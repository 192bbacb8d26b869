"""Webhook error taxonomy and shared error-parsing utilities."""

import json


class WebhookError(Exception):
    """Base class for every error raised while receiving a webhook."""


class MethodNotAllowed(WebhookError):
    """The receiver only accepts POST."""


class ConfigurationError(WebhookError):
    """Operational misconfiguration, e.g. the webhook secret is not set."""


class AuthenticationError(WebhookError):
    """The request signature is missing or does not match the body."""


class HandlerError(WebhookError):
    """An event handler failed; wraps the underlying cause.

    ``retryable`` is set for failures the provider's redelivery can fix,
    such as a downstream timeout.
    """

    def __init__(self, event: str, cause: BaseException, retryable: bool = False) -> None:
        super().__init__(f"Handler for {event} failed: {cause!r}")
        self.event = event
        self.cause = cause
        self.retryable = retryable


class PayloadTooLarge(WebhookError):
    """The request body exceeds the configured size cap."""


class NotificationDeliveryError(WebhookError):
    """A notifier could not deliver a message. Logged, never surfaced to the caller."""


def parse_pushover_error(response_text: str) -> str:
    """Extract a readable message from a Pushover API error response.

    Pushover returns JSON like {"status": 0, "errors": ["user key is invalid"], "request": "..."}.
    Returns the joined error list when parseable, raw text otherwise.
    """
    try:
        body = json.loads(response_text)
        errors = body.get("errors") or []
        if errors:
            return "; ".join(str(e) for e in errors)
    except (ValueError, AttributeError):
        pass
    return response_text
