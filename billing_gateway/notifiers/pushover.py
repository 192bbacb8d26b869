"""Pushover notifier - operator alerts for webhook failures."""

import json
from enum import IntEnum
from typing import Any

import httpx

from billing_gateway.errors import NotificationDeliveryError, parse_pushover_error

from .base import Notifier

PUSHOVER_API_URL = "https://api.pushover.net/1/messages.json"

TITLE_MAX = 250
MESSAGE_MAX = 1024


class Priority(IntEnum):
    LOWEST = -2      # No notification, just badge
    LOW = -1         # Quiet notification
    NORMAL = 0       # Normal notification
    HIGH = 1         # Bypass quiet hours
    EMERGENCY = 2    # Requires acknowledgment


TEMPLATE_TITLES = {
    "webhook_error": "Webhook Processing Error",
}

TEMPLATE_PRIORITIES = {
    "webhook_error": Priority.HIGH,
}


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def render_message(data: dict[str, Any]) -> str:
    """Render ``data`` as ``key: value`` lines; the stack trace, if any, goes last."""
    lines = [f"{key}: {value}" for key, value in data.items() if key != "stack"]
    if data.get("stack"):
        lines.append("")
        lines.append(str(data["stack"]))
    return "\n".join(lines)


class PushoverNotifier(Notifier):
    def __init__(
        self,
        user_key: str,
        api_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_key = user_key
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "pushover"

    def build_payload(self, template: str, data: dict[str, Any]) -> dict[str, Any]:
        priority = TEMPLATE_PRIORITIES.get(template, Priority.NORMAL)
        title = TEMPLATE_TITLES.get(template, template.replace("_", " ").title())

        payload = {
            "token": self._api_token,
            "user": self._user_key,
            "title": _truncate(title, TITLE_MAX),
            "message": _truncate(render_message(data) or template, MESSAGE_MAX),
            "priority": int(priority),
        }

        # Emergency priority requires retry/expire params
        if priority == Priority.EMERGENCY:
            payload["retry"] = 60       # Retry every 60 seconds
            payload["expire"] = 3600

        return payload

    async def send(self, template: str, data: dict[str, Any]) -> None:
        if not self._user_key or not self._api_token:
            raise NotificationDeliveryError("Pushover credentials not configured")

        payload = self.build_payload(template, data)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(PUSHOVER_API_URL, data=payload)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"Pushover unreachable: {e}") from e

        if response.status_code != 200:
            raise NotificationDeliveryError(
                f"Pushover API error ({response.status_code}): {parse_pushover_error(response.text)}"
            )

        try:
            status = response.json().get("status")
        except json.JSONDecodeError:
            status = None
        if status != 1:
            raise NotificationDeliveryError(f"Pushover rejected: {parse_pushover_error(response.text)}")
