"""Webhook event types and request/response models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionEvent(str, Enum):
    """Subscription lifecycle events the receiver acts on."""
    AUTHENTICATED = "subscription.authenticated"  # Mandate set up
    ACTIVATED = "subscription.activated"          # First payment succeeded
    CHARGED = "subscription.charged"              # Recurring payment
    PAUSED = "subscription.paused"
    RESUMED = "subscription.resumed"
    PENDING = "subscription.pending"              # Payment retry scheduled
    HALTED = "subscription.halted"                # Retries exhausted
    CANCELLED = "subscription.cancelled"
    COMPLETED = "subscription.completed"
    UPDATED = "subscription.updated"

    @classmethod
    def parse(cls, name: str) -> "SubscriptionEvent | None":
        """Return the member for ``name``, or None for unrecognised events."""
        try:
            return cls(name)
        except ValueError:
            return None


class EntityEnvelope(BaseModel):
    """Provider wrapper around a resource: {"entity": {...}}."""
    model_config = ConfigDict(extra="allow")

    entity: dict[str, Any] = Field(default_factory=dict)


class NotificationPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    subscription: EntityEnvelope | None = None
    payment: EntityEnvelope | None = None


class InboundNotification(BaseModel):
    """A webhook body as delivered by the provider."""
    model_config = ConfigDict(frozen=True, extra="allow")

    event: str
    payload: NotificationPayload = Field(default_factory=NotificationPayload)
    created_at: int | None = None

    @property
    def subscription(self) -> dict[str, Any] | None:
        if self.payload.subscription is None:
            return None
        return self.payload.subscription.entity

    @property
    def payment(self) -> dict[str, Any] | None:
        if self.payload.payment is None:
            return None
        return self.payload.payment.entity


class DispatchResult(BaseModel):
    """Outcome of a single handler; event-specific fields ride along as extras."""
    model_config = ConfigDict(extra="allow")

    status: Literal["success", "ignored"]
    message: str


class WebhookResponse(BaseModel):
    received: bool = True
    event: str
    status: str = "processed"
    timestamp: str
    result: dict[str, Any]


class ErrorReport(BaseModel):
    """Diagnostic bundle forwarded to the operator alert channel."""
    message: str
    stack: str
    timestamp: str
    webhook_event: str = "unknown"
    subscription_id: str = "N/A"
    payment_id: str = "N/A"
    user_agent: str = "N/A"
    ip_address: str = "N/A"


def from_unix(seconds: int | float | None) -> datetime | None:
    """Convert a provider unix timestamp (seconds) to an aware UTC datetime."""
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
