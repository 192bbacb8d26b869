"""
Webhook Ingress

Signature verification, event dispatch and lifecycle handlers for
payment-provider subscription webhooks.
"""

from .dispatcher import Dispatcher
from .events import DispatchResult, InboundNotification, SubscriptionEvent, WebhookResponse
from .signature import SignatureVerifier

__all__ = [
    "Dispatcher",
    "DispatchResult",
    "InboundNotification",
    "SignatureVerifier",
    "SubscriptionEvent",
    "WebhookResponse",
]
