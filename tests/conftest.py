import hashlib
import hmac
import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from billing_gateway.config import Settings
from billing_gateway.dependencies import get_alerter, get_notifier, get_settings, get_store
from billing_gateway.errors import NotificationDeliveryError
from billing_gateway.main import app
from billing_gateway.notifiers import Notifier
from billing_gateway.routers.webhooks import limiter
from billing_gateway.storage import MemoryStore

SECRET = "whsec_test_secret"


class RecordingNotifier(Notifier):
    """Fake notifier that records sends, optionally failing every one."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail = fail

    @property
    def channel_name(self) -> str:
        return "recording"

    async def send(self, template: str, data: dict[str, Any]) -> None:
        if self.fail:
            raise NotificationDeliveryError("channel down")
        self.sent.append((template, data))


def sign(raw: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def subscription_body(event: str, **entity: Any) -> dict[str, Any]:
    sub = {
        "id": "sub_1",
        "customer_id": "cus_1",
        "plan_id": "plan_monthly",
        "charge_at": 1700600000,
        "current_start": 1700000000,
        "current_end": 1702592000,
        "end_at": 1731536000,
        "paid_count": 12,
        "remaining_count": 2,
        "quantity": 1,
    }
    sub.update(entity)
    body = {"event": event, "payload": {"subscription": {"entity": sub}}, "created_at": 1700000000}
    if event == "subscription.charged":
        body["payload"]["payment"] = {
            "entity": {
                "id": "pay_1",
                "amount": 4900,
                "currency": "INR",
                "method": "upi",
                "status": "captured",
                "created_at": 1700000000,
            }
        }
    return body


@pytest.fixture
def settings():
    return Settings(_env_file=None, webhook_secret=SECRET, app_url="https://example.test")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def alerter():
    return RecordingNotifier()


@pytest.fixture
def client(settings, store, notifier, alerter):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_alerter] = lambda: alerter
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


@pytest.fixture
def post_event(client):
    """POST a JSON body with a valid signature; extra headers may be passed."""

    def _post(body: dict[str, Any], headers: dict[str, str] | None = None, secret: str = SECRET):
        raw = json.dumps(body).encode("utf-8")
        all_headers = {"content-type": "application/json", "x-razorpay-signature": sign(raw, secret)}
        all_headers.update(headers or {})
        return client.post("/webhooks/razorpay", content=raw, headers=all_headers)

    return _post
