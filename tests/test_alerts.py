import json

import pytest
from starlette.requests import Request

from billing_gateway.errors import HandlerError
from billing_gateway.webhooks.alerts import build_error_report, client_ip, send_error_notification

from conftest import RecordingNotifier, subscription_body


def make_request(headers=None, client=("10.0.0.1", 4321)):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/webhooks/razorpay", "headers": raw_headers, "client": client})


def raised(error):
    try:
        raise error
    except Exception as e:
        return e


def test_report_extracts_event_and_resource_ids():
    body = json.dumps(subscription_body("subscription.charged")).encode()
    error = raised(HandlerError("subscription.charged", RuntimeError("boom")))

    report = build_error_report(error, make_request({"User-Agent": "Razorpay-Webhook/v1"}), body)

    assert report.webhook_event == "subscription.charged"
    assert report.subscription_id == "sub_1"
    assert report.payment_id == "pay_1"
    assert report.user_agent == "Razorpay-Webhook/v1"
    assert report.ip_address == "10.0.0.1"
    assert "HandlerError" in report.stack
    assert report.timestamp


def test_report_defaults_when_body_unparseable():
    report = build_error_report(raised(ValueError("bad")), make_request(client=None), b"\xff\xfe not json")

    assert report.webhook_event == "unknown"
    assert report.subscription_id == "N/A"
    assert report.payment_id == "N/A"
    assert report.user_agent == "N/A"
    assert report.ip_address == "N/A"


def test_report_tolerates_unexpected_payload_shapes():
    body = json.dumps({"event": 42, "payload": {"subscription": "oops"}}).encode()

    report = build_error_report(raised(ValueError("bad")), make_request(), body)

    assert report.webhook_event == "unknown"
    assert report.subscription_id == "N/A"


def test_client_ip_prefers_first_forwarded_address():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})

    assert client_ip(request) == "203.0.113.7"


@pytest.mark.asyncio
async def test_send_error_notification_delivers_report():
    alerter = RecordingNotifier()
    body = json.dumps(subscription_body("subscription.halted")).encode()

    report = await send_error_notification(raised(RuntimeError("boom")), make_request(), body, alerter)

    assert report is not None
    assert alerter.sent == [("webhook_error", report.model_dump())]


@pytest.mark.asyncio
async def test_send_error_notification_swallows_delivery_failure():
    alerter = RecordingNotifier(fail=True)

    report = await send_error_notification(raised(RuntimeError("boom")), make_request(), b"{}", alerter)

    assert report is None
