from billing_gateway.config import Settings
from billing_gateway.dependencies import get_alerter, get_verifier
from billing_gateway.notifiers import LogNotifier, PushoverNotifier


def test_health_is_public(client, settings):
    settings.api_key = "k"

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "/webhooks/razorpay" in [e["path"] for e in data["endpoints"]]


def test_integrations_require_api_key_when_set(client, settings):
    settings.api_key = "k"

    assert client.get("/health/integrations").status_code == 401
    assert client.get("/health/integrations", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/health/integrations", headers={"X-API-Key": "k"}).status_code == 200


def test_integrations_report_configuration(client):
    data = client.get("/health/integrations").json()

    assert data["webhook_secret"]["connected"] is True
    assert data["database"]["connected"] is False
    assert data["alerts"]["connected"] is False


def test_webhook_route_ignores_api_key(post_event, settings):
    settings.api_key = "k"

    response = post_event({"event": "payment.authorized", "payload": {}})

    assert response.status_code == 200


def test_alerter_uses_pushover_only_with_credentials():
    assert isinstance(get_alerter(Settings(_env_file=None)), LogNotifier)
    configured = Settings(_env_file=None, pushover_user_key="u", pushover_api_token="t")
    assert isinstance(get_alerter(configured), PushoverNotifier)


def test_verifier_built_from_injected_secret():
    assert get_verifier(Settings(_env_file=None, webhook_secret="abc")).configured is True
    assert get_verifier(Settings(_env_file=None)).configured is False
