from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from billing_gateway.config import Settings
from billing_gateway.dependencies import get_settings, verify_api_key


router = APIRouter(tags=["health"])

_startup_time = datetime.now(timezone.utc)

VERSION = "0.1.0"


class EndpointInfo(BaseModel):
    path: str
    description: str
    provider: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    endpoints: list[EndpointInfo]


class IntegrationStatus(BaseModel):
    connected: bool
    status: str
    last_check: str | None = None


class IntegrationsResponse(BaseModel):
    webhook_secret: IntegrationStatus
    database: IntegrationStatus
    alerts: IntegrationStatus


ENDPOINTS = [
    EndpointInfo(path="/health", description="Gateway status and API directory"),
    EndpointInfo(path="/health/integrations", description="Integration configuration status"),
    EndpointInfo(path="/webhooks/razorpay", description="Subscription webhook receiver", provider="Razorpay"),
]


def _ok() -> IntegrationStatus:
    return IntegrationStatus(
        connected=True,
        status="ok",
        last_check=datetime.now(timezone.utc).isoformat(),
    )


def _check_webhook_secret(settings: Settings) -> IntegrationStatus:
    if not settings.webhook_secret:
        return IntegrationStatus(connected=False, status="webhook secret not configured")
    return _ok()


def _check_database(settings: Settings) -> IntegrationStatus:
    if not settings.database_url:
        return IntegrationStatus(connected=False, status="DATABASE_URL not set (in-memory store)")
    return _ok()


def _check_pushover(settings: Settings) -> IntegrationStatus:
    if not settings.pushover_user_key or not settings.pushover_api_token:
        return IntegrationStatus(connected=False, status="credentials not configured (alerts logged only)")
    return _ok()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    uptime = (datetime.now(timezone.utc) - _startup_time).total_seconds()

    return HealthResponse(
        status="ok",
        version=VERSION,
        uptime_seconds=round(uptime, 2),
        endpoints=ENDPOINTS,
    )


@router.get(
    "/health/integrations",
    response_model=IntegrationsResponse,
    dependencies=[Depends(verify_api_key)],
)
async def get_integrations(settings: Settings = Depends(get_settings)):
    return IntegrationsResponse(
        webhook_secret=_check_webhook_secret(settings),
        database=_check_database(settings),
        alerts=_check_pushover(settings),
    )
