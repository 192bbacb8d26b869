"""Shared FastAPI dependencies: settings, API key check, webhook collaborators."""

import logging
import secrets

from fastapi import Depends, Header, HTTPException

from billing_gateway.config import Settings, settings
from billing_gateway.notifiers import LogNotifier, Notifier, PushoverNotifier
from billing_gateway.storage import MemoryStore, PostgresStore, Store
from billing_gateway.webhooks import Dispatcher, SignatureVerifier

logger = logging.getLogger(__name__)

_store: Store | None = None


def get_settings() -> Settings:
    return settings


async def verify_api_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Require X-API-Key when API_KEY is configured."""
    if not settings.api_key:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key.encode("utf-8"), settings.api_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_store(settings: Settings = Depends(get_settings)) -> Store:
    global _store
    if _store is None:
        if settings.database_url:
            _store = PostgresStore(settings.database_url)
        else:
            logger.warning("DATABASE_URL not set, using in-memory store")
            _store = MemoryStore()
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_notifier() -> Notifier:
    """Customer email channel."""
    return LogNotifier()


def get_alerter(settings: Settings = Depends(get_settings)) -> Notifier:
    """Operator alert channel: Pushover when configured, log otherwise."""
    if settings.pushover_user_key and settings.pushover_api_token:
        return PushoverNotifier(
            settings.pushover_user_key,
            settings.pushover_api_token,
            timeout=settings.notify_timeout_seconds,
        )
    return LogNotifier()


def get_verifier(settings: Settings = Depends(get_settings)) -> SignatureVerifier:
    return SignatureVerifier(settings.webhook_secret)


def get_dispatcher(
    settings: Settings = Depends(get_settings),
    store: Store = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> Dispatcher:
    return Dispatcher(
        store,
        notifier,
        handler_timeout=settings.handler_timeout_seconds,
        notify_timeout=settings.notify_timeout_seconds,
        grace_period_days=settings.grace_period_days,
        app_url=settings.app_url,
        support_email=settings.support_email,
    )
