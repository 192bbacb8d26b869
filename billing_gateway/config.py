"""Application configuration via pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    debug: bool = False
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]
    # API key (optional): if set, required on operator routes (never on the webhook itself)
    api_key: str = ""

    # Webhook ingress
    webhook_secret: str = ""
    signature_header: str = "x-razorpay-signature"
    event_id_header: str = "x-razorpay-event-id"
    max_body_bytes: int = 1024 * 1024
    webhook_rate_limit: str = "120/minute"
    handler_timeout_seconds: float = 5.0
    notify_timeout_seconds: float = 3.0

    # Subscription lifecycle
    grace_period_days: int = 7
    app_url: str = "http://localhost:3000"
    support_email: str = ""

    # Persistence (in-memory store when unset)
    database_url: str = ""

    # Pushover (operator alerts)
    pushover_user_key: str = ""
    pushover_api_token: str = ""


settings = Settings()
