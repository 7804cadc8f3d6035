"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./carenotify.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to stamp and persist notification timestamps",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )

    queue_max_attempts: int = Field(
        default=3,
        description="Delivery attempts allowed per queue item before it fails terminally",
        gt=0,
    )
    queue_backoff_base_seconds: float = Field(
        default=1.0,
        description="Base delay of the exponential retry backoff",
        gt=0,
    )
    queue_backoff_max_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single retry delay",
        gt=0,
    )
    queue_lease_seconds: int = Field(
        default=300,
        description="Seconds a worker may hold a leased item before it is reclaimed",
        gt=0,
    )
    queue_degraded_threshold: int = Field(
        default=1000,
        description="Queued item count above which health is reported as degraded",
        gt=0,
    )

    channel_send_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single channel send call",
        gt=0,
    )

    worker_enabled: bool = Field(
        default=True, description="Start the delivery worker pool with the application"
    )
    worker_count: int = Field(default=2, description="Number of delivery workers", gt=0)
    worker_batch_size: int = Field(
        default=10, description="Items leased by a worker per poll", gt=0
    )
    worker_poll_interval_seconds: float = Field(
        default=1.0, description="Sleep between polls of an empty queue", gt=0
    )

    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending notification emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of notification emails",
        min_length=3,
    )

    twilio_account_sid: str | None = Field(default=None, description="Twilio account SID")
    twilio_auth_token: str | None = Field(default=None, description="Twilio auth token")
    twilio_from_number: str | None = Field(
        default=None, description="Phone number SMS notifications are sent from"
    )

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        return self

    @model_validator(mode="after")
    def _validate_twilio_triplet(self) -> "Settings":
        values = (self.twilio_account_sid, self.twilio_auth_token, self.twilio_from_number)
        if any(values) and not all(values):
            raise ValueError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER must be provided together"
            )
        return self

    @property
    def email_enabled(self) -> bool:
        return bool(self.sendgrid_api_key and self.sendgrid_sender)

    @property
    def sms_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
