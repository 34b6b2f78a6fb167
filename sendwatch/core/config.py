"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development, except the
connection string and the Mandrill key, which must be provided.

Usage:
    from sendwatch.core.config import get_settings, RunConfig

    settings = get_settings()
    config = RunConfig.from_settings(settings, timeout_minutes=15)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from sendwatch.core.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # ── Application ──
    APP_NAME: str = "sendwatch"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Database (delivery log) ──
    DATABASE_URL: Optional[str] = None  # e.g. postgresql+asyncpg://user:pw@host/sendwatch
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_ECHO: bool = False  # log SQL queries

    # ── Mandrill (external send log) ──
    MANDRILL_API_KEY: Optional[str] = None
    MANDRILL_BASE_URL: str = "https://mandrillapp.com/api/1.0"

    # ── Slack (alert channel) ──
    SLACK_WEBHOOK_URL: Optional[str] = None
    SLACK_CHANNEL: str = "#release-mgmt"

    # ── Checks ──
    TIMEOUT_MINUTES: int = 10  # grace period before an under-report is an outage
    HTTP_TIMEOUT_SECONDS: float = 10.0  # bound for provider + webhook calls

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


@dataclass(frozen=True)
class RunConfig:
    """
    Configuration bag for a single check run.

    Built from Settings once per invocation and handed to every
    collaborator explicitly, so no connection or credential state is
    shared between runs.
    """
    database_url: Optional[str] = None
    mandrill_api_key: Optional[str] = None
    mandrill_base_url: str = "https://mandrillapp.com/api/1.0"
    slack_webhook_url: Optional[str] = None
    slack_channel: Optional[str] = None
    timeout_minutes: int = 10
    http_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        timeout_minutes: Optional[int] = None,
    ) -> "RunConfig":
        config = cls(
            database_url=settings.DATABASE_URL,
            mandrill_api_key=settings.MANDRILL_API_KEY,
            mandrill_base_url=settings.MANDRILL_BASE_URL,
            slack_webhook_url=settings.SLACK_WEBHOOK_URL,
            slack_channel=settings.SLACK_CHANNEL,
            timeout_minutes=settings.TIMEOUT_MINUTES,
            http_timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        )
        if timeout_minutes is not None:
            config = config.with_timeout(timeout_minutes)
        return config

    def with_timeout(self, timeout_minutes: int) -> "RunConfig":
        return replace(self, timeout_minutes=timeout_minutes)

    def require_database(self) -> None:
        if not self.database_url:
            raise ConfigurationError(
                "Your connection string is not set. Please configure "
                "DATABASE_URL with your delivery log database.",
                setting="DATABASE_URL",
            )

    def require_provider_key(self) -> None:
        if not self.mandrill_api_key:
            raise ConfigurationError(
                "Missing Mandrill API key. Please configure MANDRILL_API_KEY.",
                setting="MANDRILL_API_KEY",
            )
