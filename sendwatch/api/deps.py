"""
FastAPI dependencies — build the per-request collaborators.

Each request gets its own RunConfig and its own provider/channel
clients; only the engine's connection pool is shared, via app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sendwatch.channels.slack_webhook import SlackWebhookChannel
from sendwatch.core.config import RunConfig, Settings, get_settings
from sendwatch.core.errors import ConfigurationError
from sendwatch.providers.mandrill import MandrillClient
from sendwatch.storage.delivery_store import SqlDeliveryStore
from sendwatch.storage.reputation_store import SqlReputationStore


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_run_config(settings: Settings = Depends(get_app_settings)) -> RunConfig:
    return RunConfig.from_settings(settings)


def get_session_factory(
    request: Request,
    config: RunConfig = Depends(get_run_config),
) -> async_sessionmaker[AsyncSession]:
    config.require_database()
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise ConfigurationError(
            "Database engine is not initialised. Restart the service "
            "after configuring DATABASE_URL.",
            setting="DATABASE_URL",
        )
    return factory


def get_delivery_store(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlDeliveryStore:
    return SqlDeliveryStore(factory)


def get_reputation_store(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlReputationStore:
    return SqlReputationStore(factory)


def get_provider(config: RunConfig = Depends(get_run_config)) -> MandrillClient:
    config.require_provider_key()
    return MandrillClient(
        config.mandrill_api_key,
        base_url=config.mandrill_base_url,
        timeout_seconds=config.http_timeout_seconds,
    )


def get_alert_channel(
    config: RunConfig = Depends(get_run_config),
) -> Optional[SlackWebhookChannel]:
    if not config.slack_webhook_url:
        return None
    return SlackWebhookChannel(
        config.slack_webhook_url,
        timeout_seconds=config.http_timeout_seconds,
    )
