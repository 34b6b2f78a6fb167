"""
FastAPI routes: send logging and stall checks.

Provides endpoints to:
    POST /api/v1/emails/log          — record one outbound email
    POST /api/v1/checks/timeout      — reconcile today's sends for to/region
    POST /api/v1/checks/reputation   — compare Mandrill reputation/quota

Parameters are query strings so a scheduler can fire them with a bare
URL. Missing `to`/`region` is answered with a VALIDATION_ERROR before
any query runs.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from sendwatch.api.deps import (
    get_alert_channel,
    get_delivery_store,
    get_provider,
    get_reputation_store,
    get_run_config,
)
from sendwatch.channels.slack_webhook import SlackWebhookChannel
from sendwatch.core.config import RunConfig
from sendwatch.monitor.orchestrator import log_send, run_timeout_check
from sendwatch.monitor.reputation import run_reputation_check
from sendwatch.providers.mandrill import MandrillClient
from sendwatch.storage.delivery_store import SqlDeliveryStore
from sendwatch.storage.reputation_store import SqlReputationStore

router = APIRouter(prefix="/api/v1", tags=["send-monitor"])


class LogSendResponse(BaseModel):
    status: str = Field("done", examples=["done"])
    to: str = Field(..., examples=["ops@example.com"])
    region: str = Field(..., examples=["eu"])
    sent: str = Field(..., description="UTC send time (ISO 8601)")


@router.post("/emails/log", response_model=LogSendResponse)
async def log_email(
    to: Optional[str] = Query(None, description="Recipient address"),
    region: Optional[str] = Query(None, description="Sending region"),
    config: RunConfig = Depends(get_run_config),
    store: SqlDeliveryStore = Depends(get_delivery_store),
) -> LogSendResponse:
    record = await log_send(to, region, config=config, store=store)
    return LogSendResponse(
        to=record.recipient,
        region=record.region,
        sent=record.sent_at.isoformat(),
    )


@router.post("/checks/timeout")
async def timeout_check(
    to: Optional[str] = Query(None, description="Recipient address"),
    region: Optional[str] = Query(None, description="Sending region"),
    timeout: Optional[int] = Query(
        None, ge=0, description="Grace period in minutes (default TIMEOUT_MINUTES)",
    ),
    config: RunConfig = Depends(get_run_config),
    store: SqlDeliveryStore = Depends(get_delivery_store),
    provider: MandrillClient = Depends(get_provider),
    channel: Optional[SlackWebhookChannel] = Depends(get_alert_channel),
) -> Dict[str, Any]:
    report = await run_timeout_check(
        to,
        region,
        timeout,
        config=config,
        store=store,
        provider=provider,
        channel=channel,
    )
    return report.to_dict()


@router.post("/checks/reputation")
async def reputation_check(
    config: RunConfig = Depends(get_run_config),
    snapshots: SqlReputationStore = Depends(get_reputation_store),
    provider: MandrillClient = Depends(get_provider),
    channel: Optional[SlackWebhookChannel] = Depends(get_alert_channel),
) -> Dict[str, Any]:
    report = await run_reputation_check(
        config=config,
        provider=provider,
        snapshots=snapshots,
        channel=channel,
    )
    return report.to_dict()
