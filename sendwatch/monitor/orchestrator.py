"""
orchestrator.py — Public entry points of the send-stall monitor.

    run_timeout_check(to, region)   reconcile today's activity, alert on stall
    log_send(to, region)            append one DeliveryRecord, nothing else

═══════════════════════════════════════════════════════════════════════════
TIMEOUT CHECK FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌──────────────────────┐
    │ 1. Validate          │  connection string + API key → ConfigurationError
    │                      │  to + region               → ValidationError
    └─────────┬────────────┘  (nothing is queried before this passes)
              ▼
    ┌──────────────────────┐
    │ 2. Fetch (fan-out)   │  local store ─┐
    │                      │  Mandrill ────┴─ awaited together
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 3. Aggregate × 2     │  hourly buckets, newest first
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 4. Reconcile         │  success / failure verdict
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 5. Notify            │  only on failure; a failed post is logged
    └──────────────────────┘  and never changes the verdict

Both fetches are awaited to completion; the first UpstreamQueryError
(store before provider) then fails the whole check.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sendwatch.core.config import RunConfig
from sendwatch.core.errors import NotificationError, ValidationError
from sendwatch.monitor.aggregator import aggregate_by_hour, day_window
from sendwatch.monitor.formatter import format_timeout_alert
from sendwatch.monitor.models import (
    AlertPayload,
    DeliveryAttempt,
    DeliveryRecord,
    DeliveryStatus,
    ExternalSendEntry,
    TimeoutCheckReport,
)
from sendwatch.monitor.reconciliation import reconcile
from sendwatch.storage.delivery_store import DeliveryStore

logger = logging.getLogger(__name__)


class ExternalProvider(Protocol):
    async def search_sent_in_range(
        self, recipient: str, start: datetime, end: datetime,
    ) -> List[ExternalSendEntry]: ...


class AlertChannel(Protocol):
    async def post(self, payload: AlertPayload) -> DeliveryAttempt: ...


def validate_target(recipient: Optional[str], region: Optional[str]) -> None:
    missing = [
        name for name, value in (("to", recipient), ("region", region))
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(
            'Invalid parameters sent. Please check that parameters "to" '
            'and "region" are correctly set.',
            field=",".join(missing),
        )


async def deliver_alert(
    channel: Optional[AlertChannel],
    payload: AlertPayload,
) -> DeliveryAttempt:
    """Post an alert; failures are logged and reported, not raised."""
    if channel is None:
        logger.warning("No alert channel configured — skipping notification")
        return DeliveryAttempt(
            status=DeliveryStatus.SKIPPED,
            error_message="No Slack webhook configured",
        )

    try:
        return await channel.post(payload)
    except NotificationError as exc:
        logger.error("Alert delivery failed: %s", exc.message, extra={"channel": exc.channel})
        return DeliveryAttempt(
            channel=exc.channel,
            status=DeliveryStatus.FAILED,
            completed_at=datetime.now(timezone.utc),
            error_message=exc.message,
        )


async def run_timeout_check(
    recipient: Optional[str],
    region: Optional[str],
    timeout_minutes: Optional[int] = None,
    *,
    config: RunConfig,
    store: DeliveryStore,
    provider: ExternalProvider,
    channel: Optional[AlertChannel] = None,
    now: Optional[datetime] = None,
) -> TimeoutCheckReport:
    """
    Check whether sending to `recipient` in `region` has stalled today.

    Raises
    ------
    ConfigurationError
        Database or Mandrill credentials missing.
    ValidationError
        `recipient` or `region` missing.
    UpstreamQueryError
        The delivery store or Mandrill query failed.
    """
    config.require_database()
    config.require_provider_key()
    validate_target(recipient, region)

    timeout = config.timeout_minutes if timeout_minutes is None else timeout_minutes
    now = now or datetime.now(timezone.utc)
    start, end = day_window(now)
    log_extra = {"recipient": recipient, "region": region}

    logger.info(
        "Running timeout check for %s (%s), timeout=%d min", recipient, region, timeout,
        extra=log_extra,
    )

    # Both fetches run to completion before either failure is raised
    fetched = await asyncio.gather(
        store.query_range(recipient, region, start, end),
        provider.search_sent_in_range(recipient, start, end),
        return_exceptions=True,
    )
    for outcome in fetched:
        if isinstance(outcome, BaseException):
            raise outcome
    local_records, external_entries = fetched

    local_buckets = aggregate_by_hour(
        local_records,
        timestamp_of=lambda r: r.sent_at,
        window=(start, end),
    )
    external_buckets = aggregate_by_hour(
        external_entries,
        timestamp_of=lambda e: e.timestamp,
        weight_of=lambda e: e.sent,
        window=(start, end),
    )
    last_sent_at = max((r.sent_at for r in local_records), default=None)

    result = reconcile(
        local_buckets,
        external_buckets,
        last_sent_at,
        timeout,
        now=now,
    )

    report = TimeoutCheckReport(
        recipient=recipient,
        region=region,
        timeout_minutes=timeout,
        result=result,
        window_start=start,
        window_end=end,
        local_buckets=local_buckets,
        external_buckets=external_buckets,
    )

    payload = format_timeout_alert(
        result, region, timeout, slack_channel=config.slack_channel,
    )
    if payload is not None:
        report.notification = await deliver_alert(channel, payload)

    logger.info(
        "Timeout check for %s (%s): %s [%s]",
        recipient, region, report.status, result.outcome.value,
        extra={**log_extra, "outcome": result.outcome.value},
    )
    return report


async def log_send(
    recipient: Optional[str],
    region: Optional[str],
    *,
    config: RunConfig,
    store: DeliveryStore,
    now: Optional[datetime] = None,
) -> DeliveryRecord:
    """Append one DeliveryRecord stamped with the current UTC time."""
    config.require_database()
    validate_target(recipient, region)

    record = DeliveryRecord(
        recipient=recipient,
        region=region,
        sent_at=now or datetime.now(timezone.utc),
    )
    return await store.append(record)
