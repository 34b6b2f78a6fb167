"""
reconciliation.py — Decide whether outbound email has silently stalled.

Compares the local delivery log with Mandrill's send log at the most
recent hour that shows any activity.

═══════════════════════════════════════════════════════════════════════════
DECISION TABLE (evaluated in order at the candidate hour)
═══════════════════════════════════════════════════════════════════════════

    external   local     verdict
    ────────   ─────     ─────────────────────────────────────────────
    0          0         first pass  → look again one hour earlier
                         second pass → success (idle)
    n          n         success (matched)
    < local              success if minutes since the last local send
                         ≤ timeout (provider log lags), else FAILURE
    > local              success (external ahead, no backfill)

The candidate hour comes from the provider's newest bucket when it has
any, otherwise from ours. The look-back happens at most once: two silent
hours in a row are an idle period, never an outage.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Sequence

from sendwatch.monitor.aggregator import as_utc
from sendwatch.monitor.models import HourBucket, Outcome, ReconciliationResult

logger = logging.getLogger(__name__)


class Pass(Enum):
    FIRST = 1
    SECOND = 2


def previous_hour(hour: int) -> int:
    """The hour before `hour`, wrapping 0 → 23."""
    return 23 if hour == 0 else hour - 1


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes between two instants, truncated."""
    delta = as_utc(later) - as_utc(earlier)
    return int(abs(delta.total_seconds()) // 60)


def _counts_by_hour(buckets: Sequence[HourBucket]) -> Dict[int, int]:
    counts: Dict[int, int] = {}
    for bucket in buckets:
        counts[bucket.hour] = counts.get(bucket.hour, 0) + bucket.count
    return counts


def reconcile(
    local_buckets: Sequence[HourBucket],
    external_buckets: Sequence[HourBucket],
    last_local_sent_at: Optional[datetime],
    timeout_minutes: int,
    *,
    now: Optional[datetime] = None,
) -> ReconciliationResult:
    """
    Reconcile hourly activity from both sources.

    Parameters
    ----------
    local_buckets, external_buckets : sequence of HourBucket
        Most recent first, as produced by aggregate_by_hour.
    last_local_sent_at : datetime | None
        Newest local DeliveryRecord in the window.
    timeout_minutes : int
        Grace period for the provider's log to catch up.
    now : datetime, optional
        Reference time (defaults to the current UTC time).

    Returns
    -------
    ReconciliationResult
    """
    if not local_buckets and not external_buckets:
        logger.info("No entries in either source. Nothing to check.")
        return ReconciliationResult(
            success=True,
            local_count=0,
            external_count=0,
            outcome=Outcome.NO_ACTIVITY,
            last_sent_at=last_local_sent_at,
            passes=0,
        )

    local_counts = _counts_by_hour(local_buckets)
    external_counts = _counts_by_hour(external_buckets)
    hour = external_buckets[0].hour if external_buckets else local_buckets[0].hour

    for current_pass in Pass:
        local_count = local_counts.get(hour, 0)
        external_count = external_counts.get(hour, 0)

        logger.info(
            "Comparing hour %02d (pass %d): mandrill=%d local=%d last_sent=%s",
            hour, current_pass.value, external_count, local_count,
            last_local_sent_at,
            extra={
                "hour": hour,
                "local_count": local_count,
                "external_count": external_count,
            },
        )

        if external_count == 0 and local_count == 0:
            if current_pass is Pass.FIRST:
                hour = previous_hour(hour)
                continue
            # Nothing sent in two consecutive hours
            return ReconciliationResult(
                success=True,
                local_count=0,
                external_count=0,
                outcome=Outcome.IDLE,
                hour=hour,
                last_sent_at=last_local_sent_at,
                passes=current_pass.value,
            )

        if external_count == local_count:
            return ReconciliationResult(
                success=True,
                local_count=local_count,
                external_count=external_count,
                outcome=Outcome.MATCHED,
                hour=hour,
                last_sent_at=last_local_sent_at,
                passes=current_pass.value,
            )

        if external_count < local_count:
            return _judge_under_report(
                hour=hour,
                local_count=local_count,
                external_count=external_count,
                last_local_sent_at=last_local_sent_at,
                timeout_minutes=timeout_minutes,
                now=now or datetime.now(timezone.utc),
                passes=current_pass.value,
            )

        return ReconciliationResult(
            success=True,
            local_count=local_count,
            external_count=external_count,
            outcome=Outcome.EXTERNAL_AHEAD,
            hour=hour,
            last_sent_at=last_local_sent_at,
            passes=current_pass.value,
        )

    raise AssertionError("unreachable: second pass always returns")


def _judge_under_report(
    *,
    hour: int,
    local_count: int,
    external_count: int,
    last_local_sent_at: Optional[datetime],
    timeout_minutes: int,
    now: datetime,
    passes: int,
) -> ReconciliationResult:
    if last_local_sent_at is None:
        minutes = None
        within_grace = False
    else:
        minutes = minutes_between(last_local_sent_at, now)
        within_grace = minutes <= timeout_minutes

    logger.warning(
        "Mandrill count less than emails registered in the database "
        "(%d < %d), %s minutes since last send",
        external_count, local_count, minutes,
        extra={
            "hour": hour,
            "local_count": local_count,
            "external_count": external_count,
            "minutes_since_last_sent": minutes,
        },
    )

    return ReconciliationResult(
        success=within_grace,
        local_count=local_count,
        external_count=external_count,
        outcome=Outcome.WITHIN_GRACE if within_grace else Outcome.STALLED,
        hour=hour,
        last_sent_at=last_local_sent_at,
        minutes_since_last_sent=minutes,
        passes=passes,
    )
