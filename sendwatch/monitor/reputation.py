"""
reputation.py — Alert when Mandrill reputation or hourly quota drops.

Same shape as the timeout check: compare the previous value with the
current one and alert on regression.

    baseline = latest stored snapshot (first run: current status)
    current  < baseline on either metric → alert, keep the old baseline
    otherwise                             → store current as new baseline

Keeping the old baseline after a drop means the alert repeats on every
run until the account recovers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sendwatch.core.config import RunConfig
from sendwatch.monitor.formatter import format_reputation_alert
from sendwatch.monitor.models import AccountStatus, ReputationCheckReport
from sendwatch.monitor.orchestrator import AlertChannel, deliver_alert
from sendwatch.storage.reputation_store import ReputationStore

logger = logging.getLogger(__name__)


class AccountStatusProvider(Protocol):
    async def get_account_status(self) -> AccountStatus: ...


async def run_reputation_check(
    *,
    config: RunConfig,
    provider: AccountStatusProvider,
    snapshots: ReputationStore,
    channel: Optional[AlertChannel] = None,
    now: Optional[datetime] = None,
) -> ReputationCheckReport:
    config.require_database()
    config.require_provider_key()
    now = now or datetime.now(timezone.utc)

    current = await provider.get_account_status()
    logger.info("Current reputation: %s", current.to_dict())

    previous = await snapshots.latest()
    if previous is None:
        logger.info("No reputation entries found in the database. Creating new...")
        previous = current
    logger.info("Previous reputation: %s", previous.to_dict())

    payload = format_reputation_alert(previous, current, slack_channel=config.slack_channel)
    report = ReputationCheckReport(
        previous=previous,
        current=current,
        regressed=payload is not None,
    )

    if payload is not None:
        logger.warning("Reputation/quota decreased from previous run")
        report.notification = await deliver_alert(channel, payload)
    else:
        logger.info("Reputation/quota ok")
        await snapshots.save(current, now)

    return report
