"""
test_reputation.py — Tests for the Mandrill reputation/quota check.

Run with:
    pytest tests/test_reputation.py -v
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sendwatch.core.config import RunConfig
from sendwatch.core.errors import ConfigurationError
from sendwatch.monitor.models import AccountStatus, DeliveryAttempt, DeliveryStatus
from sendwatch.monitor.reputation import run_reputation_check

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeAccountProvider:
    def __init__(self, status: AccountStatus):
        self.status = status

    async def get_account_status(self) -> AccountStatus:
        return self.status


class FakeSnapshots:
    def __init__(self, baseline=None):
        self.baseline = baseline
        self.saved = []

    async def latest(self):
        return self.baseline

    async def save(self, status, recorded_at):
        self.saved.append((status, recorded_at))


class FakeChannel:
    def __init__(self):
        self.posted = []

    async def post(self, payload):
        self.posted.append(payload)
        return DeliveryAttempt(status=DeliveryStatus.DELIVERED)


def _config(**overrides) -> RunConfig:
    values = dict(database_url="sqlite+aiosqlite:///:memory:", mandrill_api_key="k")
    values.update(overrides)
    return RunConfig(**values)


async def _run(current, baseline=None, channel=None, **overrides):
    snapshots = FakeSnapshots(baseline)
    report = await run_reputation_check(
        config=_config(**overrides),
        provider=FakeAccountProvider(current),
        snapshots=snapshots,
        channel=channel,
        now=NOW,
    )
    return report, snapshots


class TestReputationCheck:

    @pytest.mark.asyncio
    async def test_first_run_stores_baseline(self):
        current = AccountStatus(reputation=75, hourly_quota=300)
        report, snapshots = await _run(current)
        assert report.regressed is False
        assert report.previous == current
        assert snapshots.saved == [(current, NOW)]

    @pytest.mark.asyncio
    async def test_improvement_replaces_baseline(self):
        current = AccountStatus(80, 400)
        report, snapshots = await _run(current, baseline=AccountStatus(75, 300))
        assert report.status == "Success"
        assert snapshots.saved == [(current, NOW)]

    @pytest.mark.asyncio
    async def test_regression_alerts_and_keeps_baseline(self):
        channel = FakeChannel()
        report, snapshots = await _run(
            AccountStatus(60, 300), baseline=AccountStatus(75, 300), channel=channel,
        )
        assert report.regressed is True
        assert report.status == "Failed"
        assert len(channel.posted) == 1
        assert snapshots.saved == []
        assert report.notification.status is DeliveryStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_quota_regression(self):
        channel = FakeChannel()
        report, _ = await _run(
            AccountStatus(75, 100), baseline=AccountStatus(75, 300), channel=channel,
        )
        assert report.regressed is True
        assert "300/100" in channel.posted[0].body

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            await _run(AccountStatus(75, 300), mandrill_api_key=None)
