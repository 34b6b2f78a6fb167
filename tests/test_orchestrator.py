"""
test_orchestrator.py — Tests for the timeout check and send logging flows.

Covers:
    • Configuration / parameter validation before any query
    • End-to-end verdicts from raw records
    • Alerting only on failure, channel failures keep the verdict
    • Upstream failures fail the check
    • log_send appends exactly one record

Run with:
    pytest tests/test_orchestrator.py -v
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from sendwatch.core.config import RunConfig
from sendwatch.core.errors import (
    ConfigurationError,
    NotificationError,
    UpstreamQueryError,
    ValidationError,
)
from sendwatch.monitor.models import (
    DeliveryAttempt,
    DeliveryRecord,
    DeliveryStatus,
    ExternalSendEntry,
    Outcome,
)
from sendwatch.monitor.orchestrator import log_send, run_timeout_check

NOW = datetime(2026, 10, 19, 14, 40, tzinfo=timezone.utc)
TO = "ops@example.com"
REGION = "eu"


# ═══════════════════════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════════════════════

class FakeStore:
    def __init__(self, records=(), error=None):
        self.records = list(records)
        self.error = error
        self.queries = []
        self.appended = []

    async def query_range(self, recipient, region, start, end):
        self.queries.append((recipient, region, start, end))
        if self.error:
            raise self.error
        return sorted(
            (r for r in self.records if r.recipient == recipient and r.region == region),
            key=lambda r: r.sent_at,
            reverse=True,
        )

    async def append(self, record):
        self.appended.append(record)
        return record


class FakeProvider:
    def __init__(self, entries=(), error=None):
        self.entries = list(entries)
        self.error = error
        self.calls = []

    async def search_sent_in_range(self, recipient, start, end):
        self.calls.append((recipient, start, end))
        if self.error:
            raise self.error
        return self.entries


class FakeChannel:
    def __init__(self, error=None):
        self.error = error
        self.posted = []

    async def post(self, payload):
        self.posted.append(payload)
        if self.error:
            raise self.error
        return DeliveryAttempt(status=DeliveryStatus.DELIVERED)


def _config(**overrides) -> RunConfig:
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        mandrill_api_key="test-key",
        slack_channel="#release-mgmt",
        timeout_minutes=10,
    )
    values.update(overrides)
    return RunConfig(**values)


def _sent(minutes_ago: int, n: int = 1):
    ts = NOW - timedelta(minutes=minutes_ago)
    return [DeliveryRecord(recipient=TO, region=REGION, sent_at=ts) for _ in range(n)]


def _slot(hour: int, sent: int) -> ExternalSendEntry:
    return ExternalSendEntry(
        timestamp=datetime(2026, 10, 19, hour, 0, tzinfo=timezone.utc), sent=sent,
    )


async def _run(store, provider, channel=None, timeout=None, **config_overrides):
    return await run_timeout_check(
        TO, REGION, timeout,
        config=_config(**config_overrides),
        store=store,
        provider=provider,
        channel=channel,
        now=NOW,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Validation
# ═══════════════════════════════════════════════════════════════════════════

class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to,region", [(None, REGION), (TO, None), ("", REGION), (TO, "  ")])
    async def test_missing_parameters_issue_no_queries(self, to, region):
        store, provider = FakeStore(), FakeProvider()
        with pytest.raises(ValidationError):
            await run_timeout_check(
                to, region, config=_config(), store=store, provider=provider, now=NOW,
            )
        assert store.queries == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_connection_string(self):
        store, provider = FakeStore(), FakeProvider()
        with pytest.raises(ConfigurationError):
            await _run(store, provider, database_url=None)
        assert store.queries == []

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        store, provider = FakeStore(), FakeProvider()
        with pytest.raises(ConfigurationError):
            await _run(store, provider, mandrill_api_key=None)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_configuration_checked_before_parameters(self):
        with pytest.raises(ConfigurationError):
            await run_timeout_check(
                None, None, config=_config(database_url=None),
                store=FakeStore(), provider=FakeProvider(), now=NOW,
            )


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Verdicts
# ═══════════════════════════════════════════════════════════════════════════

class TestTimeoutCheck:

    @pytest.mark.asyncio
    async def test_no_activity_succeeds_without_alert(self):
        channel = FakeChannel()
        report = await _run(FakeStore(), FakeProvider(), channel)
        assert report.success is True
        assert report.status == "Success"
        assert report.result.outcome is Outcome.NO_ACTIVITY
        assert report.notification is None
        assert channel.posted == []

    @pytest.mark.asyncio
    async def test_matching_counts(self):
        store = FakeStore(_sent(5, n=3))
        provider = FakeProvider([_slot(14, 3)])
        report = await _run(store, provider, FakeChannel())
        assert report.success is True
        assert report.result.local_count == 3
        assert report.result.external_count == 3

    @pytest.mark.asyncio
    async def test_within_grace(self):
        store = FakeStore(_sent(3, n=5))
        provider = FakeProvider([_slot(14, 2)])
        channel = FakeChannel()
        report = await _run(store, provider, channel)
        assert report.success is True
        assert report.result.outcome is Outcome.WITHIN_GRACE
        assert report.result.minutes_since_last_sent == 3
        assert channel.posted == []

    @pytest.mark.asyncio
    async def test_stalled_posts_alert(self):
        store = FakeStore(_sent(20, n=5))
        provider = FakeProvider([_slot(14, 2)])
        channel = FakeChannel()
        report = await _run(store, provider, channel)
        assert report.success is False
        assert report.status == "Failed"
        assert report.result.local_count == 5
        assert report.result.external_count == 2
        assert len(channel.posted) == 1
        assert channel.posted[0].title == "Mandrill API (EU) status: Failed"
        assert channel.posted[0].channel == "#release-mgmt"
        assert report.notification.status is DeliveryStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_timeout_override(self):
        store = FakeStore(_sent(20, n=5))
        provider = FakeProvider([_slot(14, 2)])
        report = await _run(store, provider, FakeChannel(), timeout=30)
        assert report.success is True
        assert report.timeout_minutes == 30

    @pytest.mark.asyncio
    async def test_queries_use_utc_day_window(self):
        store, provider = FakeStore(), FakeProvider()
        report = await _run(store, provider)
        _, _, start, end = store.queries[0]
        assert start == datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert end.date() == start.date()
        assert provider.calls[0] == (TO, start, end)
        assert report.window_start == start

    @pytest.mark.asyncio
    async def test_failure_without_channel_is_skipped(self):
        store = FakeStore(_sent(20, n=5))
        provider = FakeProvider([_slot(14, 2)])
        report = await _run(store, provider, channel=None)
        assert report.success is False
        assert report.notification.status is DeliveryStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_channel_failure_keeps_verdict(self):
        store = FakeStore(_sent(20, n=5))
        provider = FakeProvider([_slot(14, 2)])
        channel = FakeChannel(error=NotificationError("slack", "boom"))
        report = await _run(store, provider, channel)
        assert report.success is False
        assert report.notification.status is DeliveryStatus.FAILED
        assert "boom" in report.notification.error_message

    @pytest.mark.asyncio
    async def test_report_diagnostics(self):
        store = FakeStore(_sent(20, n=5))
        provider = FakeProvider([_slot(14, 2)])
        data = (await _run(store, provider, FakeChannel())).to_dict()
        assert data["status"] == "Failed"
        assert data["diagnostics"]["local_count"] == 5
        assert data["diagnostics"]["external_count"] == 2
        assert data["diagnostics"]["minutes_since_last_sent"] == 20
        assert data["diagnostics"]["local_buckets"] == [{"hour": 14, "count": 5}]
        assert data["notification"]["status"] == "delivered"


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Upstream failures
# ═══════════════════════════════════════════════════════════════════════════

class TestUpstreamFailures:

    @pytest.mark.asyncio
    async def test_store_failure_fails_check(self):
        store = FakeStore(error=UpstreamQueryError("delivery_store", "down"))
        channel = FakeChannel()
        with pytest.raises(UpstreamQueryError):
            await _run(store, FakeProvider(), channel)
        assert channel.posted == []

    @pytest.mark.asyncio
    async def test_provider_failure_fails_check(self):
        provider = FakeProvider(error=UpstreamQueryError("mandrill", "HTTP 500"))
        with pytest.raises(UpstreamQueryError) as exc_info:
            await _run(FakeStore(_sent(1)), provider)
        assert exc_info.value.upstream == "mandrill"

    @pytest.mark.asyncio
    async def test_provider_fetch_finishes_when_store_fails(self):
        finished = []

        class SlowProvider(FakeProvider):
            async def search_sent_in_range(self, recipient, start, end):
                await asyncio.sleep(0.01)
                finished.append(recipient)
                return []

        store = FakeStore(error=UpstreamQueryError("delivery_store", "down"))
        with pytest.raises(UpstreamQueryError) as exc_info:
            await _run(store, SlowProvider())
        assert exc_info.value.upstream == "delivery_store"
        assert finished == [TO]

    @pytest.mark.asyncio
    async def test_store_failure_reported_first_when_both_fail(self):
        store = FakeStore(error=UpstreamQueryError("delivery_store", "down"))
        provider = FakeProvider(error=UpstreamQueryError("mandrill", "HTTP 500"))
        with pytest.raises(UpstreamQueryError) as exc_info:
            await _run(store, provider)
        assert exc_info.value.upstream == "delivery_store"
        assert len(provider.calls) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: log_send
# ═══════════════════════════════════════════════════════════════════════════

class TestLogSend:

    @pytest.mark.asyncio
    async def test_appends_one_record(self):
        store = FakeStore()
        record = await log_send(TO, REGION, config=_config(), store=store, now=NOW)
        assert store.appended == [record]
        assert record.sent_at == NOW
        assert store.queries == []

    @pytest.mark.asyncio
    async def test_requires_parameters(self):
        store = FakeStore()
        with pytest.raises(ValidationError):
            await log_send(TO, None, config=_config(), store=store)
        assert store.appended == []

    @pytest.mark.asyncio
    async def test_requires_connection_string(self):
        with pytest.raises(ConfigurationError):
            await log_send(TO, REGION, config=_config(database_url=None), store=FakeStore())

    @pytest.mark.asyncio
    async def test_does_not_need_provider_key(self):
        store = FakeStore()
        await log_send(TO, REGION, config=_config(mandrill_api_key=None), store=store)
        assert len(store.appended) == 1
