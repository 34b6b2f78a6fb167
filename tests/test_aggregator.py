"""
test_aggregator.py — Tests for hourly bucketing of send activity.

Covers:
    • Counting per UTC hour-of-day
    • Most-recent-first ordering by timestamp, not by hour number
    • Weighted provider slots, zero-weight slots
    • Records without a timestamp are skipped
    • Day-window boundaries

Run with:
    pytest tests/test_aggregator.py -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sendwatch.monitor.aggregator import aggregate_by_hour, as_utc, day_window
from sendwatch.monitor.models import DeliveryRecord, ExternalSendEntry


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=timezone.utc)


def _record(ts) -> DeliveryRecord:
    return DeliveryRecord(recipient="ops@example.com", region="eu", sent_at=ts)


def _local(records):
    return aggregate_by_hour(records, timestamp_of=lambda r: r.sent_at)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Counting
# ═══════════════════════════════════════════════════════════════════════════

class TestCounting:

    def test_empty_input(self):
        assert _local([]) == []

    def test_groups_by_hour(self):
        buckets = _local([
            _record(_utc(19, 14, 1)),
            _record(_utc(19, 14, 30)),
            _record(_utc(19, 14, 59)),
            _record(_utc(19, 9, 5)),
        ])
        counts = {b.hour: b.count for b in buckets}
        assert counts == {14: 3, 9: 1}

    def test_weighted_provider_slots(self):
        entries = [
            ExternalSendEntry(timestamp=_utc(19, 10), sent=4),
            ExternalSendEntry(timestamp=_utc(19, 11), sent=7),
        ]
        buckets = aggregate_by_hour(
            entries, timestamp_of=lambda e: e.timestamp, weight_of=lambda e: e.sent,
        )
        assert [(b.hour, b.count) for b in buckets] == [(11, 7), (10, 4)]

    def test_zero_weight_slot_still_forms_bucket(self):
        entries = [ExternalSendEntry(timestamp=_utc(19, 8), sent=0)]
        buckets = aggregate_by_hour(
            entries, timestamp_of=lambda e: e.timestamp, weight_of=lambda e: e.sent,
        )
        assert len(buckets) == 1
        assert buckets[0].hour == 8
        assert buckets[0].count == 0

    def test_missing_timestamp_skipped(self):
        entries = [
            ExternalSendEntry(timestamp=None, sent=3),
            ExternalSendEntry(timestamp=_utc(19, 6), sent=2),
        ]
        buckets = aggregate_by_hour(
            entries, timestamp_of=lambda e: e.timestamp, weight_of=lambda e: e.sent,
        )
        assert [(b.hour, b.count) for b in buckets] == [(6, 2)]

    def test_hours_taken_on_utc_clock(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        buckets = _local([_record(datetime(2026, 10, 19, 20, 0, tzinfo=ist))])
        assert buckets[0].hour == 14

    def test_naive_timestamps_treated_as_utc(self):
        buckets = _local([_record(datetime(2026, 10, 19, 7, 45))])
        assert buckets[0].hour == 7
        assert buckets[0].last_seen.tzinfo == timezone.utc


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Ordering
# ═══════════════════════════════════════════════════════════════════════════

class TestOrdering:

    def test_most_recent_first(self):
        buckets = _local([
            _record(_utc(19, 3)),
            _record(_utc(19, 15)),
            _record(_utc(19, 9)),
        ])
        assert [b.hour for b in buckets] == [15, 9, 3]

    def test_orders_by_timestamp_not_hour_number(self):
        # 23:00 yesterday is older than 01:00 today
        buckets = _local([
            _record(_utc(18, 23, 10)),
            _record(_utc(19, 1, 5)),
        ])
        assert [b.hour for b in buckets] == [1, 23]

    def test_last_seen_is_newest_in_bucket(self):
        buckets = _local([
            _record(_utc(19, 12, 5)),
            _record(_utc(19, 12, 50)),
            _record(_utc(19, 12, 20)),
        ])
        assert buckets[0].last_seen == _utc(19, 12, 50)


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Day window
# ═══════════════════════════════════════════════════════════════════════════

class TestDayWindow:

    def test_window_spans_utc_day(self):
        start, end = day_window(_utc(19, 14, 37))
        assert start == _utc(19, 0)
        assert end == datetime(2026, 10, 19, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_window_anchored_to_utc_for_offset_input(self):
        # 02:00 in UTC+5:30 is still the previous UTC day
        ist = timezone(timedelta(hours=5, minutes=30))
        start, _ = day_window(datetime(2026, 10, 19, 2, 0, tzinfo=ist))
        assert start == _utc(18, 0)

    def test_records_outside_window_dropped(self):
        window = day_window(_utc(19, 12))
        buckets = aggregate_by_hour(
            [_record(_utc(18, 22)), _record(_utc(19, 10)), _record(_utc(20, 0))],
            timestamp_of=lambda r: r.sent_at,
            window=window,
        )
        assert [(b.hour, b.count) for b in buckets] == [(10, 1)]

    def test_as_utc_converts_aware(self):
        est = timezone(timedelta(hours=-5))
        assert as_utc(datetime(2026, 10, 19, 9, 0, tzinfo=est)) == _utc(19, 14)
