"""
aggregator.py — Hourly bucketing of send activity.

Both sources are reduced to the same shape before comparison:

    records ──► [HourBucket(hour, count, last_seen), ...]   newest first

Ordering is by the newest underlying timestamp in each bucket, NOT by
the hour number. The caller needs "most recent calendar hour with
activity", and hour-of-day numbers stop being monotonic as soon as a
window crosses midnight.

All hours are taken on the UTC clock so local and provider data line up.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from sendwatch.monitor.models import HourBucket

logger = logging.getLogger(__name__)

T = TypeVar("T")

Window = Tuple[datetime, datetime]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window(now: Optional[datetime] = None) -> Window:
    """[start of day, end of day] in UTC for the day containing `now`."""
    current = as_utc(now or datetime.now(timezone.utc))
    start = datetime.combine(current.date(), time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def aggregate_by_hour(
    records: Iterable[T],
    *,
    timestamp_of: Callable[[T], Optional[datetime]],
    weight_of: Optional[Callable[[T], int]] = None,
    window: Optional[Window] = None,
) -> List[HourBucket]:
    """
    Group records by UTC hour-of-day and count them.

    Parameters
    ----------
    records : iterable
        Raw items from either source.
    timestamp_of : callable
        Extracts the timestamp; items where it returns None are skipped.
    weight_of : callable, optional
        How much an item contributes to its hour (default 1). Provider
        time-series slots carry their own sent count.
    window : (start, end), optional
        Items outside the inclusive window are dropped.

    Returns
    -------
    list[HourBucket]
        One bucket per hour seen, most recent first. An hour whose total
        weight is zero still yields a bucket.
    """
    counts: Dict[int, int] = {}
    newest: Dict[int, datetime] = {}
    skipped = 0

    for record in records:
        ts = timestamp_of(record)
        if ts is None:
            skipped += 1
            continue
        ts = as_utc(ts)
        if window is not None and not (window[0] <= ts <= window[1]):
            continue

        hour = ts.hour
        counts[hour] = counts.get(hour, 0) + (weight_of(record) if weight_of else 1)
        if hour not in newest or ts > newest[hour]:
            newest[hour] = ts

    if skipped:
        logger.debug("Skipped %d records without a timestamp", skipped)

    buckets = [
        HourBucket(hour=hour, count=max(count, 0), last_seen=newest[hour])
        for hour, count in counts.items()
    ]
    buckets.sort(key=lambda b: b.last_seen, reverse=True)
    return buckets
