"""
delivery_store.py — The local delivery log.

Capabilities used by the monitor:
    append(record)                              single INSERT, one transaction
    query_range(recipient, region, start, end)  newest first
    aggregate_by_hour(recipient, region, start, end)

Timestamps are written and compared as naive UTC so SQLite (tests) and
PostgreSQL behave the same. Any SQLAlchemy failure becomes an
UpstreamQueryError: a broken query must never look like an idle day.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sendwatch.core.errors import UpstreamQueryError
from sendwatch.monitor.aggregator import aggregate_by_hour, as_utc
from sendwatch.monitor.models import DeliveryRecord, HourBucket
from sendwatch.storage.tables import EmailDelivery

logger = logging.getLogger(__name__)

UPSTREAM = "delivery_store"


class DeliveryStore(Protocol):
    async def append(self, record: DeliveryRecord) -> DeliveryRecord: ...

    async def query_range(
        self, recipient: str, region: str, start: datetime, end: datetime,
    ) -> List[DeliveryRecord]: ...


def to_naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _from_row(row: EmailDelivery) -> DeliveryRecord:
    return DeliveryRecord(
        recipient=row.recipient,
        region=row.region,
        sent_at=row.sent_at.replace(tzinfo=timezone.utc),
    )


class SqlDeliveryStore:
    """DeliveryStore backed by the `email_deliveries` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(self, record: DeliveryRecord) -> DeliveryRecord:
        row = EmailDelivery(
            recipient=record.recipient,
            region=record.region,
            sent_at=to_naive_utc(record.sent_at),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as exc:
            logger.error("Unable to save email entry: %s", exc)
            raise UpstreamQueryError(UPSTREAM, f"insert failed: {exc}") from exc

        logger.debug(
            "Logged delivery to %s (%s)", record.recipient, record.region,
            extra={"recipient": record.recipient, "region": record.region},
        )
        return record

    async def query_range(
        self,
        recipient: str,
        region: str,
        start: datetime,
        end: datetime,
    ) -> List[DeliveryRecord]:
        stmt = (
            select(EmailDelivery)
            .where(
                EmailDelivery.recipient == recipient,
                EmailDelivery.region == region,
                EmailDelivery.sent_at >= to_naive_utc(start),
                EmailDelivery.sent_at <= to_naive_utc(end),
            )
            .order_by(EmailDelivery.sent_at.desc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Unable to retrieve email entries from database: %s", exc)
            raise UpstreamQueryError(UPSTREAM, f"range query failed: {exc}") from exc

        return [_from_row(row) for row in rows]

    async def aggregate_by_hour(
        self,
        recipient: str,
        region: str,
        start: datetime,
        end: datetime,
    ) -> List[HourBucket]:
        records = await self.query_range(recipient, region, start, end)
        return aggregate_by_hour(
            records,
            timestamp_of=lambda r: r.sent_at,
            window=(start, end),
        )
