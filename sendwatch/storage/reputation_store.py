"""
reputation_store.py — Baseline snapshots for the reputation check.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sendwatch.core.errors import UpstreamQueryError
from sendwatch.monitor.models import AccountStatus
from sendwatch.storage.delivery_store import to_naive_utc
from sendwatch.storage.tables import ReputationSnapshot

logger = logging.getLogger(__name__)

UPSTREAM = "reputation_store"


class ReputationStore(Protocol):
    async def latest(self) -> Optional[AccountStatus]: ...

    async def save(self, status: AccountStatus, recorded_at: datetime) -> None: ...


class SqlReputationStore:
    """ReputationStore backed by the `reputation_snapshots` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def latest(self) -> Optional[AccountStatus]:
        stmt = (
            select(ReputationSnapshot)
            .order_by(ReputationSnapshot.recorded_at.desc(), ReputationSnapshot.id.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(UPSTREAM, f"snapshot query failed: {exc}") from exc

        if row is None:
            return None
        return AccountStatus(reputation=row.reputation, hourly_quota=row.hourly_quota)

    async def save(self, status: AccountStatus, recorded_at: datetime) -> None:
        row = ReputationSnapshot(
            reputation=status.reputation,
            hourly_quota=status.hourly_quota,
            recorded_at=to_naive_utc(recorded_at),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(UPSTREAM, f"snapshot insert failed: {exc}") from exc
        logger.info("Stored reputation baseline %s", status.to_dict())
