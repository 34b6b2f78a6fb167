"""
Database layer — async SQLAlchemy 2.0 (asyncpg in production).

Provides:
    • Async engine and session factory builders
    • Base model for ORM entities
    • Table creation / disposal helpers for the app lifespan

Nothing here is created at import time: the application lifespan builds
one engine from its settings and hands the session factory to the
stores that need it.

Usage:
    from sendwatch.core.database import build_engine, build_session_factory

    engine = build_engine(settings.DATABASE_URL)
    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        ...
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def build_engine(
    database_url: str,
    *,
    pool_size: Optional[int] = None,
    max_overflow: Optional[int] = None,
    echo: bool = False,
    **engine_kwargs: Any,
) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if not database_url.startswith("sqlite"):
        if pool_size is not None:
            engine_kwargs.setdefault("pool_size", pool_size)
        if max_overflow is not None:
            engine_kwargs.setdefault("max_overflow", max_overflow)
        engine_kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(database_url, echo=echo, **engine_kwargs)


# ── Session Factory ──
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Lifecycle ──
async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (dev/test only — use migrations in production)."""
    # Registers the ORM tables on Base.metadata
    from sendwatch.storage import tables  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine connections."""
    await engine.dispose()
    logger.info("Database connections closed")
