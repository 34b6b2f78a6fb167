"""
ORM tables for the delivery log and account-status snapshots.

═══════════════════════════════════════════════════════════════════════════
DATABASE SCHEMA
═══════════════════════════════════════════════════════════════════════════

Table: email_deliveries
─────────────────────────────────────────────────────────────────────────────
| Column     | Type         | Description                                |
|------------|--------------|--------------------------------------------|
| id         | SERIAL PK    | Auto-increment primary key                 |
| recipient  | VARCHAR(320) | "to" address of the logged email           |
| region     | VARCHAR(64)  | Sending region (eu, us, ...)               |
| sent_at    | TIMESTAMP    | Send time, naive UTC                       |
─────────────────────────────────────────────────────────────────────────────

Rows are only ever inserted, never updated.
INDEX (recipient, region, sent_at) serves the day-window query.

Table: reputation_snapshots
─────────────────────────────────────────────────────────────────────────────
| Column       | Type      | Description                                 |
|--------------|-----------|---------------------------------------------|
| id           | SERIAL PK | Auto-increment primary key                  |
| reputation   | FLOAT     | Mandrill sender reputation (0-100)          |
| hourly_quota | FLOAT     | Mandrill hourly sending quota               |
| recorded_at  | TIMESTAMP | Snapshot time, naive UTC                    |
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sendwatch.core.database import Base


class EmailDelivery(Base):
    __tablename__ = "email_deliveries"
    __table_args__ = (
        Index("ix_email_deliveries_lookup", "recipient", "region", "sent_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(320), nullable=False)
    region: Mapped[str] = mapped_column(String(64), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)


class ReputationSnapshot(Base):
    __tablename__ = "reputation_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reputation: Mapped[float] = mapped_column(Float, nullable=False)
    hourly_quota: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False, index=True)
