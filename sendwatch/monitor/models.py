"""
models.py — Shared data structures for the send-stall monitor.

Defines:
    • DeliveryRecord       — one locally logged outbound email
    • ExternalSendEntry    — one slot of the provider's send time series
    • HourBucket           — per-hour activity count for one source
    • Outcome              — why a reconciliation passed or failed
    • ReconciliationResult — verdict of a single timeout check
    • AccountStatus        — provider reputation + hourly quota
    • AlertPayload         — rendered alert ready for the Slack channel
    • DeliveryAttempt      — outcome of posting one alert
    • TimeoutCheckReport / ReputationCheckReport — what the entry points return

═══════════════════════════════════════════════════════════════════════════
TWO VIEWS OF THE SAME TRAFFIC
═══════════════════════════════════════════════════════════════════════════

    Source      Recorded by            Granularity
    ──────      ───────────            ───────────────────────────
    local       our own send path      one DeliveryRecord per email
    external    Mandrill               time-series slots with a sent count

Both are reduced to HourBucket sequences over the same UTC day window
before being compared.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Outcome(str, Enum):
    """Which branch of the reconciliation decided the verdict."""
    NO_ACTIVITY    = "no_activity"     # both sources empty for the day
    IDLE           = "idle"            # two consecutive silent hours
    MATCHED        = "matched"         # counts agree
    WITHIN_GRACE   = "within_grace"    # provider behind, but inside timeout
    STALLED        = "stalled"         # provider behind past the timeout
    EXTERNAL_AHEAD = "external_ahead"  # provider recorded more than we did


class DeliveryStatus(str, Enum):
    """Result of posting an alert to the channel."""
    DELIVERED = "delivered"
    FAILED    = "failed"
    SKIPPED   = "skipped"   # no webhook configured


# ═══════════════════════════════════════════════════════════════════════════
# Source records
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeliveryRecord:
    """A locally logged outbound email. `sent_at` is UTC."""
    recipient: str
    region: str
    sent_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.recipient,
            "region": self.region,
            "sent": self.sent_at.isoformat(),
        }


@dataclass(frozen=True)
class ExternalSendEntry:
    """One slot of the provider's search-time-series response."""
    timestamp: Optional[datetime]
    sent: int = 0


@dataclass(frozen=True)
class HourBucket:
    """
    Activity count for one hour of the day window.

    `last_seen` is the newest underlying timestamp folded into the bucket;
    it orders buckets most-recent-first.
    """
    hour: int
    count: int
    last_seen: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"hour": self.hour, "count": self.count}


# ═══════════════════════════════════════════════════════════════════════════
# Verdicts
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReconciliationResult:
    success: bool
    local_count: int
    external_count: int
    outcome: Outcome
    hour: Optional[int] = None
    last_sent_at: Optional[datetime] = None
    minutes_since_last_sent: Optional[int] = None
    passes: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "hour": self.hour,
            "local_count": self.local_count,
            "external_count": self.external_count,
            "last_sent_at": _iso(self.last_sent_at),
            "minutes_since_last_sent": self.minutes_since_last_sent,
            "passes": self.passes,
        }


@dataclass(frozen=True)
class AccountStatus:
    """Provider account health as reported by the users/info call."""
    reputation: float
    hourly_quota: float

    def regressed_from(self, baseline: "AccountStatus") -> bool:
        return (
            self.reputation < baseline.reputation
            or self.hourly_quota < baseline.hourly_quota
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"reputation": self.reputation, "hourly_quota": self.hourly_quota}


# ═══════════════════════════════════════════════════════════════════════════
# Alerting
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AlertPayload:
    """A single structured alert message."""
    title: str
    body: str
    pretext: str
    color: str = "danger"
    channel: Optional[str] = None

    def to_slack(self) -> Dict[str, Any]:
        """Render as a Slack attachment message."""
        attachment: Dict[str, Any] = {
            "fallback": self.pretext,
            "pretext": self.pretext,
            "color": self.color,
            "fields": [{"title": self.title, "value": self.body, "short": False}],
        }
        if self.channel:
            attachment["channel"] = self.channel
        return {"attachments": [attachment]}


@dataclass
class DeliveryAttempt:
    """Record of a single alert post."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    channel: str = "slack"
    status: DeliveryStatus = DeliveryStatus.SKIPPED
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "channel": self.channel,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": _iso(self.completed_at),
            "error_message": self.error_message,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TimeoutCheckReport:
    """Final outcome of one timeout check run."""
    recipient: str
    region: str
    timeout_minutes: int
    result: ReconciliationResult
    window_start: datetime
    window_end: datetime
    local_buckets: List[HourBucket] = field(default_factory=list)
    external_buckets: List[HourBucket] = field(default_factory=list)
    notification: Optional[DeliveryAttempt] = None

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def status(self) -> str:
        return "Success" if self.success else "Failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "success": self.success,
            "to": self.recipient,
            "region": self.region,
            "timeout_minutes": self.timeout_minutes,
            "window": {
                "from": self.window_start.isoformat(),
                "to": self.window_end.isoformat(),
            },
            "diagnostics": {
                **self.result.to_dict(),
                "local_buckets": [b.to_dict() for b in self.local_buckets],
                "external_buckets": [b.to_dict() for b in self.external_buckets],
            },
            "notification": (
                self.notification.to_dict() if self.notification else None
            ),
        }


@dataclass
class ReputationCheckReport:
    """Outcome of comparing the provider account status with its baseline."""
    previous: AccountStatus
    current: AccountStatus
    regressed: bool
    notification: Optional[DeliveryAttempt] = None

    @property
    def status(self) -> str:
        return "Failed" if self.regressed else "Success"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "regressed": self.regressed,
            "previous": self.previous.to_dict(),
            "current": self.current.to_dict(),
            "notification": (
                self.notification.to_dict() if self.notification else None
            ),
        }
