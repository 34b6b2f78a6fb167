"""
formatter.py — Turn check verdicts into alert payloads.

Pure functions: nothing is sent from here. A successful verdict yields
None, which means no alert call is made at all.

Message layout (Slack attachment, colour "danger"):

    Mandrill test run completed.
    ┌───────────────────────────────────────────┐
    │ Mandrill API (EU) status: Failed          │
    │ Email not sent after 10 minutes.          │
    │ Email count: 5                            │
    │ Mandrill count: 2                         │
    └───────────────────────────────────────────┘
"""

from __future__ import annotations

from typing import Optional

from sendwatch.monitor.models import AccountStatus, AlertPayload, ReconciliationResult

TIMEOUT_PRETEXT = "Mandrill test run completed."
REPUTATION_PRETEXT = "Mandrill reputation/quota decreased."


def format_timeout_alert(
    result: ReconciliationResult,
    region: str,
    timeout_minutes: int,
    *,
    slack_channel: Optional[str] = None,
) -> Optional[AlertPayload]:
    if result.success:
        return None

    return AlertPayload(
        title=f"Mandrill API ({region.upper()}) status: Failed",
        body=(
            f"Email not sent after {timeout_minutes} minutes.\n"
            f"Email count: {result.local_count}\n"
            f"Mandrill count: {result.external_count}"
        ),
        pretext=TIMEOUT_PRETEXT,
        channel=slack_channel,
    )


def format_reputation_alert(
    previous: AccountStatus,
    current: AccountStatus,
    *,
    slack_channel: Optional[str] = None,
) -> Optional[AlertPayload]:
    """Alert when reputation or hourly quota dropped below the baseline."""
    if not current.regressed_from(previous):
        return None

    return AlertPayload(
        title="WARNING: Mandrill reputation/quota decreased",
        body=(
            f"Reputation (prev/new): {previous.reputation:g}/{current.reputation:g}\n"
            f"Hourly quota (prev/new): {previous.hourly_quota:g}/{current.hourly_quota:g}"
        ),
        pretext=REPUTATION_PRETEXT,
        channel=slack_channel,
    )
