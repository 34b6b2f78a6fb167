"""
sendwatch — detects silently stalled outbound email.

Sub-packages:
    core/       — config, logging, errors, database, health
    monitor/    — aggregation, reconciliation, alert formatting, entry points
    storage/    — delivery log and reputation snapshots (SQLAlchemy)
    providers/  — Mandrill send-log client
    channels/   — Slack webhook alert channel
    api/        — HTTP routes for the scheduler
"""

__version__ = "1.0.0"
