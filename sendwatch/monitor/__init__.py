"""
monitor — Send-stall detection.

Sub-modules:
    aggregator      — raw records → hourly buckets (newest first)
    reconciliation  — buckets from both sources → verdict
    formatter       — verdict → alert payload (None on success)
    orchestrator    — run_timeout_check / log_send entry points
    reputation      — Mandrill reputation/quota regression check
    models          — data structures shared across the system
"""
