"""storage — SQLAlchemy-backed delivery log and reputation snapshots."""
