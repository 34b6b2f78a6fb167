"""
Core package — cross-cutting concerns.

Modules:
    config    — environment variables & per-run configuration
    logging   — structured JSON logging
    errors    — exception hierarchy & handlers
    health    — health check aggregation
    database  — async SQLAlchemy engine / sessions
"""
