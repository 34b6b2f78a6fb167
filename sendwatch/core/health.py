"""
Health check aggregation — deep health probe for all subsystems.

Checks:
    • Database connectivity (delivery log)
    • Mandrill credentials configured
    • Slack webhook configured

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - The scheduler, before it starts firing checks
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from sendwatch.core.config import Settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = ""
    environment: str = ""
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


async def check_database(engine: Optional[AsyncEngine]) -> ComponentHealth:
    """Round-trip a trivial query through the connection pool."""
    comp = ComponentHealth(name="database")
    start = time.monotonic()
    if engine is None:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "DATABASE_URL not configured"
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            comp.message = "Connection pool available"
            comp.details = {"dialect": engine.dialect.name}
        except SQLAlchemyError as e:
            comp.status = HealthStatus.UNHEALTHY
            comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_mandrill(settings: Settings) -> ComponentHealth:
    comp = ComponentHealth(name="mandrill")
    if settings.MANDRILL_API_KEY:
        comp.message = "API key configured"
        comp.details = {"base_url": settings.MANDRILL_BASE_URL}
    else:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "MANDRILL_API_KEY not configured"
    return comp


def check_slack(settings: Settings) -> ComponentHealth:
    comp = ComponentHealth(name="slack")
    if settings.SLACK_WEBHOOK_URL:
        comp.message = "Webhook configured"
        comp.details = {"channel": settings.SLACK_CHANNEL}
    else:
        # Checks still run; failures just go unannounced
        comp.status = HealthStatus.DEGRADED
        comp.message = "SLACK_WEBHOOK_URL not configured — alerts disabled"
    return comp


async def run_health_check(
    settings: Settings,
    engine: Optional[AsyncEngine],
) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    report.components.append(await check_database(engine))
    report.components.append(check_mandrill(settings))
    report.components.append(check_slack(settings))

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
