"""
Request middleware — correlation IDs and per-check log context.

Every request gets an X-Request-ID (the scheduler may send its own so a
run can be traced across both systems). Requests to the monitor routes
also carry their target: the `to` and `region` query parameters are bound
into the request log context, so each line logged while a check runs
names the recipient/region pair it belongs to.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from sendwatch.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

MONITOR_PREFIXES = ("/api/v1/checks/", "/api/v1/emails/")
_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health")


def check_target(request: Request) -> Dict[str, str]:
    """recipient/region of a monitor request; empty for anything else."""
    if not request.url.path.startswith(MONITOR_PREFIXES):
        return {}
    target = {}
    if request.query_params.get("to"):
        target["recipient"] = request.query_params["to"]
    if request.query_params.get("region"):
        target["region"] = request.query_params["region"]
    return target


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind request id and check target, then log the check's HTTP outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:16])
        path = request.url.path
        target = check_target(request)

        set_request_context(request_id=request_id, endpoint=path, **target)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s crashed", request.method, path,
                extra={"endpoint": path, "status_code": 500, **target},
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

        if not path.startswith(_QUIET_PREFIXES):
            # 422 is a caller mistake, 5xx means the check itself could not run
            if response.status_code >= 500:
                level = logging.ERROR
            elif response.status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO
            logger.log(
                level,
                "%s %s%s → %d (%.1fms)",
                request.method, path, _describe(target), response.status_code, duration_ms,
                extra={
                    "endpoint": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    **target,
                },
            )

        set_request_context()
        return response


def _describe(target: Dict[str, str]) -> str:
    if not target:
        return ""
    return " [" + " ".join(f"{k}={v}" for k, v in target.items()) + "]"
