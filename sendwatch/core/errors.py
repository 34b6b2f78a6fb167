"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

Taxonomy:
    ConfigurationError  — connection string / API key missing (fatal)
    ValidationError     — recipient or region missing (fatal)
    UpstreamQueryError  — store or provider query failed (fails the check)
    NotificationError   — alert channel post failed (logged, verdict kept)

None of these are retried here; retry policy belongs to the scheduler.

Usage:
    from sendwatch.core.errors import UpstreamQueryError

    raise UpstreamQueryError("mandrill", "HTTP 500", status=500)
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from sendwatch.core.config import Settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SendWatchError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(SendWatchError):
    """Connection info or credentials missing (500)."""

    def __init__(self, message: str, *, setting: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else None,
        )


class ValidationError(SendWatchError):
    """Input validation failed (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class UpstreamQueryError(SendWatchError):
    """Delivery store or email provider query failed (502)."""

    def __init__(self, upstream: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Upstream '{upstream}' query failed: {message}",
            status_code=502,
            error_code="UPSTREAM_QUERY_ERROR",
            details={"upstream": upstream, **details},
        )
        self.upstream = upstream


class NotificationError(SendWatchError):
    """Alert could not be posted to the channel (502)."""

    def __init__(self, channel: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Notification via {channel} failed: {message}",
            status_code=502,
            error_code="NOTIFICATION_ERROR",
            details={"channel": channel, **details},
        )
        self.channel = channel


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    include_request: bool = False,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request is not None and include_request:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI, settings: "Settings") -> None:
    """Register all exception handlers on the FastAPI app."""
    include_request = not settings.is_production

    @app.exception_handler(SendWatchError)
    async def handle_sendwatch_error(request: Request, exc: SendWatchError):
        logger.error(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request, include_request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if settings.DEBUG else None
        )
        return _build_error_response(
            500, "INTERNAL_ERROR", message, details, request, include_request,
        )
