"""
FastAPI application entry point.

Run with:
    uvicorn sendwatch.main:app --port 8000

The scheduler then calls, e.g. every ten minutes:
    POST /api/v1/checks/timeout?to=ops@example.com&region=eu
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from sendwatch.core.config import Settings, get_settings
from sendwatch.core.database import build_engine, build_session_factory, close_db, init_db
from sendwatch.core.errors import register_error_handlers
from sendwatch.core.health import HealthStatus, run_health_check
from sendwatch.core.logging_config import get_logger, setup_logging
from sendwatch.core.middleware import RequestLoggingMiddleware

from sendwatch.api.v1.checks import router as checks_router

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the engine on startup, dispose it on shutdown."""
        logger.info(
            "Starting %s v%s [%s]",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        )
        engine = None
        if settings.DATABASE_URL:
            engine = build_engine(
                settings.DATABASE_URL,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                echo=settings.DATABASE_ECHO,
            )
            if settings.is_development:
                await init_db(engine)
            app.state.session_factory = build_session_factory(engine)
        else:
            logger.warning("DATABASE_URL not set — check endpoints will refuse to run")
        app.state.engine = engine
        yield
        if engine is not None:
            await close_db(engine)
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Detects silently stalled outbound email by reconciling the local "
            "delivery log with Mandrill's send log, and alerts Slack on outage."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = None
    app.state.session_factory = None

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app, settings)
    app.include_router(checks_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": "/docs",
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Deep health probe — checks all subsystems."""
        report = await run_health_check(settings, app.state.engine)
        return report.to_dict()

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    @app.get("/health/ready", tags=["health"])
    async def readiness():
        report = await run_health_check(settings, app.state.engine)
        if report.status is HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


app = create_app()
