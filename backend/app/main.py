"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --port 8000

Or:
    service-layout
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import Settings, get_settings, instance_id, service_name, service_version
from backend.app.core.errors import register_error_handlers
from backend.app.core.health import HealthStatus, liveness, run_health_check
from backend.app.core.logging_config import get_logger, setup_logging
from backend.app.core.middleware import RequestLoggingMiddleware
from backend.app.data.data import Cleanup, Data, DataConfig, new_data

logger = get_logger(__name__)

DataFactory = Callable[[DataConfig], Awaitable[Tuple[Data, Cleanup]]]


def create_app(
    settings: Optional[Settings] = None,
    *,
    data_factory: DataFactory = new_data,
) -> FastAPI:
    settings = settings or get_settings()
    name, version, node = service_name(), service_version(), instance_id()

    # ── Application lifespan (startup / shutdown) ──
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s] id=%s",
            name, version, settings.ENVIRONMENT, node,
        )
        # a construction failure aborts startup
        data, cleanup = await data_factory(settings.data_config())
        app.state.data = data
        try:
            yield
        finally:
            logger.info("Shutting down %s", name)
            await cleanup()
            app.state.data = None

    app = FastAPI(title=name, version=version, lifespan=lifespan)
    app.state.data = None

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app, debug=settings.DEBUG and not settings.is_production)

    # ── Health endpoints ──

    @app.get("/health", tags=["health"])
    async def health_check():
        """Liveness — always succeeds while the process is reachable."""
        return liveness()

    @app.get("/health/live", tags=["health"])
    async def live():
        return liveness()

    @app.get("/health/ready", tags=["health"])
    async def ready(request: Request):
        """Readiness — can we reach the database and Redis?"""
        report = await run_health_check(request.app.state.data, name, version)
        if report.status is HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


# ── Initialise logging ──
_settings = get_settings()
setup_logging(_settings.LOG_LEVEL, _settings.LOG_FORMAT)

app = create_app(_settings)


def run() -> None:
    uvicorn.run(app, host=_settings.HOST, port=_settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
