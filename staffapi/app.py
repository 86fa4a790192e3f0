from __future__ import annotations

import os
import socket
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from staffapi.api.error_handling import ErrorTranslator, register_exception_handlers
from staffapi.api.pipeline import CORRELATION_HEADER, build_pipeline
from staffapi.api.routes import auth_router, employees_router
from staffapi.config import Settings
from staffapi.logging import configure_logging, get_logger
from staffapi.service.health import HealthStatus, run_health_checks
from staffapi.service.runtime import Runtime

logger = get_logger(__name__)

__version__ = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log service start and stop."""
    settings: Settings = app.state.runtime.settings
    logger.info(
        "service_starting",
        app_name=settings.app_name,
        app_env=settings.app_env,
        version=__version__,
    )
    yield
    logger.info("service_stopped", app_name=settings.app_name)


def _banner(settings: Settings) -> str:
    return (
        f"{settings.app_name} v{__version__}\n"
        f"Environment: {settings.app_env}\n"
        "Documentation: /swagger\n"
        "Health: /health\n"
        "Login: POST /api/auth/login\n"
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build a fully wired application.

    Settings are read from the environment when not given. Every app owns
    its own Runtime, so tests can build isolated instances side by side.
    """
    settings = settings or Settings.from_env()
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.log_json,
        development_mode=settings.log_dev_mode,
    )
    runtime = Runtime(settings)

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Employee records service with bearer-token authentication.",
        docs_url="/swagger",
        openapi_url="/swagger/v1/swagger.json",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    register_exception_handlers(app)
    app.include_router(auth_router)
    app.include_router(employees_router)

    @app.get("/", response_class=PlainTextResponse, tags=["operations"])
    async def root() -> str:
        return _banner(settings)

    @app.get("/info", tags=["operations"])
    async def info():
        return {
            "version": __version__,
            "environment": settings.app_env,
            "machineName": socket.gethostname(),
            "processId": os.getpid(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health", tags=["operations"])
    async def health(request: Request):
        rt: Runtime = request.app.state.runtime
        report = await run_health_checks(
            rt.health_checks, rt.settings.health_check_timeout_seconds
        )
        status_code = 503 if report.status is HealthStatus.UNHEALTHY else 200
        return JSONResponse(status_code=status_code, content=report.to_dict())

    pipeline = build_pipeline(
        translator=ErrorTranslator(settings),
        audit=runtime.audit,
        validator=runtime.validator,
        enable_hsts=settings.enable_hsts,
    )
    app.middleware("http")(pipeline.dispatch)

    # Added last so it wraps the pipeline and answers preflight requests itself
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", CORRELATION_HEADER],
        expose_headers=[CORRELATION_HEADER],
        max_age=3600,
    )
    logger.info("app_created", app_env=settings.app_env, origins=settings.allowed_origins)
    return app
