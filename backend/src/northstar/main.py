"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from northstar.adapters.inbound.rest.routers import (
    ai_router,
    health_router,
    metrics_router,
    providers_router,
)
from northstar.config import Settings, get_settings
from northstar.dependencies import configure_container, get_registry, shutdown_container
from northstar.shared.errors import register_exception_handlers
from northstar.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from northstar.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, json_logs=settings.is_production)

    registry = get_registry()
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        providers=registry.describe(),
    )
    if not registry.configured_ids():
        logger.warning("no_ai_provider_configured")

    yield

    await shutdown_container()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    settings = settings or get_settings()
    configure_container(settings=settings)

    app = FastAPI(
        title="NorthStar AI",
        description=(
            "AI provider routing and resilience layer for the NorthStar wellness "
            "platform: sentiment, insights, crisis checks, screening follow-ups "
            "and coaching replies served across multiple model providers."
        ),
        version="0.1.0",
        debug=settings.app_debug,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings in app state for lifecycle access
    app.state.settings = settings

    # ── Middleware (order matters: last added = outermost) ───
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    if settings.prometheus_enabled:
        app.include_router(metrics_router, prefix=api_v1)
    app.include_router(ai_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    return app
