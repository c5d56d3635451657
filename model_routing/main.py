"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Initialize database engine and session factory (unless a store was injected)
4. Build the routing engine, load the pricing catalog, start the
   unresolved-model flusher (and optionally sync local models)

Shutdown order:
1. Stop the routing engine (final unresolved-model flush)
2. Close DB connection pool
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from model_routing.api.router import api_v1_router, public_router
from model_routing.config import Settings, get_settings
from model_routing.database import close_db, get_session_factory, init_db
from model_routing.routing.engine import build_engine
from model_routing.routing.sql_store import SqlRoutingStore
from model_routing.routing.store import RoutingStore
from model_routing.telemetry.logging import RequestIdMiddleware, configure_logging
from model_routing.telemetry.metrics import get_metrics

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings

    # Configure structured logging first (before any log calls)
    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    log.info(
        "app.starting",
        environment=settings.environment,
        db_url=settings.database_url.split("@")[-1],
    )

    store: RoutingStore | None = app.state.store
    if store is None:
        init_db(settings)
        store = SqlRoutingStore(get_session_factory())
        app.state.uses_database = True

    engine = build_engine(store, settings)
    await engine.start(sync_catalog=settings.catalog_sync_on_startup)
    app.state.engine = engine

    log.info("app.ready")
    yield

    await engine.stop()
    if app.state.uses_database:
        await close_db()
    log.info("app.shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    store: RoutingStore | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Defaults to get_settings()
        store: Persistence for the routing engine. Defaults to PostgreSQL
            via SqlRoutingStore, created during startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Model Routing API",
        description=(
            "Multi-tenant model routing: per-user tier assignments over "
            "connected providers and a live model pricing catalog."
        ),
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.uses_database = False
    app.state.engine = None

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    # In dev mode, allow all origins for easier development
    cors_origins = ["*"] if settings.is_dev else settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.is_prod,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Unique request ID for log correlation
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Any:
        """Prometheus metrics endpoint."""
        return get_metrics()

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
