"""
Async engine and session factory for the routing tables.

SqlRoutingStore is the only consumer: it opens one short session per store
call from get_session_factory(), so nothing here hands sessions to request
handlers. The readiness probe uses ping().

All ORM models inherit from Base so Alembic sees the four routing tables
through a single metadata object.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from model_routing.config import Settings, get_settings

log = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Shared metadata for model_pricing, user_providers, tier_assignments
    and unresolved_models."""

    type_annotation_map: dict[Any, Any] = {}


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _redacted(url: str) -> str:
    return url.split("@")[-1]


def _engine_options(settings: Settings, for_test: bool) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.db_echo_sql}
    if for_test:
        # Each test gets fresh connections; nothing pooled across event loops
        options["poolclass"] = NullPool
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
    )
    return options


def init_db(settings: Settings | None = None, *, for_test: bool = False) -> None:
    """Create the engine and session factory. Called once from the lifespan."""
    global _engine, _session_factory
    cfg = settings or get_settings()
    _engine = create_async_engine(cfg.database_url, **_engine_options(cfg, for_test))
    # Store methods return plain dataclasses, so rows never need refreshing
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
    log.info("database.initialized", url=_redacted(cfg.database_url), test_pool=for_test)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    log.info("database.closed")


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def ping() -> None:
    """Round-trip a trivial query. Raises if the database is unreachable."""
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))
