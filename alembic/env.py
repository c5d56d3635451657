"""Alembic environment for the routing schema.

The URL comes from the application settings unless overridden on the
command line:

    alembic -x db_url=postgresql+asyncpg://... upgrade head

Autogenerate only considers the routing tables, so running it against a
database shared with other services never proposes dropping their tables.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import model_routing.models  # noqa: F401 - registers routing tables with Base.metadata
from model_routing.config import get_settings
from model_routing.database import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
ROUTING_TABLES = frozenset(target_metadata.tables)


def _database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    return override or get_settings().database_url


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    if type_ == "table":
        return name in ROUTING_TABLES
    return True


config.set_main_option("sqlalchemy.url", _database_url())

_CONFIGURE_OPTIONS = {
    "target_metadata": target_metadata,
    "include_object": include_object,
    "compare_type": True,
    "compare_server_default": True,
}


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **_CONFIGURE_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
