"""
Alembic migrations for the Sports Arena schema.

The target database comes from DATABASE_URL (see sports_arena.config),
falling back to ``sqlalchemy.url`` in alembic.ini and then to the default
PostgreSQL URL. Online migrations run on the async engine.
"""

import asyncio
from logging.config import fileConfig
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from sports_arena.config import config as arena_config
from sports_arena.db import DEFAULT_DATABASE_URL
from sports_arena.models import Base

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

target_metadata = Base.metadata

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def database_url() -> str:
    return (
        arena_config.database_url
        or alembic_config.get_main_option("sqlalchemy.url")
        or DEFAULT_DATABASE_URL
    )


def run_offline():
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def apply_migrations(connection: Connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        # SQLite cannot ALTER most constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_online():
    settings = alembic_config.get_section(alembic_config.config_ini_section) or {}
    settings["sqlalchemy.url"] = database_url()
    engine = async_engine_from_config(settings, prefix="sqlalchemy.", poolclass=pool.NullPool)

    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
