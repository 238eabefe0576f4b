"""
Alembic Migration Environment
===============================

What:  Runs SmartBrief migrations with the async engine.
How:   The URL comes from Settings (DATABASE_URL), never from alembic.ini, so
       the app and its migrations always target the same database.
Usage: `cd backend && alembic upgrade head` (add `--sql` for an offline script)
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

import smartbrief.models  # noqa: F401  (registers every table on Base.metadata)
from smartbrief.config import settings
from smartbrief.database import Base

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)
alembic_config.set_main_option("sqlalchemy.url", settings.database_url)

MIGRATION_OPTIONS = {"target_metadata": Base.metadata, "compare_type": True}


def emit_sql() -> None:
    context.configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **MIGRATION_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    context.configure(connection=connection, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


async def migrate_database() -> None:
    # NullPool: a migration run opens exactly one connection
    migration_engine = async_engine_from_config(
        alembic_config.get_section(alembic_config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with migration_engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await migration_engine.dispose()


if context.is_offline_mode():
    emit_sql()
else:
    asyncio.run(migrate_database())
