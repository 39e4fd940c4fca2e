"""
Alembic Environment Configuration

Migrations for the account store: users, sessions, login tokens, OAuth
states and event ownership.

Design Decisions:
- The database URL always comes from settings.DATABASE_URL, the same value
  the application engine uses (sqlite+aiosqlite by default), so migrations
  and the running service never point at different files
- Online migrations run through the async engine; a plain sqlite:// URL
  (e.g. from a one-off DATABASE_URL) is upgraded to the aiosqlite driver
- SQLite cannot ALTER most columns in place, so autogenerated operations
  are rendered in batch mode
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from agenda.core.setting import settings
from sqlmodel import SQLModel
from agenda.db import models  # noqa: F401  registers tables on SQLModel.metadata

config = context.config

SYNC_SQLITE_PREFIX = "sqlite://"
ASYNC_SQLITE_PREFIX = "sqlite+aiosqlite://"


def async_database_url(url: str) -> str:
    """Account store URL with an async driver (sqlite:// -> sqlite+aiosqlite://)."""
    if url.startswith(SYNC_SQLITE_PREFIX):
        return ASYNC_SQLITE_PREFIX + url[len(SYNC_SQLITE_PREFIX):]
    return url


database_url = async_database_url(settings.DATABASE_URL)
config.set_main_option("sqlalchemy.url", database_url)
is_sqlite = database_url.startswith(ASYNC_SQLITE_PREFIX)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL for the configured database without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=is_sqlite,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=is_sqlite,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
