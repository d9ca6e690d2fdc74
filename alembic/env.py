"""Alembic migrations for the scheduling schema (Postgres or SQLite, async drivers).

The target database is ``-x db_url=...`` when given, else ``DATABASE_URL``
from the application settings.
"""

import asyncio
import os
import sys

# 'app' must be importable when alembic runs from another directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from app.core.config import settings
from app.core.database import Base
from app.models import Appointment  # noqa: F401  (package import registers every table)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url", settings.DATABASE_URL)


def configure(**kwargs) -> None:
    url = kwargs.pop("url", None) or database_url()
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        # SQLite can only alter tables by copying them
        render_as_batch=url.startswith("sqlite"),
        url=None if "connection" in kwargs else url,
        **kwargs,
    )


def run_migrations_offline() -> None:
    configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_with_connection(connection: Connection) -> None:
    configure(connection=connection, url=str(connection.engine.url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(run_with_connection)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
