"""Async database engine, session factory and declarative Base."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the database write lock up front.

    SQLite ignores ``FOR UPDATE`` and pysqlite delays ``BEGIN`` until the first
    write, so without this the business-row lock taken by the booking paths
    would not serialise concurrent writers.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)
if engine.dialect.name == "sqlite":
    use_immediate_transactions(engine)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    """Database dependency for FastAPI."""
    async with async_session() as session:
        yield session


async def create_tables():
    """Create all tables (local development without alembic)."""
    import app.models  # noqa: F401  (registers models on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
