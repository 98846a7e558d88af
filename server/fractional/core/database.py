"""Database configuration and async session management."""

from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from .config import settings


def _engine_options(database_url: str) -> dict:
    """Pool options per backend."""
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    if ":memory:" in database_url:
        # One shared connection so every session sees the same in-memory database
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": NullPool,
        "connect_args": {"timeout": settings.sqlite_busy_timeout_seconds},
    }


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so two transactions that both
    read capacity before inserting could interleave. Emitting BEGIN IMMEDIATE
    serializes allocating transactions the way the advisory lock does on
    PostgreSQL.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the given backend."""
    new_engine = create_async_engine(
        database_url,
        echo=echo,
        future=True,
        **_engine_options(database_url),
    )
    configure_sqlite_engine(new_engine)
    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Create async session factory
async_session_factory = build_session_factory(engine)

# Create declarative base for models
Base = declarative_base()


async def acquire_collection_lock(session: AsyncSession, collection_id: int) -> None:
    """
    Serialize allocation within a collection for the current transaction.

    On PostgreSQL this takes a transaction-scoped advisory lock that is released
    on commit or rollback. SQLite transactions already hold the database write
    lock from BEGIN IMMEDIATE, so nothing extra is needed there.
    """
    if session.bind.dialect.name == "postgresql":
        await session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"collection:{collection_id}"},
        )


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
