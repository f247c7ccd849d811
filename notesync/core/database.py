"""
Database Configuration.

SQLAlchemy async engine and session management for the local replica.
Uses lazy initialization to prevent import-time failures when configuration
is not available.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notesync.core.logging import get_logger

logger = get_logger(__name__)

# Module-level state for lazy initialization
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _configure_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
    """WAL journal, and transactions begun by SQLAlchemy rather than the driver."""
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _begin_immediate(conn: Any) -> None:
    """Take the write lock when the transaction starts, not at its first write."""
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_replica_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the replica at the given URL."""
    engine = create_async_engine(url, echo=echo)
    if url.startswith("sqlite") and ":memory:" not in url:
        event.listen(engine.sync_engine, "connect", _configure_sqlite)
        event.listen(engine.sync_engine, "begin", _begin_immediate)
    logger.debug("Replica engine created", extra={"url": url})
    return engine


def get_engine() -> AsyncEngine:
    """
    Get the replica engine, creating it on first use.

    Returns:
        SQLAlchemy async engine instance
    """
    global _engine
    if _engine is None:
        from notesync.core.config import get_app_config, get_database_url

        _engine = create_replica_engine(
            get_database_url(),
            echo=get_app_config().database.echo,
        )
    return _engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory, creating it on first use.

    Returns:
        SQLAlchemy async session factory
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = create_session_factory(get_engine())
    return _async_session_factory


async def init_replica_schema(engine: AsyncEngine | None = None) -> None:
    """Create the replica tables if they do not exist yet."""
    from notesync.models.base import Base

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a transactional scope around a series of replica operations.

    Commits on success, rolls back on any exception. On a file-backed
    replica the transaction holds the write lock from its first statement,
    so a check and the write that depends on it cannot interleave with
    another writer.

    Usage:
        async with session_scope(factory) as session:
            repo = NoteRepository(session)
            await repo.upsert(note)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the lazily created engine. Called on shutdown."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.debug("Replica engine disposed")
    _engine = None
    _async_session_factory = None
