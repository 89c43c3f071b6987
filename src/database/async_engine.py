"""Async database engine and session management.

Provides the async SQLAlchemy engine for the prospect store: SQLite through
aiosqlite by default, with connection health checks and session handling.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from config.database import DatabaseSettings, get_database_settings

logger = logging.getLogger(__name__)


# Global engine instance (lazy initialization)
_async_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.

    SQLite gets one connection per session (NullPool) so concurrent
    transactions contend on the database lock rather than share a connection.

    Args:
        settings: Database settings. If None, loads from environment.

    Returns:
        AsyncEngine: Configured async engine instance.
    """
    settings = settings or get_database_settings()

    logger.info(f"Creating async database engine ({settings.driver})")

    if settings.is_sqlite:
        pool_kwargs = {"poolclass": NullPool}
    else:
        pool_kwargs = {
            "pool_size": settings.pool_size,
            "pool_pre_ping": settings.pool_pre_ping,
        }

    engine = create_async_engine(
        settings.async_url,
        echo=settings.echo_sql,
        connect_args=settings.get_connect_args(),
        **pool_kwargs,
    )

    _setup_engine_events(engine, settings)

    return engine


def _setup_engine_events(engine: AsyncEngine, settings: DatabaseSettings) -> None:
    """
    Set up SQLAlchemy engine event listeners.

    Args:
        engine: The async engine instance.
        settings: Database settings.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        """Called when a new connection is established."""
        logger.debug("Database connection established")

        if settings.is_sqlite:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create an async session factory bound to ``engine``.

    Args:
        engine: Engine instance.

    Returns:
        async_sessionmaker: Factory for creating async sessions.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_async_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Get or create the global async engine instance.

    Args:
        settings: Optional database settings.

    Returns:
        AsyncEngine: The global async engine instance.
    """
    global _async_engine

    if _async_engine is None:
        _async_engine = create_engine(settings)

    return _async_engine


def get_async_session_factory(
    settings: Optional[DatabaseSettings] = None
) -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _async_session_factory

    if _async_session_factory is None:
        _async_session_factory = get_session_factory(get_async_engine(settings))

    return _async_session_factory


@asynccontextmanager
async def get_async_session(
    settings: Optional[DatabaseSettings] = None
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session as a context manager.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(query)

    Yields:
        AsyncSession: Database session that auto-commits/rollbacks.
    """
    session = get_async_session_factory(settings)()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def check_database_connection(
    settings: Optional[DatabaseSettings] = None
) -> bool:
    """
    Check if the database is accessible.

    Returns:
        bool: True if database is accessible, False otherwise.
    """
    try:
        engine = get_async_engine(settings)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check passed")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def init_database(settings: Optional[DatabaseSettings] = None) -> None:
    """
    Create the prospect store tables if they do not exist.

    Args:
        settings: Optional database settings.
    """
    from database.repositories.prospect_repository import SCHEMA_STATEMENTS

    engine = get_async_engine(settings)
    async with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(text(statement))

    logger.info("Prospect store schema initialized")


async def close_database() -> None:
    """
    Close the database engine and cleanup connections.

    Should be called during application shutdown.
    """
    global _async_engine, _async_session_factory

    if _async_engine is not None:
        logger.info("Closing database engine")
        await _async_engine.dispose()
        _async_engine = None
        _async_session_factory = None
