"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from jobqueue.config import Settings, get_settings
from jobqueue.db.models import Base

logger = logging.getLogger(__name__)


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """
    Create the async database engine from settings.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    settings = settings or get_settings()
    return create_async_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.log_level == "DEBUG",
        pool_pre_ping=True,
    )


def get_test_engine(database_url: str) -> AsyncEngine:
    """
    Create a test database engine with NullPool.

    Args:
        database_url: The database URL for testing.

    Returns:
        AsyncEngine: The test SQLAlchemy async engine instance.
    """
    return create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by SqlJobStore."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create the queue tables if they do not exist.
    Should be called on application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database connection initialized")


async def close_db(engine: AsyncEngine) -> None:
    """
    Close the database connection.
    Should be called on application shutdown.
    """
    await engine.dispose()
    logger.info("Database connection closed")


@asynccontextmanager
async def get_session_context(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """
    Context manager for getting async database sessions.
    Commits on success and rolls back on error.

    Yields:
        AsyncSession: An async database session.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
