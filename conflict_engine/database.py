"""
Database configuration and session management for the Resolution Store.

Provides:
- Async engine creation with proper configuration per backend
- Async session factory used by ResolutionStore
- Database initialization utilities
"""

import logging
from functools import lru_cache

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from conflict_engine.config import get_settings

logger = logging.getLogger(__name__)


def _get_async_database_url(sync_url: str) -> str:
    """Convert sync database URL to async URL."""
    if "sqlite" in sync_url.lower() and "+aiosqlite" not in sync_url:
        return sync_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    elif sync_url.lower().startswith("postgresql://"):
        return sync_url.replace("postgresql://", "postgresql+asyncpg://")
    return sync_url


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine configured for the database type.

    Args:
        database_url: Sync or async SQLAlchemy URL
        echo: Log SQL statements

    Returns:
        AsyncEngine
    """
    async_url = _get_async_database_url(database_url)

    if "sqlite" in async_url.lower():
        return create_async_engine(async_url, echo=echo)

    return create_async_engine(
        async_url,
        pool_size=5,  # Maximum number of connections in pool
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        echo=echo,
    )


@lru_cache()
def get_engine() -> AsyncEngine:
    """Get the process-wide async engine built from settings."""
    settings = get_settings()

    if settings.is_production:
        settings.validate_production_config()

    return create_engine_for_url(
        settings.database_url,
        echo=settings.log_level == "DEBUG",
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for the configured database."""
    return make_session_factory(get_engine())


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Initialize database by creating all tables.

    Args:
        engine: Engine to use (configured engine if None)
    """
    from conflict_engine.models.base import Base

    engine = engine or get_engine()
    logger.info("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def drop_all_tables(engine: AsyncEngine | None = None) -> None:
    """
    Drop all tables from the database.

    WARNING: This will delete all stored resolutions.
    """
    from conflict_engine.models.base import Base

    engine = engine or get_engine()
    logger.warning("Dropping all database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("All database tables dropped")


async def check_connection(engine: AsyncEngine | None = None) -> bool:
    """
    Test database connection.

    Returns:
        bool: True if connection successful, False otherwise
    """
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
