"""Async SQLAlchemy engine, session factory and database client.

Engines are built on demand from settings instead of at import time so tests
can point the repositories at an in-memory SQLite database.
"""

from functools import lru_cache
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from report_sync.core.config import DatabaseSettings, get_settings
from report_sync.core.exceptions import DatabaseError
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def create_engine_from_settings(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """Create an async engine for the configured database.

    Args:
        settings: Database settings, defaults to the process settings

    Returns:
        AsyncEngine: Engine bound to the connection URL
    """
    settings = settings or get_settings().database

    if settings.is_sqlite:
        return create_async_engine(settings.connection_url, echo=settings.echo, future=True)

    return create_async_engine(
        settings.connection_url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        echo=settings.echo,
        future=True,
        # Disable prepared statement cache for PgBouncer compatibility
        connect_args={"statement_cache_size": 0},
    )


@lru_cache
def get_engine() -> AsyncEngine:
    """Process-wide engine built from settings."""
    return create_engine_from_settings()


def get_session_maker(engine: Optional[AsyncEngine] = None) -> async_sessionmaker[AsyncSession]:
    """Create a session factory for an engine."""
    return async_sessionmaker(engine or get_engine(), class_=AsyncSession, expire_on_commit=False)


class DatabaseClient:
    """Database client with connection and schema management."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine
        self._connected = False

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.commit()

            self._connected = True
            LOGGER.info("Database connection successful")
            return True

        except Exception as e:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise DatabaseError(f"Database connection failed: {str(e)}", original_error=e)

    async def disconnect(self) -> None:
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()
        self._connected = False
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        # Models must be registered on Base.metadata before create_all
        from report_sync.database import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            LOGGER.info("Database tables created/verified successfully")

        except Exception as e:
            LOGGER.error(
                "Failed to create database tables",
                exc_info=True,
                extra={"error": str(e)}
            )
            raise

    async def drop_tables(self) -> None:
        """Drop all database tables.

        WARNING: This will delete all data!
        """
        from report_sync.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        LOGGER.warning("All database tables dropped")

    async def health_check(self) -> dict:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))

            self._connected = True
            return {
                "status": "healthy",
                "connected": True,
                "latency_test": "passed" if val == 1 else "failed",
            }

        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {
                "status": "unhealthy",
                "connected": False,
                "error": str(e),
            }

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected
