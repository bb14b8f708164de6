"""
Database connection management and session handling.

The engine lives on an explicitly constructed ``DatabaseManager``. The web
application opens one in its lifespan and keeps it on ``app.state.db``;
background workers build their own. Nothing here is a module-level global.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)

from .config import Settings, get_settings
from .models.base import Base

logger = logging.getLogger(__name__)


def create_database_engine(settings: Settings) -> AsyncEngine:
    """Create and configure the database engine with connection pooling."""
    url = settings.database_url

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    return create_async_engine(
        url,
        # Connection pool configuration for concurrent access
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        isolation_level="READ COMMITTED",
        echo=settings.debug,
        connect_args={
            "server_settings": {
                "application_name": "hotel_booking_platform",
            }
        }
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


class DatabaseManager:
    """Owns the engine and session factory for one process."""

    def __init__(self, settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None):
        self.settings = settings or get_settings()
        self.engine: AsyncEngine | None = engine
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self, create_tables: Optional[bool] = None) -> None:
        """Open the engine and, unless disabled, create missing tables."""
        if self.engine is None:
            self.engine = create_database_engine(self.settings)
        self.session_factory = create_session_factory(self.engine)

        if create_tables is None:
            create_tables = self.settings.database_create_tables

        if create_tables:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        logger.info("Database manager initialized")

    async def close(self) -> None:
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database manager closed")
        self.engine = None
        self.session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session that commits on success and rolls back on error.

        Usage:
            async with db_manager.session() as session:
                result = await session.execute(query)
        """
        if self.session_factory is None:
            raise RuntimeError("Database manager not initialized")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for getting database sessions.

    Usage in FastAPI endpoints:
        @router.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    db_manager: DatabaseManager = request.app.state.db
    async with db_manager.session() as session:
        yield session
