"""Database handle and per-request session dependency."""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings

logger = structlog.get_logger(__name__)


class Database:
    """
    Store handle owning the async engine and session factory.

    Constructed once at process start (see the application lifespan), passed
    to request handlers through ``app.state`` and disposed at shutdown.
    """

    def __init__(self, url: str, **engine_kwargs: Any):
        """Create the engine and session factory for ``url``."""
        if url.startswith("postgresql+asyncpg://"):
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine_kwargs.setdefault("pool_size", settings.database_pool_size)
            engine_kwargs.setdefault("max_overflow", settings.database_max_overflow)
            engine_kwargs.setdefault("pool_recycle", 3600)
            engine_kwargs.setdefault(
                "connect_args",
                {"server_settings": {"application_name": settings.app_name}},
            )

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session, rolling back on error."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


def create_database() -> Database:
    """Build the application database handle from settings."""
    return Database(settings.async_database_url, echo=settings.debug)


def get_database(request: Request) -> Database:
    """Return the database handle attached to the running application."""
    return request.app.state.database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async for session in get_database(request).session():
        yield session
