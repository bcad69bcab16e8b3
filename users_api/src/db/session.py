from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .base import Base
from .config import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_engine_from_settings(settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Build an AsyncEngine for the configured database.

    An in-memory SQLite URL gets a single shared connection so every session
    sees the same database.
    """
    settings = settings or get_settings()
    url = settings.async_database_url
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(
            url,
            echo=settings.SQL_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=settings.SQL_ECHO, pool_pre_ping=True)


# PUBLIC_INTERFACE
def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to `engine`; loaded state survives commit."""
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autoflush=False, autocommit=False
    )


# PUBLIC_INTERFACE
async def ensure_schema(engine: AsyncEngine) -> None:
    """Create missing tables from ORM metadata. Existing tables are left alone."""
    from . import models  # noqa: F401  (registers mapped classes)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured (%s)", engine.url.render_as_string(hide_password=True))


# PUBLIC_INTERFACE
@asynccontextmanager
async def session_scope(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session wrapped in one transaction.

    Commits when the block exits normally, rolls back otherwise.
    """
    async with session_maker() as session:
        async with session.begin():
            yield session
