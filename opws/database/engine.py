"""
Database engine and session management for OPWS.

One process-wide async engine (asyncpg against PostgreSQL/TimescaleDB in
production), built lazily from ``settings`` and disposed by ``close_db``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from opws.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """Process-wide engine; pool settings apply to PostgreSQL only."""
    global _engine

    if _engine is None:
        url = make_url(settings.database_url)
        options = {"echo": settings.DB_ECHO}
        if url.get_backend_name() == "postgresql":
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        logger.info(f"Creating async database engine: {url.render_as_string(hide_password=True)}")
        _engine = create_async_engine(url, **options)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commits on exit, rolls back if the block raises.

    Usage:
        async with get_db_session() as session:
            await session.execute(...)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one ``get_db_session`` unit of work per request."""
    async with get_db_session() as session:
        yield session


async def close_db() -> None:
    """Dispose the engine; the next ``get_engine`` call builds a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Closing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None
