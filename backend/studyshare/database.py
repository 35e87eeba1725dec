"""
StudyShare Backend - Database Session Management
=================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   The engine points at the platform's Postgres database and is created
       on first use, so a deployment with a missing DATABASE_URL still boots
       and reports the problem through API responses and /health.
Who:   Route handlers (via Depends) and the recommendation service (via
       session_scope) use it.

This service never writes. Sessions are opened, read from, and closed.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from studyshare.config import settings
from studyshare.exceptions import ConfigurationError


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def get_engine() -> AsyncEngine:
    """
    Return the process-wide engine, creating it on first call.

    Raises:
        ConfigurationError: DATABASE_URL is not configured.
    """
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError(
                message="Missing required environment variables",
                context={"missing": ["DATABASE_URL"]},
            )
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
            echo=settings.log_level == "DEBUG",
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a read-only session for the duration of a `async with` block.

    Used by services that must validate input before touching the database
    (the recommendation flow rejects a blank lesson without opening one).
    Closing the session returns the connection to the pool and rolls back
    the read transaction; loaded objects stay usable after the block.
    """
    async with get_session_factory()() as session:
        yield session


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Example usage in a route:
        @router.get("/notes")
        async def list_notes(db: AsyncSession = Depends(get_db_session)):
            ...

    Raises:
        ConfigurationError: DATABASE_URL is not configured (→ 500).
        Query errors propagate to the caller, which wraps them in DatabaseError.
    """
    async with session_scope() as session:
        yield session


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
