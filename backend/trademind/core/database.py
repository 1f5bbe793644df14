"""
Database engine and session management.

The engine is created lazily so importing models never opens a connection.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from trademind.core.config import settings


class Base(DeclarativeBase):
    pass


engine: Optional[AsyncEngine] = None
session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """Get the async engine for DATABASE_URL."""
    global engine
    if engine is None:
        kwargs = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            kwargs["pool_size"] = settings.DB_POOL_SIZE
            kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        engine = create_async_engine(settings.DATABASE_URL, **kwargs)
    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global session_factory
    if session_factory is None:
        session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return session_factory


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create tables that do not exist yet."""
    # Register models on Base.metadata
    import trademind.models  # noqa: F401

    async with (bind or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and its pool."""
    global engine, session_factory

    if engine is not None:
        await engine.dispose()
        engine = None
        session_factory = None
