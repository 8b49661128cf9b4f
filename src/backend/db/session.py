"""
Async database engine and session management.

One AsyncSession per request; services own the transaction boundary of each
mutating operation (check-then-write happens inside a single transaction
and ends in commit or rollback).
"""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from db.base import Base

logger = structlog.get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine, wiring SQLite specifics when needed."""
    database_url = url or settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.DATABASE_ECHO if echo is None else echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": 30}
    else:
        kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True, pool_recycle=1800)

    new_engine = create_async_engine(database_url, **kwargs)
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit so services can return them
    return async_sessionmaker(bind=bind, expire_on_commit=False, autoflush=False)


engine = create_engine()
async_session_maker = create_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session; anything left uncommitted is rolled back."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables that do not exist yet."""
    # Import models so every table is registered on Base.metadata
    import models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", dialect=target.dialect.name)


async def close_db() -> None:
    """Dispose of the connection pool."""
    await engine.dispose()
    logger.info("database_closed")
