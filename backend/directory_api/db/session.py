from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from directory_api.core.config import settings
from directory_api.core.errors import AuthzError
from directory_api.db.base import Base
import directory_api.models  # noqa: F401  # register tables on Base.metadata


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """
    SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per
    connection. No-op for other backends.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# -----------------------------
# Async engine (FastAPI)
# -----------------------------
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL_ASYNC_CLEAN,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,  # detects dead connections before using them
    pool_recycle=300,
)
enable_sqlite_foreign_keys(engine)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides one AsyncSession per request.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def commit_keeping_audit(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit a guarded mutation.

    Authorization outcomes (denied, conflict, not found) still commit so the
    audit row written by the service survives; any other error leaves the
    transaction uncommitted and propagates.
    """
    try:
        yield db
    except AuthzError:
        await db.commit()
        raise
    await db.commit()


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create any missing tables. Run once at startup."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
