"""
Catalog database engine and sessions

The API only reads cdb_* tables. Request sessions are therefore never
committed; anything they touched is rolled back when the request ends.
The one write path, storing resolved Metron covers on cdb_comics, opens
its own short session through get_db_session().
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from comicsdb.core.config import settings


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def pool_options(url: str, environment: str) -> Dict[str, Any]:
    """
    Engine pool arguments for a database URL.

    aiosqlite has no queue pool, so SQLite URLs get none. The shared
    production MySQL/Postgres server gets the DB_* sizing and recycles
    connections before the server's idle timeout drops them.
    """
    if is_sqlite(url):
        return {}
    if environment == "production":
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    return {"pool_size": 2, "max_overflow": 5, "pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **pool_options(settings.DATABASE_URL, settings.ENVIRONMENT),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Read-only session per request (FastAPI dependency)."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


@asynccontextmanager
async def get_db_session() -> AsyncIterator[AsyncSession]:
    """
    Committing session for writes outside a request.

    Used by the image resolver, whose background lookup can outlive the
    request that started it.

    Usage:
        async with get_db_session() as db:
            await db.execute(update(...))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping() -> bool:
    """Round-trip a trivial query; errors propagate to the caller."""
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))
    return True
