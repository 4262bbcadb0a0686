"""
Unit tests for engine pool options and the catalog session helpers.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from comicsdb.core import database
from comicsdb.core.config import settings
from comicsdb.models.catalog import Publisher


@pytest.fixture
def bound_sessions(db_engine, monkeypatch):
    """Point the module's session factory at the per-test SQLite file."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database, "AsyncSessionLocal", factory)
    return factory


async def publisher_names(factory):
    async with factory() as session:
        return (await session.execute(select(Publisher.name).order_by(Publisher.id))).scalars().all()


class TestPoolOptions:
    def test_sqlite_has_no_pool(self):
        assert database.is_sqlite("sqlite+aiosqlite:///./dev.db") is True
        assert database.pool_options("sqlite+aiosqlite:///./dev.db", "production") == {}

    def test_production_uses_settings(self):
        options = database.pool_options("postgresql+asyncpg://db/comics", "production")

        assert options["pool_size"] == settings.DB_POOL_SIZE
        assert options["max_overflow"] == settings.DB_MAX_OVERFLOW
        assert options["pool_recycle"] == settings.DB_POOL_RECYCLE
        assert options["pool_pre_ping"] is True

    def test_development_pool_is_small(self):
        options = database.pool_options("postgresql+asyncpg://db/comics", "development")
        assert options == {"pool_size": 2, "max_overflow": 5, "pool_pre_ping": True}


class TestSessions:
    @pytest.mark.asyncio
    async def test_request_session_never_commits(self, bound_sessions):
        """Whatever a request session changes is discarded when it ends."""
        sessions = database.get_db()
        session = await sessions.__anext__()
        session.add(Publisher(id=1, name="Marvel"))
        await session.flush()

        with pytest.raises(StopAsyncIteration):
            await sessions.__anext__()

        assert await publisher_names(bound_sessions) == []

    @pytest.mark.asyncio
    async def test_write_session_commits(self, bound_sessions):
        async with database.get_db_session() as session:
            session.add(Publisher(id=1, name="Marvel"))

        assert await publisher_names(bound_sessions) == ["Marvel"]

    @pytest.mark.asyncio
    async def test_write_session_rolls_back_on_error(self, bound_sessions):
        with pytest.raises(RuntimeError):
            async with database.get_db_session() as session:
                session.add(Publisher(id=1, name="Marvel"))
                await session.flush()
                raise RuntimeError("persist failed")

        assert await publisher_names(bound_sessions) == []

    @pytest.mark.asyncio
    async def test_ping(self, bound_sessions):
        assert await database.ping() is True

    @pytest.mark.asyncio
    async def test_ping_propagates_errors(self, monkeypatch):
        broken = async_sessionmaker(
            database.create_async_engine("sqlite+aiosqlite:////nonexistent-dir/catalog.db"),
            class_=AsyncSession,
        )
        monkeypatch.setattr(database, "AsyncSessionLocal", broken)

        with pytest.raises(OperationalError):
            await database.ping()
