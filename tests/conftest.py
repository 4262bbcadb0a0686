"""
Pytest configuration and fixtures for Comics DB tests.

Service and endpoint tests run against a throwaway SQLite file seeded with a
small catalog; see seed_catalog() for the exact rows the assertions rely on.
"""
import os
import tempfile
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), "comicsdb-test.db"
)
os.environ["REDIS_URL"] = ""
os.environ["METRON_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from comicsdb.core.database import Base
from comicsdb.models import (
    Comic,
    EventCategory,
    EventIssue,
    Genre,
    GlobalEvent,
    Publisher,
    Series,
    SeriesGenre,
    Site,
)

DELETED_AT = datetime(2023, 1, 1, 12, 0)

NEW_THUMB = "https://comicvine.gamespot.com/a/uploads/scale_avatar/6/1001.jpg"
OLD_THUMB_2 = "https://comicvine.gamespot.com/api/image/scale_avatar/1002.jpg"
OLD_THUMB_3 = "https://comicvine.gamespot.com/api/image/scale_avatar/1003.jpg"
METRON_COVER = "https://static.metron.cloud/media/issue/2024/01/1002.jpg"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """The app's async stack (SQLAlchemy asyncio, aiosqlite) runs on asyncio."""
    return "asyncio"


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture(autouse=True)
def reset_process_state():
    """Limiter singletons and in-process caches must not leak between tests."""
    from comicsdb.core import metron_rate_limiter
    from comicsdb.services.comic_cards import event_comics_cache
    from comicsdb.services.image_resolver import image_resolver

    def reset():
        metron_rate_limiter.MetronRateLimiter._instance = None
        metron_rate_limiter._metron_rate_limiter = None
        event_comics_cache.invalidate()
        image_resolver.clear()

    reset()
    yield
    reset()


def seed_catalog(db: AsyncSession) -> None:
    """
    Catalog used across service tests.

    Week of 2024-01-08..2024-01-14 holds comics 101, 102 and 120. Comic 100
    is on the Sunday before and 103 has only an adddate on the Monday after.
    """
    db.add_all([
        Publisher(id=1, name="DC Comics"),
        Publisher(id=2, name="Marvel"),
        Publisher(id=3, name="Gone Publisher", date_delete=DELETED_AT),
    ])
    db.add_all([
        Series(id=10, name="Batman", volume=2011, publisher_id=1, comicvine=10,
               status="continue", thumb=NEW_THUMB, updated=datetime(2024, 1, 10)),
        Series(id=11, name="Batman Beyond", volume=2016, publisher_id=1,
               status="finish", updated=datetime(2024, 1, 5)),
        Series(id=12, name="The Batman Adventures", volume=1992, publisher_id=1,
               updated=datetime(2023, 12, 1)),
        Series(id=13, name="Superman/Batman", volume=2003, publisher_id=1,
               updated=datetime(2023, 11, 1)),
        Series(id=14, name="Batman Deleted", publisher_id=1,
               updated=datetime(2024, 1, 20), date_delete=DELETED_AT),
        Series(id=20, name="X-Men", volume=1991, publisher_id=2,
               updated=datetime(2024, 1, 8)),
        Series(id=30, name="Orphan Series", publisher_id=3,
               updated=datetime(2024, 1, 9)),
    ])
    db.add_all([
        Site(id="alpha", name="Alpha Team", url="https://alpha.example", numofcoms=10),
        Site(id="beta", name="Beta Scans", url="https://beta.example", numofcoms=5),
        Site(id="gamma", name="Gamma", url="https://gamma.example", hidesite=True, numofcoms=3),
        Site(id="delta", name="Delta", numofcoms=1, date_delete=DELETED_AT),
    ])
    db.add_all([
        Comic(id=100, series_id=10, comicvine=1001, number=1,
              date=date(2024, 1, 7), adddate=datetime(2024, 1, 7, 10, 0),
              thumb=NEW_THUMB, site="alpha", site2="0", link="https://alpha.example/1",
              translate="Alice, Bob", edit="Carol", characters="Batman, Robin, Alfred",
              creators="Scott Snyder, Greg Capullo", teams="Bat-Family"),
        Comic(id=101, series_id=10, comicvine=1002, number=2,
              date=date(2024, 1, 8), adddate=datetime(2024, 1, 8, 10, 0),
              thumb=OLD_THUMB_2, metron_image=METRON_COVER,
              site="alpha", site2="beta",
              link="https://alpha.example/2", link2="https://beta.example/2",
              translate="Bob", edit="alice", characters="Robin, Batman"),
        Comic(id=102, series_id=10, comicvine=1002, number=2,
              date=date(2024, 1, 14), adddate=datetime(2024, 1, 14, 10, 0),
              site="beta", link="https://beta.example/2b",
              translate="Dave", characters="Batman"),
        Comic(id=103, series_id=10, comicvine=1003, number=3,
              adddate=datetime(2024, 1, 15, 9, 0),
              thumb=OLD_THUMB_3, site="alpha", link="https://alpha.example/3",
              translate="Alice"),
        Comic(id=104, series_id=10, comicvine=1004, number=4,
              date=date(2024, 1, 10), adddate=datetime(2024, 1, 10, 10, 0),
              site="alpha", translate="Alice", date_delete=DELETED_AT),
        Comic(id=110, series_id=11, comicvine=1101, number=1,
              date=date(2023, 6, 1), adddate=datetime(2023, 6, 1, 10, 0),
              site="alpha", link="https://alpha.example/bb1",
              translate="Eve", characters="Batman Beyond, Terry McGinnis"),
        Comic(id=120, series_id=20, comicvine=2001, number=1,
              date=date(2024, 1, 9), adddate=datetime(2024, 1, 9, 10, 0),
              site="gamma", link="https://gamma.example/xm1",
              translate="Bob, Eve", characters="Wolverine"),
        Comic(id=130, series_id=30, comicvine=3001, number=1,
              date=date(2024, 1, 9), adddate=datetime(2024, 1, 9, 11, 0)),
        Comic(id=140, series_id=13, comicvine=1301, number=1,
              date=date(2023, 12, 30), adddate=datetime(2023, 12, 30, 10, 0),
              site="0", translate="Frank"),
    ])
    db.add_all([
        Genre(id=1, name="Action"),
        Genre(id=2, name="Noir"),
        Genre(id=3, name="Removed", date_delete=DELETED_AT),
        SeriesGenre(id=1, series_id=10, genre_id=1),
        SeriesGenre(id=2, series_id=10, genre_id=2),
        SeriesGenre(id=3, series_id=11, genre_id=1),
        SeriesGenre(id=4, series_id=20, genre_id=1),
        SeriesGenre(id=5, series_id=10, genre_id=3),
    ])
    db.add_all([
        EventCategory(id=1, name="Main events", publisher_id=1),
        GlobalEvent(id="zero-hour", name="Zero Hour", years="1994", sort_order=1,
                    text="Crisis in &quot;Time&quot;", category_id=1, publisher_id=1),
        EventIssue(id=1, event_id="zero-hour", comics="100", name="Batman", number="1", sort_order=1),
        EventIssue(id=2, event_id="zero-hour", comics="1003", name="Batman", number="3", sort_order=2),
        EventIssue(id=3, event_id="zero-hour", comics="999999", name="Green Lantern", number="0", sort_order=3),
        EventIssue(id=4, event_id="zero-hour", comics="", name="Zero Hour", number="4", sort_order=4),
    ])


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database file per test with every cdb_* table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog_db(db_session):
    """Session over the seeded catalog."""
    seed_catalog(db_session)
    await db_session.commit()
    return db_session


@pytest_asyncio.fixture
async def api_client(db_engine, catalog_db):
    """HTTP client against the app with get_db bound to the seeded database."""
    from httpx import ASGITransport, AsyncClient

    from comicsdb.core.database import get_db
    from comicsdb.main import app

    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)
