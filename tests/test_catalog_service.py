"""
Tests for catalog browsing: publishers, series, comics, genres, sites and events.
"""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from comicsdb.models import SeriesStatus
from comicsdb.services.catalog_service import catalog_service, clamp_limit
from comicsdb.services.image_resolver import upgrade_scale
from comicsdb.services.search_helpers import TRANSLATION_FROZEN

OLD_THUMB_3 = "https://comicvine.gamespot.com/api/image/scale_avatar/1003.jpg"
METRON_COVER = "https://static.metron.cloud/media/issue/2024/01/1002.jpg"


class TestPublishers:
    @pytest.mark.asyncio
    async def test_list_publishers(self, catalog_db):
        """Deleted publishers are hidden; counts cover live rows only."""
        page = await catalog_service.list_publishers(catalog_db)

        assert [(p.name, p.series_count, p.comics_count) for p in page.items] == [
            ("DC Comics", 4, 6),
            ("Marvel", 1, 1),
        ]
        assert page.pagination.total == 2

    @pytest.mark.asyncio
    async def test_list_publishers_sorted_by_comics(self, catalog_db):
        page = await catalog_service.list_publishers(catalog_db, sort="comics_asc")
        assert [p.name for p in page.items] == ["Marvel", "DC Comics"]

    @pytest.mark.asyncio
    async def test_get_publisher(self, catalog_db):
        publisher = await catalog_service.get_publisher(catalog_db, 1)

        assert publisher.name == "DC Comics"
        assert [s.name for s in publisher.series] == [
            "Batman",
            "Batman Beyond",
            "Superman/Batman",
            "The Batman Adventures",
        ]
        assert publisher.series[0].comics_count == 4
        assert publisher.pagination.total == 4

    @pytest.mark.asyncio
    async def test_deleted_or_missing_publisher(self, catalog_db):
        assert await catalog_service.get_publisher(catalog_db, 3) is None
        assert await catalog_service.get_publisher(catalog_db, 999) is None


class TestSeries:
    @pytest.mark.asyncio
    async def test_list_series_recently_updated_first(self, catalog_db):
        page = await catalog_service.list_series(catalog_db)

        assert [s.id for s in page.items] == [10, 20, 11, 12, 13]
        assert page.items[0].status is SeriesStatus.CONTINUING
        assert page.items[0].comics_count == 4

    @pytest.mark.asyncio
    async def test_list_series_paging_and_filter(self, catalog_db):
        page = await catalog_service.list_series(catalog_db, page=2, limit=2)
        marvel = await catalog_service.list_series(catalog_db, publisher_id=2)

        assert [s.id for s in page.items] == [11, 12]
        assert page.pagination.total == 5
        assert page.pagination.page_size == 2
        assert page.pagination.total_pages == 3
        assert [s.id for s in marvel.items] == [20]

    @pytest.mark.asyncio
    async def test_get_series(self, catalog_db):
        series = await catalog_service.get_series(catalog_db, 10)

        assert series.name == "Batman"
        assert series.genres == ["Action", "Noir"]
        assert [c.id for c in series.comics] == [100, 102, 101, 103]
        assert series.total_issues == 10
        assert series.translated == 4
        assert series.translation_status == TRANSLATION_FROZEN
        assert series.comics[0].has_global_event is True

    @pytest.mark.asyncio
    async def test_deleted_series(self, catalog_db):
        """A deleted series, or one under a deleted publisher, is not found."""
        assert await catalog_service.get_series(catalog_db, 14) is None
        assert await catalog_service.get_series(catalog_db, 30) is None

    @pytest.mark.asyncio
    async def test_random_series(self, catalog_db):
        series = await catalog_service.random_series(catalog_db)
        assert series.id in {10, 11, 12, 13, 20}

    @pytest.mark.asyncio
    async def test_random_series_empty_catalog(self, db_session):
        assert await catalog_service.random_series(db_session) is None


class TestComics:
    @pytest.mark.asyncio
    async def test_list_comics(self, catalog_db):
        page = await catalog_service.list_comics(catalog_db)

        assert page.items[0].id == 103
        assert page.pagination.total == 7
        assert page.pagination.page_size == 50

    @pytest.mark.asyncio
    async def test_list_comics_page_beyond_end(self, catalog_db):
        page = await catalog_service.list_comics(catalog_db, page=5, limit=2)

        assert page.items == []
        assert page.pagination.total == 7

    @pytest.mark.asyncio
    async def test_get_comic_with_metron_cover(self, catalog_db):
        """A cached Metron cover replaces every size."""
        comic = await catalog_service.get_comic(catalog_db, 101)

        assert comic.images.thumb == METRON_COVER
        assert comic.images.super_url == METRON_COVER
        assert comic.is_joint is True
        assert comic.site2.name == "Beta Scans"
        assert comic.number == "2"

    @pytest.mark.asyncio
    async def test_get_comic_without_metron_cover(self, catalog_db):
        comic = await catalog_service.get_comic(catalog_db, 103)

        assert comic.images.thumb == upgrade_scale(OLD_THUMB_3)
        assert comic.images.tiny is None
        assert comic.date is None

    @pytest.mark.asyncio
    async def test_get_comic_detail_fields(self, catalog_db):
        comic = await catalog_service.get_comic(catalog_db, 100)

        assert comic.creators == "Scott Snyder, Greg Capullo"
        assert comic.teams == "Bat-Family"
        assert comic.site.id == "alpha"
        assert comic.site2 is None
        assert comic.url == "/publishers/1/10/1001"

    @pytest.mark.asyncio
    async def test_deleted_comics(self, catalog_db):
        assert await catalog_service.get_comic(catalog_db, 104) is None
        assert await catalog_service.get_comic(catalog_db, 130) is None


class TestComicIssue:
    @pytest.mark.asyncio
    async def test_translations_and_navigation(self, catalog_db):
        issue = await catalog_service.get_comic_issue(catalog_db, 10, 1002)

        assert issue.comic.id == 102
        assert [t.comic_id for t in issue.translations] == [102, 101]
        assert issue.translations[0].site.id == "beta"
        assert issue.translations[1].is_joint is True
        assert issue.translations[1].site2.id == "beta"
        assert issue.previous_issue.comicvine == 1001
        assert issue.previous_issue.url == "/publishers/1/10/1001"
        assert issue.next_issue.comicvine == 1003
        assert issue.next_issue.number == "3"

    @pytest.mark.asyncio
    async def test_last_issue_has_no_next(self, catalog_db):
        """Deleted comic 104 is not a navigation target."""
        issue = await catalog_service.get_comic_issue(catalog_db, 10, 1003)

        assert issue.previous_issue.comicvine == 1002
        assert issue.next_issue is None

    @pytest.mark.asyncio
    async def test_publisher_must_match(self, catalog_db):
        assert await catalog_service.get_comic_issue(catalog_db, 10, 1002, publisher_id=1) is not None
        assert await catalog_service.get_comic_issue(catalog_db, 10, 1002, publisher_id=2) is None

    @pytest.mark.asyncio
    async def test_missing_issue(self, catalog_db):
        assert await catalog_service.get_comic_issue(catalog_db, 10, 1004) is None
        assert await catalog_service.get_comic_issue(catalog_db, 11, 1002) is None


class TestGenres:
    @pytest.mark.asyncio
    async def test_list_genres(self, catalog_db):
        page = await catalog_service.list_genres(catalog_db)

        assert [(g.name, g.series_count) for g in page.items] == [("Action", 3), ("Noir", 1)]

    @pytest.mark.asyncio
    async def test_get_genre(self, catalog_db):
        genre = await catalog_service.get_genre(catalog_db, 1)

        assert [s.name for s in genre.series] == ["Batman", "Batman Beyond", "X-Men"]
        assert genre.pagination.total == 3
        assert await catalog_service.get_genre(catalog_db, 3) is None


class TestSites:
    @pytest.mark.asyncio
    async def test_list_sites_hides_hidden_and_deleted(self, catalog_db):
        page = await catalog_service.list_sites(catalog_db)

        assert [s.id for s in page.items] == ["alpha", "beta"]
        assert page.items[0].numofcoms == 10

    @pytest.mark.asyncio
    async def test_get_site(self, catalog_db):
        site = await catalog_service.get_site(catalog_db, "alpha")

        assert site.name == "Alpha Team"
        assert site.total_comics == 4
        assert site.total_series == 2
        assert str(site.first_release) == "2023-06-01"
        assert str(site.last_release) == "2024-01-15"
        assert [g.series.name for g in site.groups] == ["Batman", "Batman Beyond"]
        assert [c.id for c in site.groups[0].comics] == [100, 101, 103]
        assert site.groups[0].series.comics_count == 3

    @pytest.mark.asyncio
    async def test_missing_site(self, catalog_db):
        assert await catalog_service.get_site(catalog_db, "delta") is None
        assert await catalog_service.get_site(catalog_db, "nope") is None


class TestEvents:
    @pytest.mark.asyncio
    async def test_event_publishers(self, catalog_db):
        publishers = await catalog_service.list_event_publishers(catalog_db)

        assert [(p.id, p.name, p.events_count) for p in publishers] == [(1, "DC Comics", 1)]

    @pytest.mark.asyncio
    async def test_publisher_events(self, catalog_db):
        events = await catalog_service.list_publisher_events(catalog_db, 1)

        assert events.publisher.name == "DC Comics"
        assert [c.name for c in events.categories] == ["Main events"]
        event = events.categories[0].events[0]
        assert (event.id, event.name, event.comics_count) == ("zero-hour", "Zero Hour", 4)

    @pytest.mark.asyncio
    async def test_publisher_events_empty_and_missing(self, catalog_db):
        marvel = await catalog_service.list_publisher_events(catalog_db, 2)

        assert marvel.categories == []
        assert await catalog_service.list_publisher_events(catalog_db, 3) is None

    @pytest.mark.asyncio
    async def test_event_reading_order(self, catalog_db):
        """Entries match a live comic by id first, then by ComicVine id."""
        event = await catalog_service.get_event(catalog_db, "zero-hour")

        assert event.text == 'Crisis in "Time"'
        assert event.category == "Main events"
        assert event.publisher.id == 1
        assert [i.has_translation for i in event.issues] == [True, True, False, False]
        assert [i.comic_url for i in event.issues] == [
            "/publishers/1/10/1001",
            "/publishers/1/10/1003",
            None,
            None,
        ]

    @pytest.mark.asyncio
    async def test_missing_event(self, catalog_db):
        assert await catalog_service.get_event(catalog_db, "secret-wars") is None


class TestDegradation:
    @pytest.mark.asyncio
    async def test_list_degrades_to_empty_page(self, mock_db):
        mock_db.execute.side_effect = SQLAlchemyError("connection lost")

        page = await catalog_service.list_series(mock_db)

        assert page.items == []
        assert page.pagination.total == 0

    @pytest.mark.asyncio
    async def test_lookup_degrades_to_none(self, mock_db):
        mock_db.execute.side_effect = SQLAlchemyError("connection lost")
        assert await catalog_service.get_series(mock_db, 10) is None

    def test_clamp_limit(self):
        assert clamp_limit(None, 50) == 50
        assert clamp_limit("abc", 50) == 50
        assert clamp_limit("0", 50) == 1
        assert clamp_limit(1000, 50) == 100
