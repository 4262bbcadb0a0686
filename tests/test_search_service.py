"""
Tests for series relevance search, comma-joined field search and scanlator stats.
"""
from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.models import Series
from comicsdb.services.search_service import search_service

METRON_COVER = "https://static.metron.cloud/media/issue/2024/01/1002.jpg"


class TestSeriesSearch:
    """Relevance-ranked search over series names."""

    @pytest.mark.asyncio
    async def test_relevance_ordering(self, catalog_db):
        """Exact > prefix > word boundary > substring."""
        page = await search_service.search_series(catalog_db, "batman")

        assert [item.name for item in page.items] == [
            "Batman",
            "Batman Beyond",
            "The Batman Adventures",
            "Superman/Batman",
        ]
        assert [item.relevance for item in page.items] == [1000, 500, 296, 91]
        assert page.pagination.total == 4
        assert page.sort == "relevance"

    @pytest.mark.asyncio
    async def test_case_and_whitespace_insensitive(self, catalog_db):
        page = await search_service.search_series(catalog_db, "  BATMAN ")

        assert page.query == "BATMAN"
        assert page.items[0].name == "Batman"

    @pytest.mark.asyncio
    async def test_soft_deleted_rows_excluded(self, catalog_db):
        """Deleted series and series of deleted publishers never match."""
        page = await search_service.search_series(catalog_db, "series")
        assert page.items == []

        page = await search_service.search_series(catalog_db, "deleted")
        assert page.items == []

    @pytest.mark.asyncio
    async def test_card_fields(self, catalog_db):
        page = await search_service.search_series(catalog_db, "batman")
        batman, beyond = page.items[0], page.items[1]

        assert batman.comics_count == 4
        assert batman.cover.endswith("/scale_large/6/1001.jpg")
        assert batman.url == "/publishers/1/10"
        assert batman.publisher.name == "DC Comics"
        assert beyond.comics_count == 1
        assert beyond.cover is None

    @pytest.mark.asyncio
    async def test_name_sort(self, catalog_db):
        page = await search_service.search_series(catalog_db, "batman", sort="name_asc")

        assert [item.name for item in page.items] == [
            "Batman",
            "Batman Beyond",
            "Superman/Batman",
            "The Batman Adventures",
        ]

    @pytest.mark.asyncio
    async def test_unknown_sort_falls_back_to_relevance(self, catalog_db):
        page = await search_service.search_series(catalog_db, "batman", sort="popularity")
        assert page.sort == "relevance"

    @pytest.mark.asyncio
    async def test_page_beyond_end_keeps_total(self, catalog_db):
        page = await search_service.search_series(catalog_db, "batman", page=2)

        assert page.items == []
        assert page.pagination.total == 4
        assert page.pagination.page == 2

    @pytest.mark.asyncio
    async def test_empty_query(self, catalog_db):
        page = await search_service.search_series(catalog_db, "   ")

        assert page.items == []
        assert page.pagination.total == 0

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, catalog_db):
        page = await search_service.search_series(catalog_db, "%")
        assert page.items == []

        page = await search_service.search_series(catalog_db, "_atman")
        assert page.items == []

    @pytest.mark.asyncio
    async def test_matches_entity_encoded_names(self, catalog_db):
        """Names stored with &amp; are found by the plain query."""
        catalog_db.add(Series(id=15, name="Cloak &amp; Dagger", publisher_id=2))
        await catalog_db.commit()

        page = await search_service.search_series(catalog_db, "cloak & dagger")

        assert [item.name for item in page.items] == ["Cloak & Dagger"]

    @pytest.mark.asyncio
    async def test_database_error_degrades_to_empty(self, mock_db):
        mock_db.execute.side_effect = SQLAlchemyError("connection lost")

        page = await search_service.search_series(mock_db, "batman")

        assert page.items == []
        assert page.pagination.total == 0


class TestFieldSearch:
    """Whole-token search over comma-joined comic fields."""

    @pytest.mark.asyncio
    async def test_character_tokens_in_any_position(self, catalog_db):
        """First, middle, last and only tokens match; longer tokens do not."""
        page = await search_service.search_comics_by_field(catalog_db, "characters", "batman")

        assert [item.id for item in page.items] == [102, 101, 100]
        assert {item.real_name for item in page.items} == {"Batman"}
        assert page.pagination.total == 3

    @pytest.mark.asyncio
    async def test_multi_word_token(self, catalog_db):
        page = await search_service.search_comics_by_field(catalog_db, "characters", "Batman Beyond")
        assert [item.id for item in page.items] == [110]

    @pytest.mark.asyncio
    async def test_teams_and_creators(self, catalog_db):
        teams = await search_service.search_comics_by_field(catalog_db, "teams", "bat-family")
        creators = await search_service.search_comics_by_field(catalog_db, "creators", "greg capullo")

        assert [item.id for item in teams.items] == [100]
        assert teams.items[0].real_name == "Bat-Family"
        assert [item.id for item in creators.items] == [100]
        assert creators.items[0].real_name == "Greg Capullo"

    @pytest.mark.asyncio
    async def test_scanlator_matches_translate_or_edit(self, catalog_db):
        page = await search_service.search_scanlator(catalog_db, "alice")

        assert [item.id for item in page.items] == [103, 101, 100]
        assert page.field == "scanlator"
        assert page.items[1].real_name == "alice"
        assert page.items[0].real_name == "Alice"

    @pytest.mark.asyncio
    async def test_single_column_fields(self, catalog_db):
        translate = await search_service.search_comics_by_field(catalog_db, "translate", "alice")
        edit = await search_service.search_comics_by_field(catalog_db, "edit", "alice")

        assert [item.id for item in translate.items] == [103, 100]
        assert [item.id for item in edit.items] == [101]

    @pytest.mark.asyncio
    async def test_card_details(self, catalog_db):
        page = await search_service.search_comics_by_field(catalog_db, "characters", "robin")
        by_id = {item.id: item for item in page.items}

        joint = by_id[101]
        assert joint.is_joint is True
        assert joint.site.name == "Alpha Team"
        assert joint.site2.name == "Beta Scans"
        assert joint.image == METRON_COVER
        assert joint.url == "/publishers/1/10/1002"
        assert by_id[100].has_global_event is True
        assert joint.has_global_event is False
        assert by_id[100].site2 is None

    @pytest.mark.asyncio
    async def test_name_sort(self, catalog_db):
        """Series name then number, adddate DESC breaking ties."""
        page = await search_service.search_comics_by_field(
            catalog_db, "characters", "batman", sort="name_asc"
        )
        assert [item.id for item in page.items] == [100, 102, 101]

    @pytest.mark.asyncio
    async def test_page_beyond_end_keeps_total(self, catalog_db):
        page = await search_service.search_comics_by_field(catalog_db, "characters", "batman", page=5)

        assert page.items == []
        assert page.pagination.total == 3

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, catalog_db):
        with pytest.raises(InvalidIdentifierError):
            await search_service.search_comics_by_field(catalog_db, "password", "x")

    @pytest.mark.asyncio
    async def test_no_match(self, catalog_db):
        page = await search_service.search_comics_by_field(catalog_db, "characters", "superman")
        assert page.items == []
        assert page.pagination.total == 0


class TestScanlatorStats:
    @pytest.mark.asyncio
    async def test_counts_and_dates(self, catalog_db):
        stats = await search_service.scanlator_stats(catalog_db, "Alice")

        assert stats.total == 3
        assert stats.translated_count == 2
        assert stats.edited_count == 1
        assert stats.real_name == "Alice"
        assert stats.first_release == date(2024, 1, 7)
        assert stats.last_release == date(2024, 1, 8)
        assert stats.days_in_scanlating == 1

    @pytest.mark.asyncio
    async def test_unknown_scanlator(self, catalog_db):
        stats = await search_service.scanlator_stats(catalog_db, "Nobody")

        assert stats.total == 0
        assert stats.real_name is None
        assert stats.first_release is None

    @pytest.mark.asyncio
    async def test_empty_name(self, catalog_db):
        stats = await search_service.scanlator_stats(catalog_db, " ")
        assert stats.total == 0
