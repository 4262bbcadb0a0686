"""
Search Service
Relevance-ranked series search, comma-joined field search and scanlator stats.

All queries degrade to an empty page on database failure; the error is logged.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.config import settings
from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.core.utils import as_date
from comicsdb.models.catalog import Comic, Publisher, Series
from comicsdb.schemas.catalog import (
    ComicSearchPage,
    Pagination,
    ScanlatorStats,
    SeriesCard,
    SeriesSearchPage,
)
from comicsdb.services.comic_cards import (
    build_comic_card,
    comic_rows,
    event_comic_ids,
    load_site_map,
    publisher_ref,
)
from comicsdb.services.search_helpers import (
    COMIC_SORTS,
    CSV_FIELDS,
    DEFAULT_COMIC_SORT,
    DEFAULT_SERIES_SEARCH_SORT,
    LIKE_ESCAPE,
    SERIES_SEARCH_SORTS,
    build_order_by,
    csv_contains,
    csv_token_condition,
    escape_like,
    extract_name_from_csv,
    extract_name_from_fields,
    image_url,
    live,
    normalize_page,
    normalize_query,
    normalize_sort,
    offset_for,
    relevance_score,
    scanlator_condition,
    series_url,
)
from comicsdb.utils.text import decode_html_entities, encode_html_entities

logger = logging.getLogger(__name__)

SCANLATOR_FIELD = "scanlator"
SEARCH_FIELDS = tuple(CSV_FIELDS) + (SCANLATOR_FIELD,)


def series_cover_columns():
    """Correlated subqueries: first comic's thumb/tiny and the live comics count."""
    first_comic = (
        select(Comic.thumb, Comic.tiny)
        .where(Comic.series_id == Series.id, Comic.date_delete.is_(None))
        .order_by(Comic.number.asc(), Comic.id.asc())
        .limit(1)
    )
    first_thumb = first_comic.with_only_columns(Comic.thumb).scalar_subquery().label("first_thumb")
    first_tiny = first_comic.with_only_columns(Comic.tiny).scalar_subquery().label("first_tiny")
    comics_count = (
        select(func.count(Comic.id))
        .where(Comic.series_id == Series.id, Comic.date_delete.is_(None))
        .scalar_subquery()
        .label("comics_count")
    )
    return first_thumb, first_tiny, comics_count


def series_card_from_row(series: Series, publisher: Publisher, first_thumb, first_tiny,
                         comics_count, relevance=None, last_date=None) -> SeriesCard:
    if first_thumb or first_tiny:
        cover = image_url(first_thumb) or image_url(first_tiny)
    else:
        cover = image_url(series.thumb)
    return SeriesCard(
        id=series.id,
        name=decode_html_entities(series.name),
        volume=series.volume,
        publisher=publisher_ref(publisher),
        cover=cover,
        comics_count=int(comics_count or 0),
        relevance=int(relevance) if relevance is not None else None,
        last_date=as_date(last_date),
        url=series_url(publisher.id, series.id),
    )


async def count_for(db: AsyncSession, stmt: Select) -> int:
    """Total rows a paginated statement would match without LIMIT/OFFSET."""
    subquery = stmt.limit(None).offset(None).order_by(None).subquery()
    result = await db.execute(select(func.count()).select_from(subquery))
    return int(result.scalar() or 0)


async def paged_total(db: AsyncSession, rows: list, page: int, window_total, stmt: Select) -> int:
    """
    Total from COUNT(*) OVER() when the page has rows.

    A page past the end has no row to carry the window total, so fall back
    to a plain count; the caller still returns an empty page.
    """
    if rows:
        return int(window_total or 0)
    if page > 1:
        return await count_for(db, stmt)
    return 0


def name_condition(column, query: str):
    """Case-insensitive substring match on both the raw and entity-encoded query."""
    q = normalize_query(query)
    conditions = [func.lower(column).like(f"%{escape_like(q)}%", escape=LIKE_ESCAPE)]
    encoded = encode_html_entities(q)
    if encoded != q:
        conditions.append(func.lower(column).like(f"%{escape_like(encoded)}%", escape=LIKE_ESCAPE))
    return or_(*conditions)


class SearchService:
    @staticmethod
    async def search_series(
        db: AsyncSession,
        query: str,
        page=1,
        sort: Optional[str] = None,
    ) -> SeriesSearchPage:
        """
        Series whose name contains the query, best matches first.

        Relevance: exact name > prefix > word-boundary > other substring,
        then earlier match position, then name.
        """
        page = normalize_page(page)
        sort = normalize_sort(sort, SERIES_SEARCH_SORTS, DEFAULT_SERIES_SEARCH_SORT)
        page_size = settings.SEARCH_PAGE_SIZE
        q = (query or "").strip()
        empty = SeriesSearchPage(
            query=q, sort=sort, items=[],
            pagination=Pagination(page=page, page_size=page_size, total=0),
        )
        if not q:
            return empty

        score = relevance_score(Series.name, q).label("relevance")
        first_thumb, first_tiny, comics_count = series_cover_columns()
        window_total = func.count().over().label("total_count")

        base = (
            select(Series, Publisher, first_thumb, first_tiny, comics_count, score)
            .join(Publisher, Series.publisher_id == Publisher.id)
            .where(live(Series, Publisher), name_condition(Series.name, q))
        )

        if sort == "relevance":
            order = [score.desc(), Series.name.asc(), Series.id.asc()]
        elif sort == "name_desc":
            order = [Series.name.desc(), Series.id.desc()]
        else:
            order = [Series.name.asc(), Series.id.asc()]

        stmt = (
            base.add_columns(window_total)
            .order_by(*order)
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )

        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[SEARCH] Series search failed for {q!r}: {e}")
            return empty

        items = [
            series_card_from_row(
                row.Series, row.Publisher, row.first_thumb, row.first_tiny,
                row.comics_count, relevance=row.relevance,
            )
            for row in rows
        ]
        logger.debug(f"[SEARCH] series q={q!r} page={page} -> {len(items)}/{total}")
        return SeriesSearchPage(
            query=q, sort=sort, items=items,
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def search_comics_by_field(
        db: AsyncSession,
        field: str,
        query: str,
        page=1,
        sort: Optional[str] = None,
    ) -> ComicSearchPage:
        """
        Comics whose comma-joined field contains the query as a whole token.

        field is one of characters, creators, teams, translate, edit, or
        "scanlator" for translate OR edit.
        """
        if field not in SEARCH_FIELDS:
            raise InvalidIdentifierError(f"Unknown search field: {field}", value=field)

        page = normalize_page(page)
        sort = normalize_sort(sort, COMIC_SORTS, DEFAULT_COMIC_SORT)
        page_size = settings.SEARCH_PAGE_SIZE
        q = (query or "").strip()
        empty = ComicSearchPage(
            query=q, field=field, sort=sort, items=[],
            pagination=Pagination(page=page, page_size=page_size, total=0),
        )
        if not q:
            return empty

        if field == SCANLATOR_FIELD:
            condition = scanlator_condition(q)
            name_fields: Tuple[str, ...] = ("translate", "edit")
        else:
            condition = csv_token_condition(CSV_FIELDS[field], q)
            name_fields = (field,)

        base = comic_rows().where(condition)
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(*build_order_by(sort))
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )

        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
            sites = await load_site_map(db, [row.Comic for row in rows])
        except SQLAlchemyError as e:
            logger.error(f"[SEARCH] {field} search failed for {q!r}: {e}")
            return empty

        event_ids = await event_comic_ids(db)

        items = []
        for row in rows:
            comic = row.Comic
            real_name = extract_name_from_fields(
                (getattr(comic, name) for name in name_fields), q
            )
            items.append(build_comic_card(
                comic, row.Series, row.Publisher, sites, event_ids,
                real_name=decode_html_entities(real_name) if real_name else None,
            ))

        logger.debug(f"[SEARCH] {field} q={q!r} page={page} -> {len(items)}/{total}")
        return ComicSearchPage(
            query=q, field=field, sort=sort, items=items,
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def search_scanlator(
        db: AsyncSession,
        query: str,
        page=1,
        sort: Optional[str] = None,
    ) -> ComicSearchPage:
        return await SearchService.search_comics_by_field(db, SCANLATOR_FIELD, query, page, sort)

    @staticmethod
    async def scanlator_stats(db: AsyncSession, name: str) -> ScanlatorStats:
        """
        Activity summary for one translator/editor.

        One filtered query, then counted in memory: a comic counts as
        translated/edited when the name is a whole token of that field.
        """
        q = (name or "").strip()
        stats = ScanlatorStats(name=q)
        if not q:
            return stats

        stmt = (
            select(Comic.translate, Comic.edit, Comic.date)
            .join(Series, Comic.series_id == Series.id)
            .where(live(Comic, Series), scanlator_condition(q))
            .order_by(Comic.id.asc())
        )
        try:
            rows = (await db.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(f"[SEARCH] Scanlator stats failed for {q!r}: {e}")
            return stats

        real_name: Optional[str] = None
        release_dates: List = []
        for translate, edit, translated_on in rows:
            stats.total += 1
            if csv_contains(translate, q):
                stats.translated_count += 1
            if csv_contains(edit, q):
                stats.edited_count += 1
            if real_name is None:
                real_name = extract_name_from_csv(translate, q) or extract_name_from_csv(edit, q)
            day = as_date(translated_on)
            if day is not None:
                release_dates.append(day)

        stats.real_name = decode_html_entities(real_name) if real_name else None
        if release_dates:
            release_dates.sort()
            stats.first_release = release_dates[0]
            stats.last_release = release_dates[-1]
            stats.days_in_scanlating = max(0, (release_dates[-1] - release_dates[0]).days)

        return stats


search_service = SearchService()
