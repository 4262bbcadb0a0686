"""
Catalog Service
Browsing queries: publishers, series, comics, genres, sites and crossover events.

Single-entity lookups return None when the row is missing or soft deleted;
routes turn that into 404. List queries degrade to an empty page on
database errors.
"""
import logging
import random
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.config import settings
from comicsdb.core.utils import as_date
from comicsdb.models.catalog import (
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
from comicsdb.schemas.catalog import (
    ComicDetail,
    ComicImages,
    ComicIssuePage,
    ComicPage,
    EventCategoryGroup,
    EventDetail,
    EventIssueItem,
    EventPublisher,
    EventSummary,
    GenreDetail,
    GenreItem,
    GenrePage,
    IssueNavigation,
    Pagination,
    PublisherDetail,
    PublisherEvents,
    PublisherListItem,
    PublisherPage,
    SeriesDetail,
    SeriesListItem,
    SeriesPage,
    SiteDetail,
    SiteItem,
    SitePage,
    SiteSeriesGroup,
    Translation,
)
from comicsdb.services.comic_cards import (
    build_comic_cards,
    comic_rows,
    load_site_map,
    publisher_ref,
    series_ref,
    site_ref,
)
from comicsdb.services.image_resolver import image_resolver, upgrade_scale
from comicsdb.services.search_helpers import (
    DEFAULT_PUBLISHER_SORT,
    PUBLISHER_SORTS,
    comic_url,
    effective_date,
    has_site,
    image_url,
    live,
    normalize_page,
    normalize_sort,
    offset_for,
    series_url,
    translation_status,
)
from comicsdb.services.search_service import paged_total, series_card_from_row, series_cover_columns
from comicsdb.utils.text import decode_html_entities, format_issue_number

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


def clamp_limit(value, default: int) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(MAX_LIST_LIMIT, limit))


def series_list_item(series: Series, publisher: Publisher, comics_count=0) -> SeriesListItem:
    return SeriesListItem(
        id=series.id,
        name=decode_html_entities(series.name),
        volume=series.volume,
        publisher=publisher_ref(publisher),
        thumb=image_url(series.thumb),
        comics_count=int(comics_count or 0),
        status=series.series_status,
        updated=series.updated,
        url=series_url(publisher.id, series.id),
    )


def live_comics_count():
    return (
        select(func.count(Comic.id))
        .where(Comic.series_id == Series.id, Comic.date_delete.is_(None))
        .scalar_subquery()
        .label("comics_count")
    )


async def comic_images(comic: Comic) -> ComicImages:
    """
    Four display sizes for one comic.

    A Metron cover, when one exists, replaces every size; otherwise each
    ComicVine size is upgraded on its own.
    """
    primary = comic.thumb or comic.tiny or comic.small or comic.super_url
    resolved = await image_resolver.resolve(
        comic.comicvine, primary, comic_id=comic.id, cached=comic.metron_image
    )
    if resolved and resolved != upgrade_scale(primary):
        return ComicImages(thumb=resolved, tiny=resolved, small=resolved, super_url=resolved)
    return ComicImages(
        thumb=upgrade_scale(comic.thumb),
        tiny=upgrade_scale(comic.tiny),
        small=upgrade_scale(comic.small),
        super_url=upgrade_scale(comic.super_url),
    )


def comic_detail(comic: Comic, series: Series, publisher: Publisher,
                 sites: Dict[str, Site], images: ComicImages) -> ComicDetail:
    site = sites.get(comic.site) if has_site(comic.site) else None
    site2 = sites.get(comic.site2) if has_site(comic.site2) else None
    return ComicDetail(
        id=comic.id,
        comicvine=comic.comicvine,
        number=format_issue_number(comic.number),
        name=decode_html_entities(comic.name) or None,
        series=series_ref(series, publisher),
        date=as_date(comic.date),
        pdate=as_date(comic.pdate),
        adddate=comic.adddate,
        images=images,
        translate=decode_html_entities(comic.translate),
        edit=decode_html_entities(comic.edit),
        creators=decode_html_entities(comic.creators),
        characters=decode_html_entities(comic.characters),
        teams=decode_html_entities(comic.teams),
        site=site_ref(site),
        site2=site_ref(site2),
        is_joint=site2 is not None,
        link=comic.link,
        link2=comic.link2,
        url=comic_url(publisher.id, series.id, comic.comicvine),
    )


def translations_for(comics: List[Comic], sites: Dict[str, Site]) -> List[Translation]:
    """
    One entry per usable site link.

    A row needs a known site and a link; a row whose only usable pair is
    site2/link2 is listed under site2 on its own.
    """
    entries = []
    for comic in comics:
        site = sites.get(comic.site) if has_site(comic.site) else None
        site2 = sites.get(comic.site2) if has_site(comic.site2) else None
        common = dict(
            translate=decode_html_entities(comic.translate),
            edit=decode_html_entities(comic.edit),
            date=as_date(comic.date),
        )
        if site is not None and comic.link:
            entries.append(Translation(
                comic_id=comic.id,
                site=site_ref(site),
                site2=site_ref(site2),
                link=comic.link,
                is_joint=site2 is not None,
                **common,
            ))
        if site2 is not None and comic.link2 and (site is None or not comic.link):
            entries.append(Translation(
                comic_id=comic.id,
                site=site_ref(site2),
                link=comic.link2,
                is_joint=False,
                **common,
            ))
    return entries


class CatalogService:
    # ----- Publishers -----

    @staticmethod
    async def list_publishers(db: AsyncSession, page=1, sort: Optional[str] = None) -> PublisherPage:
        page = normalize_page(page)
        sort = normalize_sort(sort, PUBLISHER_SORTS, DEFAULT_PUBLISHER_SORT)
        page_size = settings.PUBLISHERS_PAGE_SIZE

        series_count = func.count(func.distinct(Series.id)).label("series_count")
        comics_count = func.count(Comic.id).label("comics_count")
        order = {
            "name_asc": [Publisher.name.asc()],
            "name_desc": [Publisher.name.desc()],
            "series_asc": [series_count.asc(), Publisher.name.asc()],
            "series_desc": [series_count.desc(), Publisher.name.asc()],
            "comics_asc": [comics_count.asc(), Publisher.name.asc()],
            "comics_desc": [comics_count.desc(), Publisher.name.asc()],
        }[sort]

        base = (
            select(Publisher.id, Publisher.name, series_count, comics_count)
            .outerjoin(Series, (Series.publisher_id == Publisher.id) & Series.date_delete.is_(None))
            .outerjoin(Comic, (Comic.series_id == Series.id) & Comic.date_delete.is_(None))
            .where(live(Publisher))
            .group_by(Publisher.id, Publisher.name)
        )
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(*order, Publisher.id.asc())
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )

        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Publisher list failed: {e}")
            rows, total = [], 0

        items = [
            PublisherListItem(
                id=row.id,
                name=decode_html_entities(row.name),
                series_count=int(row.series_count or 0),
                comics_count=int(row.comics_count or 0),
            )
            for row in rows
        ]
        return PublisherPage(
            sort=sort, items=items,
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def get_publisher(db: AsyncSession, publisher_id: int, page=1) -> Optional[PublisherDetail]:
        """Publisher with its series by name, covers and comic counts."""
        page = normalize_page(page)
        page_size = settings.SERIES_PAGE_SIZE
        try:
            publisher = (await db.execute(
                select(Publisher).where(Publisher.id == publisher_id, live(Publisher))
            )).scalar_one_or_none()
            if publisher is None:
                return None

            first_thumb, first_tiny, comics_count = series_cover_columns()
            base = (
                select(Series, first_thumb, first_tiny, comics_count)
                .where(Series.publisher_id == publisher_id, live(Series))
            )
            rows = (await db.execute(
                base.add_columns(func.count().over().label("total_count"))
                .order_by(Series.name.asc(), Series.id.asc())
                .limit(page_size)
                .offset(offset_for(page, page_size))
            )).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Publisher {publisher_id} failed: {e}")
            return None

        return PublisherDetail(
            id=publisher.id,
            name=decode_html_entities(publisher.name),
            series=[
                series_card_from_row(row.Series, publisher, row.first_thumb, row.first_tiny, row.comics_count)
                for row in rows
            ],
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    # ----- Series -----

    @staticmethod
    async def list_series(
        db: AsyncSession, page=1, limit=None, publisher_id: Optional[int] = None
    ) -> SeriesPage:
        """Recently updated series first."""
        page = normalize_page(page)
        limit = clamp_limit(limit, settings.SERIES_PAGE_SIZE)

        base = (
            select(Series, Publisher, live_comics_count())
            .join(Publisher, Series.publisher_id == Publisher.id)
            .where(live(Series, Publisher))
        )
        if publisher_id is not None:
            base = base.where(Series.publisher_id == publisher_id)

        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(Series.updated.desc(), Series.id.desc())
            .limit(limit)
            .offset(offset_for(page, limit))
        )
        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Series list failed: {e}")
            rows, total = [], 0

        return SeriesPage(
            items=[series_list_item(row.Series, row.Publisher, row.comics_count) for row in rows],
            pagination=Pagination(page=page, page_size=limit, total=total),
        )

    @staticmethod
    async def get_series(db: AsyncSession, series_id: int) -> Optional[SeriesDetail]:
        try:
            row = (await db.execute(
                select(Series, Publisher)
                .join(Publisher, Series.publisher_id == Publisher.id)
                .where(Series.id == series_id, live(Series, Publisher))
            )).first()
            if row is None:
                return None
            series, publisher = row

            genres = (await db.execute(
                select(Genre.name)
                .join(SeriesGenre, SeriesGenre.genre_id == Genre.id)
                .where(SeriesGenre.series_id == series_id, live(Genre))
                .order_by(Genre.name.asc())
            )).scalars().all()

            comic_result = await db.execute(
                comic_rows()
                .where(Comic.series_id == series_id)
                .order_by(Comic.number.asc(), Comic.adddate.desc(), Comic.id.asc())
            )
            rows = [tuple(r) for r in comic_result.all()]
            comics = await build_comic_cards(db, rows, with_events=True)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Series {series_id} failed: {e}")
            return None

        total_issues = series.comicvine or series.total or 0
        translated = len(rows)
        dates = [as_date(comic.date) for comic, _, _ in rows if comic.date]
        last_translation = max(dates) if dates else None

        return SeriesDetail(
            id=series.id,
            name=decode_html_entities(series.name),
            volume=series.volume,
            publisher=publisher_ref(publisher),
            thumb=image_url(series.thumb),
            small=image_url(series.small),
            super_url=image_url(series.super_url),
            status=series.series_status,
            total_issues=total_issues,
            translated=translated,
            translation_status=translation_status(total_issues, translated, last_translation),
            genres=[decode_html_entities(name) for name in genres],
            updated=series.updated,
            comics=comics,
        )

    @staticmethod
    async def random_series(db: AsyncSession) -> Optional[SeriesListItem]:
        where = live(Series, Publisher)
        try:
            total = (await db.execute(
                select(func.count(Series.id))
                .join(Publisher, Series.publisher_id == Publisher.id)
                .where(where)
            )).scalar() or 0
            if not total:
                return None
            row = (await db.execute(
                select(Series, Publisher, live_comics_count())
                .join(Publisher, Series.publisher_id == Publisher.id)
                .where(where)
                .order_by(Series.id.asc())
                .offset(random.randrange(total))
                .limit(1)
            )).first()
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Random series failed: {e}")
            return None
        if row is None:
            return None
        return series_list_item(row.Series, row.Publisher, row.comics_count)

    # ----- Comics -----

    @staticmethod
    async def list_comics(db: AsyncSession, page=1, limit=None) -> ComicPage:
        page = normalize_page(page)
        limit = clamp_limit(limit, settings.COMICS_PAGE_SIZE)

        base = comic_rows()
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(Comic.adddate.desc(), Comic.id.desc())
            .limit(limit)
            .offset(offset_for(page, limit))
        )
        try:
            result = (await db.execute(stmt)).all()
            total = await paged_total(db, result, page, result[0].total_count if result else 0, base)
            rows = [(r.Comic, r.Series, r.Publisher) for r in result]
            items = await build_comic_cards(db, rows)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Comic list failed: {e}")
            items, total = [], 0

        return ComicPage(items=items, pagination=Pagination(page=page, page_size=limit, total=total))

    @staticmethod
    async def get_comic(db: AsyncSession, comic_id: int) -> Optional[ComicDetail]:
        try:
            row = (await db.execute(comic_rows().where(Comic.id == comic_id))).first()
            if row is None:
                return None
            comic, series, publisher = row
            sites = await load_site_map(db, [comic])
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Comic {comic_id} failed: {e}")
            return None

        images = await comic_images(comic)
        return comic_detail(comic, series, publisher, sites, images)

    @staticmethod
    async def get_comic_issue(
        db: AsyncSession,
        series_id: int,
        comicvine_id: int,
        publisher_id: Optional[int] = None,
    ) -> Optional[ComicIssuePage]:
        """
        Issue page: every translation sharing the ComicVine id plus
        previous/next issue by number within the series.
        """
        try:
            rows = (await db.execute(
                comic_rows()
                .where(Comic.series_id == series_id, Comic.comicvine == comicvine_id)
                .order_by(Comic.adddate.desc(), Comic.id.desc())
            )).all()
            if not rows:
                return None
            comic, series, publisher = rows[0]
            if publisher_id is not None and publisher.id != publisher_id:
                return None

            translations_rows = [r.Comic for r in rows]
            sites = await load_site_map(db, translations_rows)

            numbers = (await db.execute(
                select(Comic.number, func.min(Comic.comicvine))
                .where(Comic.series_id == series_id, live(Comic))
                .group_by(Comic.number)
                .order_by(Comic.number.asc())
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Issue {series_id}/{comicvine_id} failed: {e}")
            return None

        previous_issue = next_issue = None
        index = next((i for i, (number, _) in enumerate(numbers) if number == comic.number), None)
        if index is not None:
            if index > 0:
                previous_issue = _navigation(publisher.id, series.id, *numbers[index - 1])
            if index < len(numbers) - 1:
                next_issue = _navigation(publisher.id, series.id, *numbers[index + 1])

        images = await comic_images(comic)
        return ComicIssuePage(
            comic=comic_detail(comic, series, publisher, sites, images),
            translations=translations_for(translations_rows, sites),
            previous_issue=previous_issue,
            next_issue=next_issue,
        )

    # ----- Genres -----

    @staticmethod
    async def list_genres(db: AsyncSession, page=1) -> GenrePage:
        page = normalize_page(page)
        page_size = settings.DEFAULT_PAGE_SIZE

        series_count = func.count(Series.id).label("series_count")
        base = (
            select(Genre.id, Genre.name, series_count)
            .outerjoin(SeriesGenre, SeriesGenre.genre_id == Genre.id)
            .outerjoin(Series, (Series.id == SeriesGenre.series_id) & Series.date_delete.is_(None))
            .where(live(Genre))
            .group_by(Genre.id, Genre.name)
        )
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(Genre.name.asc(), Genre.id.asc())
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )
        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Genre list failed: {e}")
            rows, total = [], 0

        return GenrePage(
            items=[
                GenreItem(id=row.id, name=decode_html_entities(row.name), series_count=int(row.series_count or 0))
                for row in rows
            ],
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def get_genre(db: AsyncSession, genre_id: int, page=1) -> Optional[GenreDetail]:
        page = normalize_page(page)
        page_size = settings.SERIES_PAGE_SIZE
        try:
            genre = (await db.execute(
                select(Genre).where(Genre.id == genre_id, live(Genre))
            )).scalar_one_or_none()
            if genre is None:
                return None

            first_thumb, first_tiny, comics_count = series_cover_columns()
            base = (
                select(Series, Publisher, first_thumb, first_tiny, comics_count)
                .join(Publisher, Series.publisher_id == Publisher.id)
                .join(SeriesGenre, SeriesGenre.series_id == Series.id)
                .where(SeriesGenre.genre_id == genre_id, live(Series, Publisher))
            )
            rows = (await db.execute(
                base.add_columns(func.count().over().label("total_count"))
                .order_by(Series.name.asc(), Series.id.asc())
                .limit(page_size)
                .offset(offset_for(page, page_size))
            )).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Genre {genre_id} failed: {e}")
            return None

        return GenreDetail(
            id=genre.id,
            name=decode_html_entities(genre.name),
            series=[
                series_card_from_row(row.Series, row.Publisher, row.first_thumb, row.first_tiny, row.comics_count)
                for row in rows
            ],
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    # ----- Sites -----

    @staticmethod
    async def list_sites(db: AsyncSession, page=1) -> SitePage:
        """Visible sites by name."""
        page = normalize_page(page)
        page_size = settings.DEFAULT_PAGE_SIZE

        base = select(Site).where(
            live(Site), or_(Site.hidesite.is_(None), Site.hidesite.is_(False))
        )
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(Site.name.asc(), Site.id.asc())
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )
        try:
            rows = (await db.execute(stmt)).all()
            total = await paged_total(db, rows, page, rows[0].total_count if rows else 0, base)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Site list failed: {e}")
            rows, total = [], 0

        return SitePage(
            items=[
                SiteItem(
                    id=row.Site.id,
                    name=decode_html_entities(row.Site.name),
                    url=row.Site.url,
                    numofcoms=row.Site.numofcoms or 0,
                )
                for row in rows
            ],
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def get_site(db: AsyncSession, site_id: str) -> Optional[SiteDetail]:
        """
        Site page: totals plus its comics grouped by series, most recently
        active series first.
        """
        on_site = or_(Comic.site == site_id, Comic.site2 == site_id)
        activity = effective_date()
        try:
            site = (await db.execute(
                select(Site).where(Site.id == site_id, live(Site))
            )).scalar_one_or_none()
            if site is None:
                return None

            totals = (await db.execute(
                select(func.count(Comic.id), func.min(activity), func.max(activity))
                .join(Series, Comic.series_id == Series.id)
                .join(Publisher, Series.publisher_id == Publisher.id)
                .where(live(Comic, Series, Publisher), on_site)
            )).one()

            result = await db.execute(
                comic_rows()
                .where(on_site)
                .order_by(Series.id.asc(), Comic.number.asc(), Comic.id.asc())
            )
            rows = [tuple(r) for r in result.all()]
            cards = await build_comic_cards(db, rows)
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Site {site_id} failed: {e}")
            return None

        grouped: "OrderedDict[int, Tuple[Series, Publisher, list, list]]" = OrderedDict()
        for (comic, series, publisher), card in zip(rows, cards):
            entry = grouped.setdefault(series.id, (series, publisher, [], []))
            entry[2].append(comic)
            entry[3].append(card)

        groups = []
        for series, publisher, comics, series_cards in grouped.values():
            last_date = max(
                (card.date or card.pdate or as_date(card.adddate) for card in series_cards
                 if card.date or card.pdate or card.adddate),
                default=None,
            )
            first = comics[0]
            groups.append(SiteSeriesGroup(
                series=series_card_from_row(
                    series, publisher, first.thumb, first.tiny, len(comics), last_date=last_date,
                ),
                comics=series_cards,
            ))
        groups.sort(key=lambda g: (g.series.last_date is not None, g.series.last_date), reverse=True)

        total_comics, first_release, last_release = totals
        return SiteDetail(
            id=site.id,
            name=decode_html_entities(site.name),
            url=site.url,
            total_comics=int(total_comics or 0),
            total_series=len(groups),
            first_release=as_date(first_release),
            last_release=as_date(last_release),
            groups=groups,
        )

    # ----- Crossover events -----

    @staticmethod
    async def list_event_publishers(db: AsyncSession) -> List[EventPublisher]:
        try:
            rows = (await db.execute(
                select(Publisher.id, Publisher.name, func.count(GlobalEvent.id))
                .join(GlobalEvent, GlobalEvent.publisher_id == Publisher.id)
                .where(live(Publisher, GlobalEvent))
                .group_by(Publisher.id, Publisher.name)
                .order_by(Publisher.name.asc())
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[EVENTS] Publisher list failed: {e}")
            return []
        return [
            EventPublisher(id=pid, name=decode_html_entities(name), events_count=int(count or 0))
            for pid, name, count in rows
        ]

    @staticmethod
    async def list_publisher_events(db: AsyncSession, publisher_id: int) -> Optional[PublisherEvents]:
        """Events of one publisher grouped by category; events in reading order."""
        try:
            publisher = (await db.execute(
                select(Publisher).where(Publisher.id == publisher_id, live(Publisher))
            )).scalar_one_or_none()
            if publisher is None:
                return None

            rows = (await db.execute(
                select(EventCategory, GlobalEvent)
                .join(GlobalEvent, GlobalEvent.category_id == EventCategory.id)
                .where(EventCategory.publisher_id == publisher_id, live(EventCategory, GlobalEvent))
                .order_by(EventCategory.name.asc(), EventCategory.id.asc(),
                          GlobalEvent.sort_order.asc(), GlobalEvent.name.asc())
            )).all()

            counts = dict((await db.execute(
                select(EventIssue.event_id, func.count(EventIssue.id))
                .join(GlobalEvent, GlobalEvent.id == EventIssue.event_id)
                .where(GlobalEvent.publisher_id == publisher_id, live(EventIssue, GlobalEvent))
                .group_by(EventIssue.event_id)
            )).all())
        except SQLAlchemyError as e:
            logger.error(f"[EVENTS] Publisher {publisher_id} events failed: {e}")
            return None

        categories: "OrderedDict[int, EventCategoryGroup]" = OrderedDict()
        for category, event in rows:
            group = categories.get(category.id)
            if group is None:
                group = EventCategoryGroup(id=category.id, name=decode_html_entities(category.name), events=[])
                categories[category.id] = group
            group.events.append(EventSummary(
                id=event.id,
                name=decode_html_entities(event.name),
                years=event.years,
                order=event.sort_order or 0,
                comics_count=int(counts.get(event.id, 0)),
            ))

        return PublisherEvents(publisher=publisher_ref(publisher), categories=list(categories.values()))

    @staticmethod
    async def get_event(db: AsyncSession, event_id: str) -> Optional[EventDetail]:
        """
        Event with its reading order. cdb_globcom.comics holds either a comic
        id or a ComicVine id; a live comic matching either marks the entry
        as translated, id matches taking precedence.
        """
        try:
            event = (await db.execute(
                select(GlobalEvent).where(GlobalEvent.id == event_id, live(GlobalEvent))
            )).scalar_one_or_none()
            if event is None:
                return None

            publisher = None
            if event.publisher_id is not None:
                publisher = (await db.execute(
                    select(Publisher).where(Publisher.id == event.publisher_id, live(Publisher))
                )).scalar_one_or_none()
            category = None
            if event.category_id is not None:
                category = (await db.execute(
                    select(EventCategory).where(EventCategory.id == event.category_id, live(EventCategory))
                )).scalar_one_or_none()

            issues = (await db.execute(
                select(EventIssue)
                .where(EventIssue.event_id == event_id, live(EventIssue))
                .order_by(EventIssue.sort_order.asc(), EventIssue.pdate.asc(), EventIssue.id.asc())
            )).scalars().all()

            refs = {_issue_ref(issue) for issue in issues} - {None}
            by_id: Dict[int, str] = {}
            by_comicvine: Dict[int, str] = {}
            if refs:
                matches = (await db.execute(
                    comic_rows()
                    .where(or_(Comic.id.in_(sorted(refs)), Comic.comicvine.in_(sorted(refs))))
                    .order_by(Comic.id.asc())
                )).all()
                for comic, series, pub in matches:
                    url = comic_url(pub.id, series.id, comic.comicvine)
                    by_id.setdefault(comic.id, url)
                    if comic.comicvine:
                        by_comicvine.setdefault(comic.comicvine, url)
        except SQLAlchemyError as e:
            logger.error(f"[EVENTS] Event {event_id} failed: {e}")
            return None

        items = []
        for issue in issues:
            ref = _issue_ref(issue)
            url = None
            if ref is not None:
                url = by_id.get(ref) or by_comicvine.get(ref)
            items.append(EventIssueItem(
                id=issue.id,
                name=decode_html_entities(issue.name) or None,
                number=issue.number,
                order=issue.sort_order or 0,
                pdate=as_date(issue.pdate),
                image=image_url(issue.thumb) or image_url(issue.tiny),
                has_translation=url is not None,
                comic_url=url,
            ))

        return EventDetail(
            id=event.id,
            name=decode_html_entities(event.name),
            years=event.years,
            text=decode_html_entities(event.text) or None,
            chronology=decode_html_entities(event.chronology) or None,
            publisher=publisher_ref(publisher) if publisher is not None else None,
            category=decode_html_entities(category.name) if category is not None else None,
            issues=items,
        )


def _navigation(publisher_id: int, series_id: int, number, comicvine) -> Optional[IssueNavigation]:
    if comicvine is None:
        return None
    return IssueNavigation(
        comicvine=int(comicvine),
        number=format_issue_number(number),
        url=comic_url(publisher_id, series_id, int(comicvine)),
    )


def _issue_ref(issue: EventIssue) -> Optional[int]:
    try:
        value = int((issue.comics or "").strip())
    except ValueError:
        return None
    return value if value > 0 else None


catalog_service = CatalogService()
