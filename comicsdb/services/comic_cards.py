"""
Building blocks shared by every service that lists comics: the base
comic/series/publisher select, batch site-name resolution, the cached set
of comic ids that belong to a crossover event, and row -> ComicCard.
"""
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.config import settings
from comicsdb.core.ttl_cache import TTLCache
from comicsdb.core.utils import as_date
from comicsdb.models.catalog import Comic, EventIssue, Publisher, Series, Site
from comicsdb.schemas.catalog import ComicCard, PublisherRef, SeriesRef, SiteRef
from comicsdb.services.search_helpers import comic_url, has_site, image_url, live
from comicsdb.utils.text import decode_html_entities, format_issue_number

logger = logging.getLogger(__name__)

ComicRow = Tuple[Comic, Series, Publisher]

event_comics_cache = TTLCache(ttl_seconds=settings.EVENT_COMICS_CACHE_TTL_SECONDS, max_size=4)


def comic_rows() -> Select:
    """SELECT Comic, Series, Publisher over live rows only."""
    return (
        select(Comic, Series, Publisher)
        .join(Series, Comic.series_id == Series.id)
        .join(Publisher, Series.publisher_id == Publisher.id)
        .where(live(Comic, Series, Publisher))
    )


async def load_site_map(db: AsyncSession, comics: Iterable[Comic]) -> Dict[str, Site]:
    """One query for every site referenced by the given comics."""
    site_ids = set()
    for comic in comics:
        for site_id in (comic.site, comic.site2):
            if has_site(site_id):
                site_ids.add(site_id)

    if not site_ids:
        return {}

    result = await db.execute(
        select(Site).where(Site.id.in_(site_ids), Site.date_delete.is_(None))
    )
    return {site.id: site for site in result.scalars().all()}


async def _fetch_event_comic_ids(db: AsyncSession) -> FrozenSet[int]:
    result = await db.execute(
        select(EventIssue.comics).where(EventIssue.date_delete.is_(None)).distinct()
    )
    ids = set()
    for (value,) in result.all():
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            continue
    return frozenset(ids)


async def event_comic_ids(db: AsyncSession) -> FrozenSet[int]:
    """
    Comic ids referenced by any crossover event reading order.

    Cached for EVENT_COMICS_CACHE_TTL_SECONDS. A failed query yields an
    empty set and is not cached.
    """
    try:
        return await event_comics_cache.get_or_fetch(
            "event_comic_ids", lambda: _fetch_event_comic_ids(db)
        )
    except SQLAlchemyError as e:
        logger.error(f"[EVENTS] Could not load event comic ids: {e}")
        return frozenset()


def site_ref(site: Optional[Site]) -> Optional[SiteRef]:
    if site is None:
        return None
    return SiteRef(id=site.id, name=decode_html_entities(site.name), url=site.url)


def publisher_ref(publisher: Publisher) -> PublisherRef:
    return PublisherRef(id=publisher.id, name=decode_html_entities(publisher.name))


def series_ref(series: Series, publisher: Publisher) -> SeriesRef:
    return SeriesRef(
        id=series.id,
        name=decode_html_entities(series.name),
        volume=series.volume,
        publisher=publisher_ref(publisher),
    )


def display_image(comic: Comic) -> Optional[str]:
    """Cached Metron cover when present, else the ComicVine thumb."""
    if comic.metron_image:
        return comic.metron_image
    return image_url(comic.thumb) or image_url(comic.tiny)


def build_comic_card(
    comic: Comic,
    series: Series,
    publisher: Publisher,
    sites: Dict[str, Site],
    event_ids: FrozenSet[int] = frozenset(),
    real_name: Optional[str] = None,
    image: Optional[str] = None,
) -> ComicCard:
    site = sites.get(comic.site) if has_site(comic.site) else None
    site2 = sites.get(comic.site2) if has_site(comic.site2) else None

    return ComicCard(
        id=comic.id,
        comicvine=comic.comicvine,
        number=format_issue_number(comic.number),
        name=decode_html_entities(comic.name) or None,
        series=series_ref(series, publisher),
        date=as_date(comic.date),
        pdate=as_date(comic.pdate),
        adddate=comic.adddate,
        effective_date=as_date(comic.date) or as_date(comic.pdate) or as_date(comic.adddate),
        image=image or display_image(comic),
        thumb=image_url(comic.thumb),
        tiny=image_url(comic.tiny),
        site=site_ref(site),
        site2=site_ref(site2),
        is_joint=has_site(comic.site2),
        link=comic.link,
        link2=comic.link2,
        translate=decode_html_entities(comic.translate),
        edit=decode_html_entities(comic.edit),
        url=comic_url(publisher.id, series.id, comic.comicvine),
        has_global_event=comic.id in event_ids,
        real_name=real_name,
    )


async def build_comic_cards(
    db: AsyncSession,
    rows: Sequence[ComicRow],
    with_events: bool = False,
    images: Optional[List[Optional[str]]] = None,
) -> List[ComicCard]:
    """Cards for a page of rows with sites resolved in one batch."""
    comics = [row[0] for row in rows]
    sites = await load_site_map(db, comics)
    event_ids = await event_comic_ids(db) if with_events else frozenset()

    cards = []
    for index, (comic, series, publisher) in enumerate(rows):
        image = images[index] if images is not None else None
        cards.append(build_comic_card(comic, series, publisher, sites, event_ids, image=image))
    return cards
