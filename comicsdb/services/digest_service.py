"""
Digest Service
Fresh releases, weekly digests, the yearly week index, latest comics and RSS.

Every date window is applied to the effective date
COALESCE(date, pdate, DATE(adddate)) at day granularity. Weeks run
Monday..Sunday and are selected as [monday, next monday) so an issue on a
boundary day belongs to exactly one week.
"""
import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from email.utils import format_datetime
from typing import List, Optional, Tuple
import xml.etree.ElementTree as ET

from sqlalchemy import extract, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.config import settings
from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.core.utils import as_date, today as utc_today
from comicsdb.models.catalog import Comic, Publisher, Series
from comicsdb.schemas.catalog import ComicCard, FreshReleases, Pagination, WeekDigest, WeekSummary
from comicsdb.services.comic_cards import build_comic_cards, comic_rows
from comicsdb.services.image_resolver import image_resolver
from comicsdb.services.search_helpers import (
    effective_date,
    latest_activity,
    live,
    normalize_page,
    offset_for,
)
from comicsdb.services.search_service import paged_total
from comicsdb.utils.text import decode_html_entities, format_issue_number

logger = logging.getLogger(__name__)

GENITIVE_MONTHS = (
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
)

LATEST_MIN, LATEST_MAX = 1, 100
RSS_TITLE = "ComicsDB - База русских переводов комиксов"
RSS_DESCRIPTION = "RSS лента новых переводов комиксов"
ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


# ----- Week helpers -----

def week_bounds(day: date) -> Tuple[date, date]:
    """(monday, sunday) of the week containing day."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def current_week(today: Optional[date] = None) -> Tuple[date, date]:
    return week_bounds(today or utc_today())


def previous_week(monday: date) -> Tuple[date, date]:
    return week_bounds(monday - timedelta(days=7))


def next_week(monday: date) -> Tuple[date, date]:
    return week_bounds(monday + timedelta(days=7))


def format_week_range(start: date, end: date) -> str:
    return f"{start.isoformat()}_{end.isoformat()}"


def parse_week_range(value: str) -> Tuple[date, date]:
    """
    "YYYY-MM-DD_YYYY-MM-DD" (Monday_Sunday) or a single Monday.

    Raises:
        InvalidIdentifierError: malformed or out-of-range dates, or not a Monday..Sunday week
    """
    raw = (value or "").strip()
    parts = raw.split("_")
    try:
        if len(parts) == 1:
            start = date.fromisoformat(parts[0])
            end = start + timedelta(days=6)
        elif len(parts) == 2:
            start = date.fromisoformat(parts[0])
            end = date.fromisoformat(parts[1])
        else:
            raise ValueError(raw)
        # digests link to the neighbouring weeks, so those must exist too
        previous_week(start)
        next_week(start)
    except (ValueError, OverflowError):
        raise InvalidIdentifierError("Invalid week range", value=raw)

    if start.weekday() != 0:
        raise InvalidIdentifierError("Week must start on a Monday", value=raw)
    if end != start + timedelta(days=6):
        raise InvalidIdentifierError("Week must end on the following Sunday", value=raw)
    return start, end


def format_week_header(start: date, end: date) -> str:
    """
    Russian header for a week.

    с 1 по 7 января 2024 / с 29 января по 4 февраля 2024 /
    с 30 декабря 2024 по 5 января 2025
    """
    start_month = GENITIVE_MONTHS[start.month - 1]
    end_month = GENITIVE_MONTHS[end.month - 1]
    if start.year != end.year:
        return f"с {start.day} {start_month} {start.year} по {end.day} {end_month} {end.year}"
    if start.month == end.month:
        return f"с {start.day} по {end.day} {end_month} {end.year}"
    return f"с {start.day} {start_month} по {end.day} {end_month} {end.year}"


async def resolved_cards(db: AsyncSession, rows) -> List[ComicCard]:
    """Comic cards whose display image went through the image resolver."""
    images = await image_resolver.resolve_many(
        (comic.comicvine, comic.thumb or comic.tiny, comic.id, comic.metron_image)
        for comic, _, _ in rows
    )
    return await build_comic_cards(db, rows, images=images)


class DigestService:
    @staticmethod
    async def fresh_releases(
        db: AsyncSession,
        days: Optional[int] = None,
        limit: Optional[int] = None,
        today: Optional[date] = None,
    ) -> FreshReleases:
        """Issues whose effective date falls in [today - days, today], newest first."""
        days = settings.FRESH_RELEASES_DAYS if days is None else max(0, int(days))
        limit = settings.FRESH_RELEASES_LIMIT if limit is None else max(1, int(limit))
        end = today or utc_today()
        start = end - timedelta(days=days)

        eff = effective_date()
        stmt = (
            comic_rows()
            .where(eff >= start, eff <= end)
            .order_by(eff.desc(), Comic.adddate.desc(), Comic.id.desc())
            .limit(limit)
        )

        try:
            rows = [tuple(row) for row in (await db.execute(stmt)).all()]
            items = await resolved_cards(db, rows)
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] Fresh releases failed: {e}")
            items = []

        logger.debug(f"[DIGEST] fresh {start}..{end}: {len(items)} items")
        return FreshReleases(days=days, start=start, end=end, items=items)

    @staticmethod
    async def weekly_digest(
        db: AsyncSession,
        week_range: Optional[str] = None,
        page=1,
        today: Optional[date] = None,
    ) -> WeekDigest:
        """
        One Monday..Sunday week of releases.

        week_range None means the current week. next_week is None when the
        following week has not started yet.
        """
        now = today or utc_today()
        if week_range:
            start, end = parse_week_range(week_range)
        else:
            start, end = current_week(now)

        page = normalize_page(page)
        page_size = settings.DEFAULT_PAGE_SIZE
        following = start + timedelta(days=7)

        eff = effective_date()
        base = comic_rows().where(eff >= start, eff < following)
        stmt = (
            base.add_columns(func.count().over().label("total_count"))
            .order_by(eff.desc(), Comic.adddate.desc(), Comic.id.desc())
            .limit(page_size)
            .offset(offset_for(page, page_size))
        )

        items: List[ComicCard] = []
        total = 0
        try:
            result = (await db.execute(stmt)).all()
            total = await paged_total(db, result, page, result[0].total_count if result else 0, base)
            rows = [(row.Comic, row.Series, row.Publisher) for row in result]
            items = await resolved_cards(db, rows)
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] Week {start} failed: {e}")

        prev_start, prev_end = previous_week(start)
        next_start, next_end = next_week(start)

        return WeekDigest(
            week_range=format_week_range(start, end),
            title=format_week_header(start, end),
            start=start,
            end=end,
            previous_week=format_week_range(prev_start, prev_end),
            next_week=format_week_range(next_start, next_end) if next_start <= now else None,
            items=items,
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    @staticmethod
    async def available_years(db: AsyncSession) -> List[int]:
        """Distinct years of adddate, newest first."""
        year = extract("year", Comic.adddate)
        stmt = (
            select(year.label("year"))
            .where(live(Comic), Comic.adddate.is_not(None))
            .distinct()
            .order_by(year.desc())
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] Available years failed: {e}")
            return []
        return [int(value) for (value,) in result.all() if value is not None]

    @staticmethod
    async def weeks_of_year(
        db: AsyncSession, year: int, today: Optional[date] = None
    ) -> List[WeekSummary]:
        """Every Monday..Sunday week that touches the year, newest first, with counts."""
        try:
            first_monday, _ = week_bounds(date(year, 1, 1))
            last_monday, _ = week_bounds(date(year, 12, 31))
            # the last week may run into the next year
            next_week(last_monday)
        except (ValueError, OverflowError):
            raise InvalidIdentifierError("Invalid year", value=year)

        now = today or utc_today()
        if year == now.year:
            last_monday = min(last_monday, week_bounds(now)[0])
        window_end = last_monday + timedelta(days=7)

        eff = effective_date()
        stmt = (
            select(eff, func.count(Comic.id))
            .join(Series, Comic.series_id == Series.id)
            .join(Publisher, Series.publisher_id == Publisher.id)
            .where(live(Comic, Series, Publisher), eff >= first_monday, eff < window_end)
            .group_by(eff)
        )

        counts: Counter = Counter()
        try:
            for day, count in (await db.execute(stmt)).all():
                day = as_date(day)
                if day is not None:
                    counts[week_bounds(day)[0]] += int(count)
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] Weeks of {year} failed: {e}")

        weeks = []
        monday = last_monday
        while monday >= first_monday:
            sunday = monday + timedelta(days=6)
            weeks.append(WeekSummary(
                week_range=format_week_range(monday, sunday),
                title=format_week_header(monday, sunday),
                start=monday,
                end=sunday,
                count=counts.get(monday, 0),
            ))
            monday -= timedelta(days=7)
        return weeks

    @staticmethod
    async def latest_comics(db: AsyncSession, limit=12) -> List[ComicCard]:
        """Newest activity first; limit is clamped to 1..100."""
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = 12
        limit = max(LATEST_MIN, min(LATEST_MAX, limit))

        stmt = (
            comic_rows()
            .order_by(latest_activity().desc(), Comic.id.desc())
            .limit(limit)
        )
        try:
            rows = [tuple(row) for row in (await db.execute(stmt)).all()]
            return await build_comic_cards(db, rows)
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] Latest comics failed: {e}")
            return []

    @staticmethod
    async def rss_feed(db: AsyncSession, limit: int = 50) -> str:
        """RSS 2.0 document with the most recently added comics."""
        stmt = (
            comic_rows()
            .order_by(Comic.adddate.desc(), Comic.id.desc())
            .limit(limit)
        )
        try:
            rows = [tuple(row) for row in (await db.execute(stmt)).all()]
        except SQLAlchemyError as e:
            logger.error(f"[DIGEST] RSS query failed: {e}")
            rows = []

        base_url = settings.APP_URL.rstrip("/")
        now = datetime.now(timezone.utc)

        rss = ET.Element("rss", {"version": "2.0", "xmlns:atom": ATOM_NAMESPACE})
        channel = ET.SubElement(rss, "channel")
        ET.SubElement(channel, "title").text = RSS_TITLE
        ET.SubElement(channel, "link").text = base_url
        ET.SubElement(channel, "description").text = RSS_DESCRIPTION
        ET.SubElement(channel, "language").text = "ru-RU"
        ET.SubElement(channel, "lastBuildDate").text = format_datetime(now, usegmt=True)
        ET.SubElement(channel, "atom:link", {
            "href": f"{base_url}/rss",
            "rel": "self",
            "type": "application/rss+xml",
        })

        for comic, series, publisher in rows:
            title = f"{decode_html_entities(series.name)} #{format_issue_number(comic.number)}"
            link = comic.link or f"{base_url}/publishers/{publisher.id}/{series.id}/{comic.comicvine}"
            added = comic.adddate or now
            if added.tzinfo is None:
                added = added.replace(tzinfo=timezone.utc)

            item = ET.SubElement(channel, "item")
            ET.SubElement(item, "title").text = title
            ET.SubElement(item, "link").text = link
            ET.SubElement(item, "description").text = (
                f"Новый перевод: {title} ({decode_html_entities(publisher.name)})"
            )
            ET.SubElement(item, "pubDate").text = format_datetime(added, usegmt=True)
            ET.SubElement(item, "guid", {"isPermaLink": "true"}).text = link

        ET.indent(rss, space="  ")
        return XML_DECLARATION + ET.tostring(rss, encoding="unicode") + "\n"


digest_service = DigestService()
