"""
Statistics Service
Translation dynamics, site totals and the "year in review" tables.

Each metric runs one filtered query and folds comma-joined scanlator
tokens in Python, so no dialect-specific string splitting is needed.
Names are grouped case-insensitively; the first spelling seen is shown.
Every metric degrades to empty on database errors.

The combined page is cached in Redis (when configured) for
STATS_CACHE_TTL_SECONDS, unless any metric degraded.
"""
import logging
from collections import Counter, defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core import redis_client
from comicsdb.core.config import settings
from comicsdb.core.utils import as_date, today as utc_today
from comicsdb.models.catalog import Comic, Publisher, Series, Site
from comicsdb.schemas.catalog import MostTranslatedComic, NamedCount, SiteStat, StatsResponse
from comicsdb.services.comic_cards import series_ref
from comicsdb.services.search_helpers import has_site, live, split_csv
from comicsdb.utils.text import decode_html_entities, format_issue_number

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "stats:{year}"
JOINT_WEIGHT = 0.5


def year_bounds(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year + 1, 1, 1)


def in_year(year: int):
    start, end = year_bounds(year)
    return and_(Comic.date.is_not(None), Comic.date >= start, Comic.date < end)


def scanlator_tokens(translate: Optional[str], edit: Optional[str]) -> Dict[str, str]:
    """lowercased name -> spelling, for everyone credited on one comic."""
    names: Dict[str, str] = {}
    for token in split_csv(translate) + split_csv(edit):
        names.setdefault(token.lower(), token)
    return names


def count_scanlators(rows: Iterable[Tuple[Optional[str], Optional[str]]]) -> Tuple[Counter, Dict[str, str]]:
    """Distinct comics per scanlator; translating and editing one comic counts once."""
    counts: Counter = Counter()
    spelling: Dict[str, str] = {}
    for translate, edit in rows:
        for key, name in scanlator_tokens(translate, edit).items():
            counts[key] += 1
            spelling.setdefault(key, name)
    return counts, spelling


def top_named(counts: Counter, spelling: Dict[str, str], limit: int) -> List[NamedCount]:
    ranked = sorted(counts.items(), key=lambda item: (-item[1], spelling[item[0]].lower()))
    return [
        NamedCount(name=decode_html_entities(spelling[key]), count=count)
        for key, count in ranked[:limit]
    ]


def record_failure(failures: Optional[List[str]], metric: str) -> None:
    """Note a metric that degraded, so the combined page is not cached."""
    if failures is not None:
        failures.append(metric)


def site_weights(site: Optional[str], site2: Optional[str]) -> List[Tuple[str, float]]:
    """A joint release counts half for each site."""
    if has_site(site2):
        weights = [(site2, JOINT_WEIGHT)]
        if has_site(site):
            weights.insert(0, (site, JOINT_WEIGHT))
        return weights
    if has_site(site):
        return [(site, 1.0)]
    return []


class StatsService:
    @staticmethod
    async def translation_dynamics(db: AsyncSession, failures: Optional[List[str]] = None) -> Dict[str, int]:
        """Translated comics per YYYY-MM of the translation date, oldest first."""
        try:
            rows = (await db.execute(
                select(Comic.date).where(live(Comic), Comic.date.is_not(None))
            )).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Translation dynamics failed: {e}")
            record_failure(failures, "translation_dynamics")
            return {}

        months: Counter = Counter()
        for value in rows:
            day = as_date(value)
            if day is not None:
                months[f"{day.year}-{day.month:02d}"] += 1
        return dict(sorted(months.items()))

    @staticmethod
    async def site_stats(db: AsyncSession, failures: Optional[List[str]] = None) -> List[SiteStat]:
        """Visible sites by numofcoms, with own and joint release counts."""
        try:
            sites = (await db.execute(
                select(Site).where(
                    live(Site), or_(Site.hidesite.is_(None), Site.hidesite.is_(False))
                )
            )).scalars().all()
            releases = (await db.execute(
                select(Comic.site, Comic.site2).where(live(Comic))
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Site stats failed: {e}")
            record_failure(failures, "sites")
            return []

        own: Counter = Counter()
        joint: Counter = Counter()
        for site, site2 in releases:
            for site_id, weight in site_weights(site, site2):
                if weight == 1.0:
                    own[site_id] += 1
                else:
                    joint[site_id] += 1

        stats = [
            SiteStat(
                id=site.id,
                name=decode_html_entities(site.name),
                numofcoms=site.numofcoms or 0,
                own=own.get(site.id, 0),
                joint=joint.get(site.id, 0),
            )
            for site in sites
        ]
        stats.sort(key=lambda s: (-s.numofcoms, s.name.lower()))
        return stats

    @staticmethod
    async def top_scanlators_of_year(
        db: AsyncSession, year: int, limit: int = 10, failures: Optional[List[str]] = None
    ) -> List[NamedCount]:
        try:
            rows = (await db.execute(
                select(Comic.translate, Comic.edit)
                .where(live(Comic), in_year(year))
                .order_by(Comic.id.asc())
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Top scanlators {year} failed: {e}")
            record_failure(failures, "top_scanlators_year")
            return []
        counts, spelling = count_scanlators(rows)
        return top_named(counts, spelling, limit)

    @staticmethod
    async def top_scanlators_all_time(
        db: AsyncSession, limit: int = 30, failures: Optional[List[str]] = None
    ) -> List[NamedCount]:
        try:
            rows = (await db.execute(
                select(Comic.translate, Comic.edit).where(
                    live(Comic), or_(Comic.translate.is_not(None), Comic.edit.is_not(None))
                ).order_by(Comic.id.asc())
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Top scanlators (all time) failed: {e}")
            record_failure(failures, "top_scanlators_all_time")
            return []
        counts, spelling = count_scanlators(rows)
        return top_named(counts, spelling, limit)

    @staticmethod
    async def most_translated_comic_of_year(
        db: AsyncSession, year: int, failures: Optional[List[str]] = None
    ) -> Optional[MostTranslatedComic]:
        """The issue with the most translations dated in the year."""
        translations = func.count(Comic.id).label("translations")
        try:
            top = (await db.execute(
                select(Comic.comicvine, Comic.series_id, translations)
                .where(live(Comic), in_year(year), Comic.comicvine.is_not(None))
                .group_by(Comic.comicvine, Comic.series_id)
                .order_by(translations.desc(), Comic.comicvine.asc())
                .limit(1)
            )).first()
            if top is None:
                return None

            row = (await db.execute(
                select(Comic.number, Series, Publisher)
                .join(Series, Comic.series_id == Series.id)
                .join(Publisher, Series.publisher_id == Publisher.id)
                .where(
                    Comic.comicvine == top.comicvine,
                    Comic.series_id == top.series_id,
                    live(Comic, Series, Publisher),
                )
                .order_by(Comic.number.asc())
                .limit(1)
            )).first()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Most translated comic {year} failed: {e}")
            record_failure(failures, "most_translated_comic")
            return None

        if row is None:
            return None
        number, series, publisher = row
        return MostTranslatedComic(
            comicvine=top.comicvine,
            series=series_ref(series, publisher),
            number=format_issue_number(number),
            translations=int(top.translations),
        )

    @staticmethod
    async def top_sites_of_year(
        db: AsyncSession, year: int, limit: int = 10, failures: Optional[List[str]] = None
    ) -> List[NamedCount]:
        """Releases per site in the year; joint releases weigh 0.5 per site."""
        try:
            releases = (await db.execute(
                select(Comic.site, Comic.site2).where(live(Comic), in_year(year))
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Top sites {year} failed: {e}")
            record_failure(failures, "top_sites_year")
            return []

        weights: Dict[str, float] = defaultdict(float)
        for site, site2 in releases:
            for site_id, weight in site_weights(site, site2):
                weights[site_id] += weight
        if not weights:
            return []

        try:
            names = dict((await db.execute(
                select(Site.id, Site.name).where(Site.id.in_(list(weights)), live(Site))
            )).all())
        except SQLAlchemyError as e:
            logger.warning(f"[STATS] Site names unavailable: {e}")
            record_failure(failures, "top_sites_year")
            names = {}

        ranked = sorted(weights.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [
            NamedCount(name=decode_html_entities(names.get(site_id) or site_id), count=weight)
            for site_id, weight in ranked
        ]

    @staticmethod
    async def freshmen(
        db: AsyncSession, year: int, limit: int = 3, failures: Optional[List[str]] = None
    ) -> List[NamedCount]:
        """Scanlators whose first dated release falls in the year, by releases that year."""
        try:
            rows = (await db.execute(
                select(Comic.translate, Comic.edit, Comic.date).where(
                    live(Comic),
                    Comic.date.is_not(None),
                    or_(Comic.translate.is_not(None), Comic.edit.is_not(None)),
                ).order_by(Comic.id.asc())
            )).all()
        except SQLAlchemyError as e:
            logger.error(f"[STATS] Freshmen {year} failed: {e}")
            record_failure(failures, "freshmen")
            return []

        first_release: Dict[str, date] = {}
        counts: Counter = Counter()
        spelling: Dict[str, str] = {}
        for translate, edit, value in rows:
            day = as_date(value)
            if day is None:
                continue
            for key, name in scanlator_tokens(translate, edit).items():
                spelling.setdefault(key, name)
                if key not in first_release or day < first_release[key]:
                    first_release[key] = day
                if day.year == year:
                    counts[key] += 1

        newcomers = Counter({
            key: count for key, count in counts.items() if first_release[key].year == year
        })
        return top_named(newcomers, spelling, limit)

    @staticmethod
    async def get_stats(db: AsyncSession, year: Optional[int] = None) -> StatsResponse:
        """Every statistics block for one year (default: current)."""
        year = year or utc_today().year
        cache_key = STATS_CACHE_KEY.format(year=year)

        cached = await redis_client.get_json(cache_key)
        if cached:
            logger.debug(f"[STATS] Cache hit for {year}")
            return StatsResponse.model_validate(cached)

        failures: List[str] = []
        stats = StatsResponse(
            year=year,
            translation_dynamics=await StatsService.translation_dynamics(db, failures=failures),
            sites=await StatsService.site_stats(db, failures=failures),
            top_scanlators_year=await StatsService.top_scanlators_of_year(db, year, failures=failures),
            most_translated_comic=await StatsService.most_translated_comic_of_year(db, year, failures=failures),
            top_sites_year=await StatsService.top_sites_of_year(db, year, failures=failures),
            top_scanlators_all_time=await StatsService.top_scanlators_all_time(db, failures=failures),
            freshmen=await StatsService.freshmen(db, year, failures=failures),
        )

        if failures:
            logger.warning(f"[STATS] Not caching {year}: degraded {sorted(set(failures))}")
            return stats

        await redis_client.set_json(
            cache_key, stats.model_dump(mode="json"), ttl_seconds=settings.STATS_CACHE_TTL_SECONDS
        )
        return stats


stats_service = StatsService()
