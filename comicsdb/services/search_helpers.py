"""
Query composition helpers shared by search, digests and catalog browsing.

Everything here builds SQLAlchemy expressions or normalizes request input.
Sort modes are a closed whitelist so user input never reaches ORDER BY.
"""
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from sqlalchemy import String, and_, case, func, literal, or_
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import ColumnElement
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.types import Integer

from comicsdb.models.catalog import Comic, Series

logger = logging.getLogger(__name__)


# ----- Sorting -----

COMIC_SORTS = (
    "adddate_desc",
    "name_asc",
    "name_desc",
    "date_asc",
    "date_desc",
    "translation_date_asc",
    "translation_date_desc",
)
DEFAULT_COMIC_SORT = "adddate_desc"

SERIES_SEARCH_SORTS = ("relevance", "name_asc", "name_desc")
DEFAULT_SERIES_SEARCH_SORT = "relevance"

PUBLISHER_SORTS = ("name_asc", "name_desc", "series_asc", "series_desc", "comics_asc", "comics_desc")
DEFAULT_PUBLISHER_SORT = "name_asc"

# Comic columns searchable as comma-joined token lists
CSV_FIELDS = {
    "characters": Comic.characters,
    "creators": Comic.creators,
    "teams": Comic.teams,
    "translate": Comic.translate,
    "edit": Comic.edit,
}


def normalize_page(value: Any) -> int:
    """Page numbers from query strings: anything invalid or below 1 becomes 1."""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def normalize_sort(value: Optional[str], allowed: Sequence[str], default: str) -> str:
    if value and value in allowed:
        return value
    return default


def offset_for(page: int, page_size: int) -> int:
    return (normalize_page(page) - 1) * page_size


def build_order_by(sort: str) -> List[ColumnElement]:
    """
    ORDER BY clause for comic listings.

    Expects Series to be joined. adddate DESC (then id) is always appended
    as a stable secondary key so pagination never shuffles equal rows.
    """
    sort = normalize_sort(sort, COMIC_SORTS, DEFAULT_COMIC_SORT)
    translated_on = func.coalesce(Comic.date, Comic.pdate)

    primary = {
        "name_asc": [Series.name.asc(), Comic.number.asc()],
        "name_desc": [Series.name.desc(), Comic.number.desc()],
        "date_asc": [Comic.pdate.asc()],
        "date_desc": [Comic.pdate.desc()],
        "translation_date_asc": [translated_on.asc()],
        "translation_date_desc": [translated_on.desc()],
        "adddate_desc": [],
    }[sort]

    return primary + [Comic.adddate.desc(), Comic.id.desc()]


# ----- Dates -----

def effective_date() -> ColumnElement:
    """Translation date, else original publish date, else row creation day."""
    return func.coalesce(Comic.date, Comic.pdate, func.date(Comic.adddate))


def latest_activity() -> ColumnElement:
    """COALESCE(date, pdate, adddate) for "newest first" orderings."""
    return func.coalesce(Comic.date, Comic.pdate, Comic.adddate)


# ----- Portable string position -----

class str_position(FunctionElement):
    """
    1-based position of needle in haystack, 0 when absent.

    Compiles to strpos (PostgreSQL), instr (SQLite) and LOCATE (MySQL).
    """
    type = Integer()
    inherit_cache = True
    name = "str_position"


@compiles(str_position)
def _compile_str_position_default(element, compiler, **kw):
    haystack, needle = list(element.clauses)
    return f"strpos({compiler.process(haystack, **kw)}, {compiler.process(needle, **kw)})"


@compiles(str_position, "sqlite")
def _compile_str_position_sqlite(element, compiler, **kw):
    haystack, needle = list(element.clauses)
    return f"instr({compiler.process(haystack, **kw)}, {compiler.process(needle, **kw)})"


@compiles(str_position, "mysql")
def _compile_str_position_mysql(element, compiler, **kw):
    haystack, needle = list(element.clauses)
    return f"LOCATE({compiler.process(needle, **kw)}, {compiler.process(haystack, **kw)})"


# ----- LIKE / CSV token matching -----

LIKE_ESCAPE = "!"


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


def normalized_csv(column) -> ColumnElement:
    """LOWER(REPLACE(col, ', ', ',')) so tokens are separated by a bare comma."""
    return func.lower(func.replace(func.coalesce(column, ""), ", ", ","))


def csv_token_condition(column, query: str) -> ColumnElement:
    """
    Match query as a whole token of a comma-joined column.

    The token may be first, in the middle, last, or the only value.
    """
    q = normalize_query(query)
    token = escape_like(q)
    normalized = normalized_csv(column)
    return or_(
        normalized.like(f"{token},%", escape=LIKE_ESCAPE),
        normalized.like(f"%,{token},%", escape=LIKE_ESCAPE),
        normalized.like(f"%,{token}", escape=LIKE_ESCAPE),
        normalized == q,
    )


def scanlator_condition(query: str) -> ColumnElement:
    return or_(
        csv_token_condition(Comic.translate, query),
        csv_token_condition(Comic.edit, query),
    )


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def csv_contains(value: Optional[str], query: str) -> bool:
    """Python-side counterpart of csv_token_condition."""
    q = normalize_query(query)
    return bool(q) and any(token.lower() == q for token in split_csv(value))


def extract_name_from_csv(value: Optional[str], query: str) -> Optional[str]:
    """
    The original-case spelling of query as it appears in a CSV value.

    Prefers an exact-case token, then the first case-insensitive whole-token
    match. Substrings of longer tokens never match.
    """
    tokens = split_csv(value)
    needle = (query or "").strip()
    if not needle:
        return None

    for token in tokens:
        if token == needle:
            return token

    lowered = needle.lower()
    for token in tokens:
        if token.lower() == lowered:
            return token

    return None


def extract_name_from_fields(values: Iterable[Optional[str]], query: str) -> Optional[str]:
    """extract_name_from_csv across several fields, first exact-case hit wins."""
    values = list(values)
    needle = (query or "").strip()
    for value in values:
        for token in split_csv(value):
            if token == needle:
                return token
    for value in values:
        found = extract_name_from_csv(value, query)
        if found:
            return found
    return None


# ----- Relevance -----

def relevance_score(column, query: str) -> ColumnElement:
    """
    Fixed rule table, then tie-break by match position.

    exact 1000 > prefix 500 > word boundary 300 > substring 100,
    minus (position - 1) so earlier matches rank higher within a tier.
    """
    q = normalize_query(query)
    token = escape_like(q)
    lowered = func.lower(column)

    tier = case(
        (lowered == q, 1000),
        (lowered.like(f"{token}%", escape=LIKE_ESCAPE), 500),
        (lowered.like(f"% {token}%", escape=LIKE_ESCAPE), 300),
        else_=100,
    )
    return tier - str_position(lowered, literal(q, String)) + 1


# ----- Display helpers -----

def image_url(url: Optional[str]) -> Optional[str]:
    """Upgrade the ComicVine avatar scale token to the large rendition."""
    if not url:
        return None
    return url.replace("scale_avatar", "scale_large")


def comic_url(publisher_id: int, series_id: int, comicvine: Optional[int]) -> str:
    return f"/publishers/{publisher_id}/{series_id}/{comicvine}"


def series_url(publisher_id: int, series_id: int) -> str:
    return f"/publishers/{publisher_id}/{series_id}"


def has_site(site_id: Optional[str]) -> bool:
    return bool(site_id) and site_id != "0"


TRANSLATION_FINISHED = "Завершён"
TRANSLATION_FROZEN = "Заморожен"
TRANSLATION_ONGOING = "Продолжается"


def translation_status(
    total_issues: int,
    translated: int,
    last_translation: Optional[date],
    now: Optional[date] = None,
) -> str:
    """
    Finished when every known issue is translated, frozen after six months
    without a new translation, otherwise ongoing.
    """
    if total_issues and total_issues > 0 and translated >= total_issues:
        return TRANSLATION_FINISHED

    if last_translation:
        if isinstance(last_translation, datetime):
            last_translation = last_translation.date()
        now = now or date.today()
        if last_translation < now - relativedelta(months=6):
            return TRANSLATION_FROZEN

    return TRANSLATION_ONGOING


def live(*models) -> ColumnElement:
    """date_delete IS NULL for every given model."""
    return and_(*[model.date_delete.is_(None) for model in models])
