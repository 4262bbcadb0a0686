"""
Catalog response schemas
"""
import math
import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from comicsdb.models.catalog import SeriesStatus


class Pagination(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total: int = Field(ge=0)

    @computed_field
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class PublisherRef(BaseModel):
    id: int
    name: str


class SeriesRef(BaseModel):
    id: int
    name: str
    volume: Optional[int] = None
    publisher: PublisherRef


class SiteRef(BaseModel):
    id: str
    name: str
    url: Optional[str] = None


class ComicCard(BaseModel):
    """A translated issue as shown in lists, digests and search results."""
    id: int
    comicvine: Optional[int] = None
    number: str
    name: Optional[str] = None
    series: SeriesRef
    date: Optional[dt.date] = None
    pdate: Optional[dt.date] = None
    adddate: Optional[dt.datetime] = None
    effective_date: Optional[dt.date] = None
    image: Optional[str] = None
    thumb: Optional[str] = None
    tiny: Optional[str] = None
    site: Optional[SiteRef] = None
    site2: Optional[SiteRef] = None
    is_joint: bool = False
    link: Optional[str] = None
    link2: Optional[str] = None
    translate: str = ""
    edit: str = ""
    url: str
    has_global_event: bool = False
    real_name: Optional[str] = None


class ComicPage(BaseModel):
    items: List[ComicCard]
    pagination: Pagination


class SeriesCard(BaseModel):
    id: int
    name: str
    volume: Optional[int] = None
    publisher: PublisherRef
    cover: Optional[str] = None
    comics_count: int = 0
    relevance: Optional[int] = None
    last_date: Optional[dt.date] = None
    url: str


class SeriesSearchPage(BaseModel):
    query: str
    sort: str
    items: List[SeriesCard]
    pagination: Pagination


class ComicSearchPage(BaseModel):
    query: str
    field: str
    sort: str
    items: List[ComicCard]
    pagination: Pagination


class ScanlatorStats(BaseModel):
    name: str
    real_name: Optional[str] = None
    total: int = 0
    translated_count: int = 0
    edited_count: int = 0
    first_release: Optional[dt.date] = None
    last_release: Optional[dt.date] = None
    days_in_scanlating: int = 0


class WeekDigest(BaseModel):
    week_range: str
    title: str
    start: dt.date
    end: dt.date
    previous_week: Optional[str] = None
    next_week: Optional[str] = None
    items: List[ComicCard]
    pagination: Pagination


class WeekSummary(BaseModel):
    week_range: str
    title: str
    start: dt.date
    end: dt.date
    count: int = 0


class FreshReleases(BaseModel):
    days: int
    start: dt.date
    end: dt.date
    items: List[ComicCard]


class PublisherListItem(BaseModel):
    id: int
    name: str
    series_count: int = 0
    comics_count: int = 0


class PublisherPage(BaseModel):
    sort: str
    items: List[PublisherListItem]
    pagination: Pagination


class PublisherDetail(BaseModel):
    id: int
    name: str
    series: List[SeriesCard]
    pagination: Pagination


class SeriesListItem(BaseModel):
    id: int
    name: str
    volume: Optional[int] = None
    publisher: PublisherRef
    thumb: Optional[str] = None
    comics_count: int = 0
    status: SeriesStatus = SeriesStatus.UNKNOWN
    updated: Optional[dt.datetime] = None
    url: str


class SeriesPage(BaseModel):
    items: List[SeriesListItem]
    pagination: Pagination


class SeriesDetail(BaseModel):
    id: int
    name: str
    volume: Optional[int] = None
    publisher: PublisherRef
    thumb: Optional[str] = None
    small: Optional[str] = None
    super_url: Optional[str] = Field(None, serialization_alias="super")
    status: SeriesStatus = SeriesStatus.UNKNOWN
    total_issues: int = 0
    translated: int = 0
    translation_status: str
    genres: List[str] = []
    updated: Optional[dt.datetime] = None
    comics: List[ComicCard] = []


class ComicImages(BaseModel):
    thumb: Optional[str] = None
    tiny: Optional[str] = None
    small: Optional[str] = None
    super_url: Optional[str] = Field(None, serialization_alias="super")


class ComicDetail(BaseModel):
    id: int
    comicvine: Optional[int] = None
    number: str
    name: Optional[str] = None
    series: SeriesRef
    date: Optional[dt.date] = None
    pdate: Optional[dt.date] = None
    adddate: Optional[dt.datetime] = None
    images: ComicImages
    translate: str = ""
    edit: str = ""
    creators: str = ""
    characters: str = ""
    teams: str = ""
    site: Optional[SiteRef] = None
    site2: Optional[SiteRef] = None
    is_joint: bool = False
    link: Optional[str] = None
    link2: Optional[str] = None
    url: str


class Translation(BaseModel):
    comic_id: int
    site: SiteRef
    site2: Optional[SiteRef] = None
    link: str
    translate: str = ""
    edit: str = ""
    date: Optional[dt.date] = None
    is_joint: bool = False


class IssueNavigation(BaseModel):
    comicvine: int
    number: str
    url: str


class ComicIssuePage(BaseModel):
    """Every translation of one issue plus neighbouring issue links."""
    comic: ComicDetail
    translations: List[Translation]
    previous_issue: Optional[IssueNavigation] = None
    next_issue: Optional[IssueNavigation] = None


class GenreItem(BaseModel):
    id: int
    name: str
    series_count: int = 0


class GenrePage(BaseModel):
    items: List[GenreItem]
    pagination: Pagination


class GenreDetail(BaseModel):
    id: int
    name: str
    series: List[SeriesCard]
    pagination: Pagination


class SiteItem(BaseModel):
    id: str
    name: str
    url: Optional[str] = None
    numofcoms: int = 0


class SitePage(BaseModel):
    items: List[SiteItem]
    pagination: Pagination


class SiteSeriesGroup(BaseModel):
    series: SeriesCard
    comics: List[ComicCard]


class SiteDetail(BaseModel):
    id: str
    name: str
    url: Optional[str] = None
    total_comics: int = 0
    total_series: int = 0
    first_release: Optional[dt.date] = None
    last_release: Optional[dt.date] = None
    groups: List[SiteSeriesGroup]


class EventPublisher(BaseModel):
    id: int
    name: str
    events_count: int = 0


class EventSummary(BaseModel):
    id: str
    name: str
    years: Optional[str] = None
    order: int = 0
    comics_count: int = 0


class EventCategoryGroup(BaseModel):
    id: Optional[int] = None
    name: str
    events: List[EventSummary]


class PublisherEvents(BaseModel):
    publisher: PublisherRef
    categories: List[EventCategoryGroup]


class EventIssueItem(BaseModel):
    id: int
    name: Optional[str] = None
    number: Optional[str] = None
    order: int = 0
    pdate: Optional[dt.date] = None
    image: Optional[str] = None
    has_translation: bool = False
    comic_url: Optional[str] = None


class EventDetail(BaseModel):
    id: str
    name: str
    years: Optional[str] = None
    text: Optional[str] = None
    chronology: Optional[str] = None
    publisher: Optional[PublisherRef] = None
    category: Optional[str] = None
    issues: List[EventIssueItem]


class NamedCount(BaseModel):
    name: str
    count: float


class SiteStat(BaseModel):
    id: str
    name: str
    numofcoms: int = 0
    own: int = 0
    joint: int = 0


class MostTranslatedComic(BaseModel):
    comicvine: int
    series: SeriesRef
    number: str
    translations: int


class StatsResponse(BaseModel):
    year: int
    translation_dynamics: Dict[str, int] = {}
    sites: List[SiteStat] = []
    top_scanlators_year: List[NamedCount] = []
    most_translated_comic: Optional[MostTranslatedComic] = None
    top_sites_year: List[NamedCount] = []
    top_scanlators_all_time: List[NamedCount] = []
    freshmen: List[NamedCount] = []


class ImageResponse(BaseModel):
    image: Optional[str] = None
