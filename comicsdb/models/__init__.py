from comicsdb.models.catalog import (
    SeriesStatus,
    Publisher,
    Series,
    Comic,
    Site,
    Genre,
    SeriesGenre,
    EventCategory,
    GlobalEvent,
    EventIssue,
)
