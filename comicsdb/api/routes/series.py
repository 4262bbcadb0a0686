"""
Series routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found, parse_id, parse_optional_id
from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import ComicIssuePage, SeriesDetail, SeriesListItem, SeriesPage
from comicsdb.services.catalog_service import catalog_service

router = APIRouter(prefix="/series", tags=["series"])


@router.get("", response_model=SeriesPage)
async def list_series(
    page: Optional[str] = Query("1", description="Page number"),
    limit: Optional[str] = Query(None, description="Page size (max 100)"),
    publisher: Optional[str] = Query(None, description="Only series of this publisher id"),
    db: AsyncSession = Depends(get_db),
):
    publisher_id = parse_optional_id(publisher, "publisher")
    return await catalog_service.list_series(db, page=page, limit=limit, publisher_id=publisher_id)


@router.get("/random", response_model=Optional[SeriesListItem])
async def random_series(db: AsyncSession = Depends(get_db)):
    """A random live series, or null for an empty catalog."""
    return await catalog_service.random_series(db)


@router.get("/{series_id}", response_model=SeriesDetail)
async def get_series(series_id: str, db: AsyncSession = Depends(get_db)):
    sid = parse_id(series_id, "series")
    return found(await catalog_service.get_series(db, sid), "Series", sid)


@router.get("/{series_id}/comics/{comicvine_id}", response_model=ComicIssuePage)
async def get_series_issue(series_id: str, comicvine_id: str, db: AsyncSession = Depends(get_db)):
    sid = parse_id(series_id, "series")
    cv = parse_id(comicvine_id, "comicvine")
    return found(await catalog_service.get_comic_issue(db, sid, cv), "Comic", cv)
