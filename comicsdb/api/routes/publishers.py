"""
Publisher routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found, parse_id
from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import ComicIssuePage, PublisherDetail, PublisherPage
from comicsdb.services.catalog_service import catalog_service

router = APIRouter(prefix="/publishers", tags=["publishers"])


@router.get("", response_model=PublisherPage)
async def list_publishers(
    page: Optional[str] = Query("1", description="Page number"),
    sort: Optional[str] = Query(None, description="name_asc, name_desc, series_asc, series_desc, comics_asc, comics_desc"),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_publishers(db, page=page, sort=sort)


@router.get("/{publisher_id}", response_model=PublisherDetail)
async def get_publisher(
    publisher_id: str,
    page: Optional[str] = Query("1", description="Page of the series list"),
    db: AsyncSession = Depends(get_db),
):
    pid = parse_id(publisher_id, "publisher")
    return found(await catalog_service.get_publisher(db, pid, page=page), "Publisher", pid)


@router.get("/{publisher_id}/{series_id}/{comicvine_id}", response_model=ComicIssuePage)
async def get_comic_issue(
    publisher_id: str,
    series_id: str,
    comicvine_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Every translation of one issue, addressed the way public comic URLs are."""
    pid = parse_id(publisher_id, "publisher")
    sid = parse_id(series_id, "series")
    cv = parse_id(comicvine_id, "comicvine")
    page = await catalog_service.get_comic_issue(db, sid, cv, publisher_id=pid)
    return found(page, "Comic", cv)
