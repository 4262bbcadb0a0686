"""
Comic routes: listings, fresh releases and single-comic lookup
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found, parse_id
from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import ComicCard, ComicDetail, ComicPage, FreshReleases
from comicsdb.services.catalog_service import catalog_service
from comicsdb.services.digest_service import digest_service

router = APIRouter(prefix="/comics", tags=["comics"])


@router.get("", response_model=ComicPage)
async def list_comics(
    page: Optional[str] = Query("1", description="Page number"),
    limit: Optional[str] = Query(None, description="Page size (max 100)"),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_comics(db, page=page, limit=limit)


@router.get("/latest", response_model=List[ComicCard])
async def latest_comics(
    limit: Optional[str] = Query("12", description="Number of comics (1-100)"),
    db: AsyncSession = Depends(get_db),
):
    return await digest_service.latest_comics(db, limit=limit)


@router.get("/fresh", response_model=FreshReleases)
async def fresh_releases(
    days: Optional[int] = Query(None, ge=0, le=365, description="Window size in days"),
    db: AsyncSession = Depends(get_db),
):
    """Releases of the last FRESH_RELEASES_DAYS days, newest first."""
    return await digest_service.fresh_releases(db, days=days)


@router.get("/{comic_id}", response_model=ComicDetail)
async def get_comic(comic_id: str, db: AsyncSession = Depends(get_db)):
    cid = parse_id(comic_id, "comic")
    return found(await catalog_service.get_comic(db, cid), "Comic", cid)
