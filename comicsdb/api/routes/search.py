"""
Search routes: series relevance search, comma-joined field search and
per-scanlator statistics.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.database import get_db
from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.schemas.catalog import ScanlatorStats
from comicsdb.services.search_service import SEARCH_FIELDS, search_service

router = APIRouter(tags=["search"])

SEARCH_TYPES = ("series",) + SEARCH_FIELDS


@router.get("/search")
async def search(
    q: str = Query("", description="Search text"),
    search_type: str = Query("series", alias="type", description="series, characters, creators, teams, translate, edit, scanlator"),
    page: Optional[str] = Query("1", description="Page number"),
    sort: Optional[str] = Query(None, description="Sort mode; unknown values fall back to the default"),
    db: AsyncSession = Depends(get_db),
):
    if search_type not in SEARCH_TYPES:
        raise InvalidIdentifierError(f"Unknown search type: {search_type}", value=search_type)
    if search_type == "series":
        return await search_service.search_series(db, q, page=page, sort=sort)
    return await search_service.search_comics_by_field(db, search_type, q, page=page, sort=sort)


@router.get("/scanlators/{name}/stats", response_model=ScanlatorStats)
async def scanlator_stats(name: str, db: AsyncSession = Depends(get_db)):
    if not name.strip():
        raise InvalidIdentifierError("Scanlator name is required")
    return await search_service.scanlator_stats(db, name)
