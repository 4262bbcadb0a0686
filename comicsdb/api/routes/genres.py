"""
Genre routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found, parse_id
from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import GenreDetail, GenrePage
from comicsdb.services.catalog_service import catalog_service

router = APIRouter(prefix="/genres", tags=["genres"])


@router.get("", response_model=GenrePage)
async def list_genres(
    page: Optional[str] = Query("1", description="Page number"),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_genres(db, page=page)


@router.get("/{genre_id}", response_model=GenreDetail)
async def get_genre(
    genre_id: str,
    page: Optional[str] = Query("1", description="Page of the series list"),
    db: AsyncSession = Depends(get_db),
):
    gid = parse_id(genre_id, "genre")
    return found(await catalog_service.get_genre(db, gid, page=page), "Genre", gid)
