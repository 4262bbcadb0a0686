"""
Weekly digest routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import parse_id
from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import WeekDigest, WeekSummary
from comicsdb.services.digest_service import digest_service

router = APIRouter(prefix="/weeks", tags=["weeks"])


@router.get("/current", response_model=WeekDigest)
async def current_week(
    page: Optional[str] = Query("1", description="Page number"),
    db: AsyncSession = Depends(get_db),
):
    return await digest_service.weekly_digest(db, None, page=page)


@router.get("/years", response_model=List[int])
async def available_years(db: AsyncSession = Depends(get_db)):
    return await digest_service.available_years(db)


@router.get("/years/{year}", response_model=List[WeekSummary])
async def weeks_of_year(year: str, db: AsyncSession = Depends(get_db)):
    return await digest_service.weeks_of_year(db, parse_id(year, "year"))


@router.get("/{week_range}", response_model=WeekDigest)
async def week(
    week_range: str,
    page: Optional[str] = Query("1", description="Page number"),
    db: AsyncSession = Depends(get_db),
):
    """week_range is YYYY-MM-DD_YYYY-MM-DD (Monday_Sunday) or a Monday."""
    return await digest_service.weekly_digest(db, week_range, page=page)
