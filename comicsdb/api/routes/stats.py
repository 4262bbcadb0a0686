"""
Statistics routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.database import get_db
from comicsdb.schemas.catalog import StatsResponse
from comicsdb.services.stats_service import stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Year for the yearly tables"),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_stats(db, year=year)
