"""
Scanlation site routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.api.deps import found
from comicsdb.core.database import get_db
from comicsdb.core.exceptions import InvalidIdentifierError
from comicsdb.schemas.catalog import SiteDetail, SitePage
from comicsdb.services.catalog_service import catalog_service

router = APIRouter(prefix="/sites", tags=["sites"])


@router.get("", response_model=SitePage)
async def list_sites(
    page: Optional[str] = Query("1", description="Page number"),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_sites(db, page=page)


@router.get("/{site_id}", response_model=SiteDetail)
async def get_site(site_id: str, db: AsyncSession = Depends(get_db)):
    """Site ids are strings; '0' is the "no site" marker and never a real site."""
    site_id = site_id.strip()
    if not site_id or site_id == "0" or len(site_id) > 50:
        raise InvalidIdentifierError("Invalid site id", value=site_id)
    return found(await catalog_service.get_site(db, site_id), "Site", site_id)
