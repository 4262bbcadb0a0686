"""
RSS feed of the latest translations
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from comicsdb.core.database import get_db
from comicsdb.services.digest_service import digest_service

router = APIRouter(tags=["rss"])


@router.get("/rss")
async def rss(db: AsyncSession = Depends(get_db)):
    body = await digest_service.rss_feed(db)
    return Response(content=body, media_type="application/rss+xml; charset=utf-8")
