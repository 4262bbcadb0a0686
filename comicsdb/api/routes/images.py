"""
Metron image routes

/metron-image can trigger an outbound Metron request, so it carries its
own inbound rate limit on top of the outbound MetronRateLimiter.
"""
from fastapi import APIRouter, Request

from comicsdb.api.deps import parse_id
from comicsdb.core.metron_rate_limiter import get_metron_rate_limiter
from comicsdb.core.rate_limit import get_metron_image_limit
from comicsdb.schemas.catalog import ImageResponse
from comicsdb.services.image_resolver import image_resolver

router = APIRouter(tags=["images"])


@router.get("/metron-image/{comicvine_id}", response_model=ImageResponse)
@get_metron_image_limit()
async def metron_image(request: Request, comicvine_id: str):
    """Metron cover URL for a ComicVine issue id, null when there is none."""
    cv = parse_id(comicvine_id, "comicvine")
    return ImageResponse(image=await image_resolver.lookup(cv))


@router.get("/metron/status")
async def metron_status():
    return {
        "cache": await image_resolver.get_stats(),
        "rate_limiter": get_metron_rate_limiter().get_status(),
    }
