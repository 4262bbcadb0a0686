"""
Comics DB API
FastAPI application entry point

- Read-only JSON over the cdb_* catalog tables (plus an RSS feed)
- Rate limiting with SlowAPI on endpoints that can reach Metron
- Error sanitization middleware and {"error": ...} bodies for 4xx
- Health endpoint with a real DB ping
- Metron HTTP client and Redis closed on shutdown
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from comicsdb import __version__
from comicsdb.core.config import settings
from comicsdb.core.database import ping
from comicsdb.core.error_handler import (
    ErrorSanitizationMiddleware,
    catalog_error_handler,
    http_error_handler,
)
from comicsdb.core.exceptions import CatalogError
from comicsdb.core.metron_rate_limiter import init_metron_rate_limiter
from comicsdb.core.rate_limit import limiter, rate_limit_exceeded_handler
from comicsdb.core.redis_client import close_redis
from comicsdb.services.metron import metron_client
from comicsdb.api.routes import (
    comics,
    events,
    genres,
    images,
    publishers,
    rss,
    search,
    series,
    sites,
    stats,
    weeks,
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure the outbound Metron limiter on startup; close HTTP and
    Redis connections on shutdown.
    """
    init_metron_rate_limiter(
        enabled=settings.METRON_ENABLED,
        min_delay_seconds=settings.METRON_MIN_DELAY_SECONDS,
    )
    logger.info(
        f"Metron lookups {'ENABLED' if settings.METRON_ENABLED else 'DISABLED'} "
        f"(min delay {settings.METRON_MIN_DELAY_SECONDS}s)"
    )

    yield

    await metron_client.close()
    logger.info("Metron HTTP client closed")
    await close_redis()


app = FastAPI(
    lifespan=lifespan,
    title="Comics DB API",
    description="""
## Comics DB

Catalog of Russian fan translations (scanlations) of comics.

### Features
- **Catalog**: publishers, series, issues, genres, scanlation sites, crossover events
- **Search**: relevance-ranked series search; characters/creators/teams/scanlator search
- **Digests**: fresh releases, weekly digests, RSS
- **Statistics**: translation dynamics and the year's top scanlators and sites

### Rate Limits
- General: 100 requests/minute
- `/api/metron-image`: 30 requests/minute
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Publishers", "description": "Publishers and issue pages"},
        {"name": "Series", "description": "Series listing and details"},
        {"name": "Comics", "description": "Translated issues, latest and fresh releases"},
        {"name": "Genres", "description": "Genres and their series"},
        {"name": "Sites", "description": "Scanlation sites"},
        {"name": "Events", "description": "Crossover events and reading orders"},
        {"name": "Search", "description": "Series and field search, scanlator stats"},
        {"name": "Weeks", "description": "Weekly release digests"},
        {"name": "Statistics", "description": "Catalog-wide statistics"},
        {"name": "Images", "description": "Metron cover lookup"},
        {"name": "RSS", "description": "RSS feed of new translations"},
    ],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Error bodies
app.add_exception_handler(CatalogError, catalog_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include routers
app.include_router(publishers.router, prefix="/api", tags=["Publishers"])
app.include_router(series.router, prefix="/api", tags=["Series"])
app.include_router(comics.router, prefix="/api", tags=["Comics"])
app.include_router(genres.router, prefix="/api", tags=["Genres"])
app.include_router(sites.router, prefix="/api", tags=["Sites"])
app.include_router(events.router, prefix="/api", tags=["Events"])
app.include_router(search.router, prefix="/api", tags=["Search"])
app.include_router(weeks.router, prefix="/api", tags=["Weeks"])
app.include_router(stats.router, prefix="/api", tags=["Statistics"])
app.include_router(images.router, prefix="/api", tags=["Images"])
app.include_router(rss.router, prefix="/api", tags=["RSS"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Comics DB API",
        "version": __version__,
        "status": "operational"
    }


@app.get("/api/health", tags=["Health"])
async def health_check():
    """DB ping; 503 when the database is unreachable."""
    health_status = {
        "status": "ok",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        await ping()
        health_status["database"] = "connected"
    except Exception as e:
        logger.error(f"[HEALTH] Database ping failed: {type(e).__name__}: {e}")
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "error"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
