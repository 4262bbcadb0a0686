"""
Application configuration

Defaults are production safe:
- DEBUG defaults to False
- DATABASE_URL has no default (will fail if not set)
- REDIS_URL is optional; caches fall back to process memory without it
"""
import json
import os
import logging
from typing import List, Union
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default CORS origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App
    APP_NAME: str = "Comics DB"
    APP_URL: str = "http://localhost:3000"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Database - NO DEFAULT (will fail if not set)
    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v):
        """Convert plain postgres URLs to the asyncpg driver."""
        if not v:
            return v
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Database pool
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # 1 hour

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGINS: Union[str, List[str]] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v or v.strip() == "":
                return DEFAULT_CORS_ORIGINS
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Redis (image cache, cross-instance Metron spacing)
    REDIS_URL: str = ""

    # Metron issue-image lookups
    METRON_ENABLED: bool = True
    METRON_API_BASE: str = "https://metron.cloud/api/v1"
    METRON_USERNAME: str = ""
    METRON_PASSWORD: str = ""
    METRON_MIN_DELAY_SECONDS: float = 4.0
    METRON_TIMEOUT_SECONDS: float = 5.0
    METRON_CACHE_TTL_SECONDS: int = 30 * 24 * 3600

    # Page sizes
    DEFAULT_PAGE_SIZE: int = 100
    PUBLISHERS_PAGE_SIZE: int = 100
    COMICS_PAGE_SIZE: int = 50
    SERIES_PAGE_SIZE: int = 48
    SEARCH_PAGE_SIZE: int = 100

    # Fresh releases digest
    FRESH_RELEASES_DAYS: int = 7
    FRESH_RELEASES_LIMIT: int = 200

    # In-process caches
    EVENT_COMICS_CACHE_TTL_SECONDS: int = 60

    # Statistics page (Redis JSON cache; skipped without REDIS_URL)
    STATS_CACHE_TTL_SECONDS: int = 3600

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_METRON_IMAGE: str = "30/minute"

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse insecure combinations when running in production."""
        if self.ENVIRONMENT == "production" and self.DEBUG:
            raise ValueError("DEBUG must be False in production")
        if self.METRON_MIN_DELAY_SECONDS < 0:
            raise ValueError("METRON_MIN_DELAY_SECONDS must be >= 0")
        return self


try:
    settings = Settings()
except Exception as e:
    # Local development without a .env: point at a throwaway SQLite file
    if os.environ.get("ENVIRONMENT", "production") == "production":
        raise
    logger.warning(f"Settings incomplete ({e}); using development defaults")
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./comicsdb-dev.db")
    settings = Settings()
