"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Every field carries a default so the scoring pipeline can run (and be
tested) without any credentials present. Collectors check for the
credentials they need at construction time.
"""

from datetime import date
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Property being audited
    SITE_URL: str = "https://www.alanranger.com"

    # Database (session.py also reads DATABASE_URL / POSTGRES_URL directly)
    DATABASE_URL: Optional[str] = None

    # Google Search Console (refresh-token grant)
    GSC_CLIENT_ID: Optional[str] = None
    GSC_CLIENT_SECRET: Optional[str] = None
    GSC_REFRESH_TOKEN: Optional[str] = None
    GSC_ROW_LIMIT: int = 25000

    # DataForSEO
    DATAFORSEO_LOGIN: Optional[str] = None
    DATAFORSEO_PASSWORD: Optional[str] = None
    SERP_LOCATION_NAME: str = "United Kingdom"
    SERP_LANGUAGE_CODE: str = "en"
    SERP_DEPTH: int = 50

    # Keyword ranking fan-out
    RANKING_CONCURRENCY: int = 2
    SERP_BATCH_SIZE: int = 20
    AI_BATCH_SIZE: int = 10

    # Trustpilot snapshot (refresh when the public rating moves)
    TRUSTPILOT_RATING: Optional[float] = 4.6
    TRUSTPILOT_REVIEW_COUNT: Optional[int] = 610
    TRUSTPILOT_SNAPSHOT_DATE: Optional[date] = date(2025, 12, 7)

    # Thin header guards
    CRON_SECRET: Optional[str] = None
    ADMIN_KEY: Optional[str] = None

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Timeouts
    API_TIMEOUT: int = 60
    ANALYSIS_TIMEOUT: int = 300

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
