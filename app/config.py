# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.GEOCODER_BASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Supabase credentials are optional at import time so the API can start and
# answer health checks; the address store raises ConfigError when they are
# missing at the moment it is first needed.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------

    SUPABASE_URL: str | None = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str | None = Field(
        default=None,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str | None = Field(
        default=None,
        description="Supabase service_role key (bypasses RLS, preferred when set)"
    )

    ADDRESS_TABLE: str = Field(
        default="address",
        description="Table holding the address rows to geocode"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Geocoder Configuration
    # -------------------------------------------------------------------------
    # Nominatim's usage policy asks for an identifying User-Agent and at most
    # one request per second.

    GEOCODER_BASE_URL: str = Field(
        default="https://nominatim.openstreetmap.org/search",
        description="Nominatim-compatible search endpoint"
    )

    GEOCODER_USER_AGENT: str = Field(
        default="geocode-sync/1.0",
        min_length=1,
        description="User-Agent sent with every geocoder request"
    )

    GEOCODER_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout for geocoder calls"
    )

    GEOCODER_MAX_RETRIES: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per geocoder request"
    )

    GEOCODER_INITIAL_RETRY_DELAY_SECONDS: float = Field(
        default=1.0,
        ge=0,
        description="Base delay for exponential backoff"
    )

    GEOCODER_MAX_RETRY_DELAY_SECONDS: float = Field(
        default=10.0,
        ge=0,
        description="Longest wait before a retry; a longer Retry-After fails the request instead"
    )

    GEOCODER_REQUEST_DELAY_SECONDS: float = Field(
        default=1.0,
        ge=0,
        description="Fixed pause between records during a batch"
    )

    # -------------------------------------------------------------------------
    # Batch Settings
    # -------------------------------------------------------------------------

    BATCH_PAGE_SIZE: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Records fetched per page"
    )

    BATCH_TIME_BUDGET_SECONDS: float = Field(
        default=25.0,
        gt=0,
        description="Wall-clock budget per invocation (below the host limit)"
    )

    BATCH_STALE_AFTER_SECONDS: float = Field(
        default=300.0,
        ge=0,
        description="Rows updated more recently than this keep an incremental scan open"
    )

    CATCH_UP_MAX_RECORDS: int = Field(
        default=100,
        ge=1,
        description="Records processed per catch-up invocation"
    )

    BATCH_CONTINUATION_ENABLED: bool = Field(
        default=True,
        description="Enqueue a follow-up Celery task when a batch is incomplete"
    )

    BATCH_CONTINUATION_DELAY_SECONDS: int = Field(
        default=5,
        ge=0,
        description="Countdown before the follow-up task runs"
    )

    INCREMENTAL_SCAN_INTERVAL_SECONDS: int = Field(
        default=300,
        ge=10,
        description="Celery beat interval for scheduled incremental scans"
    )

    CATCH_UP_INTERVAL_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="Celery beat interval for scheduled catch-up scans"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (useful for production where
        # env vars are set directly)
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def supabase_key(self) -> str | None:
        """Service key when present, otherwise the anon key."""
        return self.SUPABASE_SERVICE_KEY or self.SUPABASE_ANON_KEY

    @property
    def missing_supabase_settings(self) -> list[str]:
        """Names of the Supabase settings that still need a value."""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.supabase_key:
            missing.append("SUPABASE_SERVICE_KEY or SUPABASE_ANON_KEY")
        return missing

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
