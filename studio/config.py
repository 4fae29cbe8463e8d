# studio/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Preview lifecycle thresholds live here too so ops can tune them per deployment.
"""

import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Database ---
    DB_URL: str = Field(
        default="postgresql://localhost:5432/studio",
        description="PostgreSQL connection URL"
    )

    # --- Redis (arq queue) ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Server bind host"
    )
    PORT: int = Field(
        default=8001,
        description="Server bind port"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    SERVICE_NAME: str = Field(
        default="studio-preview",
        description="service.name reported to OpenTelemetry"
    )

    # --- Preview lifecycle ---
    PREVIEW_TTL_HOURS: int = Field(
        default=24,
        description="Hard lifetime of a preview session, fixed at creation"
    )
    PREVIEW_IDLE_MINUTES: int = Field(
        default=30,
        description="Inactivity after which a READY preview schema is dropped"
    )
    PREVIEW_STUCK_MINUTES: int = Field(
        default=5,
        description="Age after which a PROVISIONING session is forced to FAILED"
    )
    PREVIEW_MAX_FEATURES: int = Field(
        default=40,
        description="Upper bound on selected features per preview session"
    )
    PREVIEW_TIERS: list[str] = Field(
        default=["starter", "pro", "business", "enterprise"],
        description="Tiers a preview session may be created for"
    )
    PREVIEW_SCHEMA_PREFIX: str = Field(
        default="preview_",
        description="Prefix of every preview schema name"
    )
    PREVIEW_DROP_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Per-schema timeout for drops issued by the sweeper"
    )
    SWEEP_CRON_MINUTE: int = Field(
        default=0,
        description="Minute of every hour at which the cleanup sweep runs"
    )
    SWEEP_LOCK_TIMEOUT_SECONDS: float = Field(
        default=900.0,
        description="Expiry of the cross-worker sweep lock, so a crashed worker cannot block later sweeps"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("PREVIEW_SCHEMA_PREFIX")
    @classmethod
    def validate_schema_prefix(cls, v: str) -> str:
        # Schema names are interpolated as quoted identifiers; keep them boring.
        if not v or not v.replace("_", "").isalnum() or not v[0].isalpha():
            raise ValueError("PREVIEW_SCHEMA_PREFIX must be alphanumeric/underscore and start with a letter")
        return v.lower()

    @field_validator("SWEEP_CRON_MINUTE")
    @classmethod
    def validate_cron_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("SWEEP_CRON_MINUTE must be within 0..59")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Module-level exports ---

# Database
DATABASE_URL: str = settings.DB_URL

# Server
HOST: str = settings.HOST
PORT: int = settings.PORT
DEBUG: bool = settings.DEBUG
LOG_LEVEL: str = settings.LOG_LEVEL
SERVICE_NAME: str = settings.SERVICE_NAME

# Redis
REDIS_URL: str = settings.REDIS_URL

# --- Paths (computed, not from env) ---
PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LOGS_PATH: str = os.path.join(PROJECT_ROOT, "logs")
