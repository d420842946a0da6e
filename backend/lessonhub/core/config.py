"""
Core configuration management using Pydantic Settings.
Loads configuration from environment variables with validation.
"""

from functools import lru_cache
from typing import List
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field, validator


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # =============================================================================
    # API Configuration
    # =============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_ENV: str = Field(default="development", description="Environment: development, staging, production")
    API_RELOAD: bool = Field(default=True, description="Auto-reload on code changes")

    # =============================================================================
    # Remote sessions backend (backend of record)
    # =============================================================================
    SESSIONS_API_URL: str = Field(default="http://localhost:3001/api", description="Base URL of the sessions API")
    SESSIONS_API_TIMEOUT_SECONDS: float = Field(default=15.0, description="Per-request timeout for the sessions API")
    SESSION_CACHE_TTL_SECONDS: int = Field(default=120, description="Lifetime of cached session reads")

    # =============================================================================
    # Booking
    # =============================================================================
    BOOKING_DRAFT_TTL_SECONDS: int = Field(default=30 * 60, description="Lifetime of an untouched booking draft")
    DEFAULT_TIMEZONE: str = Field(default="Europe/Paris", description="Timezone used when the client sends none")
    SLOT_GRANULARITY_MINUTES: int = Field(default=15, description="Step between candidate slot starts")

    # =============================================================================
    # Redis
    # =============================================================================
    REDIS_URL: str = Field(default="redis://localhost:6379", description="Redis connection URL")

    # =============================================================================
    # Security
    # =============================================================================
    CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost:8000", description="CORS origins")

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_BOOKING: str = Field(default="10/minute", description="Booking submission rate limit")

    # =============================================================================
    # Logging
    # =============================================================================
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FILE: str = Field(default="data/logs/lessonhub.log", description="Log file path")
    LOG_ROTATION: str = Field(default="10 MB", description="Log rotation size")

    # =============================================================================
    # Validators
    # =============================================================================

    @validator("API_ENV")
    def validate_env(cls, v):
        """Validate environment value."""
        if v not in ["development", "production", "staging"]:
            raise ValueError("API_ENV must be development, production, or staging")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        """Validate log level."""
        if v not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR, or CRITICAL")
        return v

    @validator("SLOT_GRANULARITY_MINUTES")
    def validate_granularity(cls, v):
        if v <= 0 or 60 % v != 0:
            raise ValueError("SLOT_GRANULARITY_MINUTES must be a positive divisor of 60")
        return v

    # =============================================================================
    # Helper Properties
    # =============================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.API_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.API_ENV == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    class Config:
        """Pydantic config."""
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
