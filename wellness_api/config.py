"""
Application Configuration
=========================

Centralized configuration using Pydantic Settings.
Loads from environment variables with validation.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = Field(default="development")

    # Server
    PORT: int = Field(default=8000, description="Port to bind to")

    # Database - Supabase (privileged connection, never exposed to callers)
    SUPABASE_DATABASE_URL: str = Field(default="")

    # Redis (only used when RATE_LIMIT_BACKEND=redis)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    # Hotmart
    HOTMART_WEBHOOK_SECRET: str = Field(
        default="",
        description="Shared secret (hottok) configured in the Hotmart dashboard",
    )

    # Webhook rate limiting
    RATE_LIMIT_BACKEND: str = Field(default="memory")
    WEBHOOK_RATE_LIMIT_MAX: int = Field(default=30, ge=1)
    WEBHOOK_RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, ge=1)

    @property
    def database_url_async(self) -> str:
        """Convert database URL to async format for asyncpg."""
        if self.SUPABASE_DATABASE_URL:
            return self.SUPABASE_DATABASE_URL.replace(
                "postgresql://", "postgresql+asyncpg://"
            )
        return ""

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def validate_rate_limit_backend(cls, v: str) -> str:
        """Only the in-process and Redis backends exist."""
        backend = v.strip().lower()
        if backend not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return backend


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Export a default settings instance
settings = get_settings()
