"""
Configuration Settings

This module defines application configuration using Pydantic Settings.
All configuration is loaded from environment variables or .env file.

Design Decisions:
- Uses pydantic-settings for type-safe configuration
- Supports multiple environments (production, staging, dev)
- Defaults to SQLite (file-based) for easy local development
- Secrets default to empty strings; features depending on them
  (HMAC signing, Turnstile, OAuth, revalidation) degrade or refuse
  explicitly when unset
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "settings", "EnvSettingsOptions"]

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class EnvSettingsOptions(Enum):
    """Environment options for deployment."""
    production = "production"
    staging = "staging"
    development = "dev"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Configuration
    ENV_SETTING: EnvSettingsOptions = Field(
        default=EnvSettingsOptions.development,
        description="Environment setting (production, staging, dev)"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root logging level"
    )

    # Database Configuration
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./agenda.db",
        description="Database connection string for users, sessions and ownership"
    )
    AUTO_CREATE_TABLES: bool = Field(
        default=True,
        description="Create missing tables on startup (use alembic in production)"
    )

    # Public site
    SITE_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL used for absolute links (sitemap, magic links)"
    )
    CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed by the CORS middleware"
    )
    DEFAULT_PLACE: str = Field(
        default="catalunya",
        description="Place slug used when a listing has no place segment"
    )

    # Backend API
    API_URL: str = Field(
        default="http://localhost:8080/api",
        description="Base URL of the external events backend"
    )
    HMAC_SECRET: str = Field(
        default="",
        description="Shared secret used to sign backend requests (unsigned when empty)"
    )
    BACKEND_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for backend and third-party HTTP calls"
    )

    # Rate limiting for auth endpoints (fixed window)
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Toggle both the slowapi limits and the auth fixed-window limiter"
    )
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=30,
        description="Requests allowed per client and path within one window"
    )
    AUTH_RATE_LIMIT_WINDOW_MS: int = Field(
        default=60_000,
        description="Fixed window length in milliseconds"
    )

    # In-process caches
    CATALOG_CACHE_TTL_MS: int = Field(
        default=5 * 60 * 1000,
        description="TTL for categories, regions and cities catalogs"
    )
    GEOCODE_CACHE_TTL_MS: int = Field(
        default=24 * 60 * 60 * 1000,
        description="TTL per geocoding query"
    )

    # Cookies
    SESSION_COOKIE_NAME: str = Field(default="session")
    SESSION_MAX_AGE_SECONDS: int = Field(
        default=30 * 24 * 60 * 60,
        description="Lifetime of a login session"
    )
    FAVORITES_COOKIE_NAME: str = Field(default="user_favorites")
    FAVORITES_MAX_AGE_SECONDS: int = Field(default=365 * 24 * 60 * 60)
    MAX_FAVORITES: int = Field(
        default=50,
        description="Maximum number of favorites kept in the cookie (oldest evicted)"
    )

    # Magic links
    MAGIC_LINK_TTL_SECONDS: int = Field(default=15 * 60)
    MAIL_API_URL: Optional[str] = Field(
        default=None,
        description="Transactional mail endpoint; magic links are only logged when unset"
    )
    MAIL_API_KEY: str = Field(default="")

    # Third-party verification
    TURNSTILE_SECRET_KEY: str = Field(
        default="",
        description="Cloudflare Turnstile secret; CAPTCHA check is skipped when empty"
    )
    TURNSTILE_VERIFY_URL: str = Field(
        default="https://challenges.cloudflare.com/turnstile/v0/siteverify"
    )
    GOOGLE_CLIENT_ID: str = Field(default="")
    GOOGLE_CLIENT_SECRET: str = Field(default="")
    GOOGLE_REDIRECT_URI: str = Field(
        default="http://localhost:8000/api/auth/google/callback"
    )
    OAUTH_STATE_TTL_SECONDS: int = Field(default=10 * 60)

    # Cache invalidation
    REVALIDATE_SECRET: str = Field(
        default="",
        description="Secret expected in x-revalidate-secret; endpoint disabled when empty"
    )

    @property
    def is_production(self) -> bool:
        return self.ENV_SETTING == EnvSettingsOptions.production


settings = Settings()
