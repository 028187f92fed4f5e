"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SESSION_TIMEOUT_SECONDS = 60 * 60 * 24 * 7


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "development"

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_pool_timeout: int = 10
    database_pool_recycle: int = 900
    run_migrations_on_startup: bool = False

    # Redis (reference-data cache + session store)
    redis_url: str = ""
    redis_socket_timeout: float = 5.0

    # API Configuration
    api_host: str = "127.0.0.1"
    api_port: int = 3001
    api_title: str = "GeoAdmin API"
    api_version: str = "0.1.0"
    api_description: str = "Administrative backend for accounts, countries and states"

    # Sessions
    session_timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS
    session_cookie_name: str = "geoadmin_session"
    session_cookie_secure: bool = False
    session_key_prefix: str = "session:"
    admin_login_path: str = "/admin/login"
    cors_allowed_origins: list[str] = []

    # Reference-data cache
    geo_cache_ttl_seconds: int = 300

    # Account listing
    listing_default_limit: int = 10
    listing_max_limit: int = 500

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "geoadmin-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("session_timeout_seconds", mode="after")
    @classmethod
    def default_non_positive_timeout(cls, value: int) -> int:
        """Non-positive SESSION_TIMEOUT_SECONDS falls back to seven days."""
        return value if value > 0 else DEFAULT_SESSION_TIMEOUT_SECONDS

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start without its durable store and its cache/session
        store.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres", "sqlite")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.redis_url:
            errors.append("REDIS_URL is required but empty or missing")
        elif not self.redis_url.startswith(("redis://", "rediss://", "unix://")):
            errors.append(f"REDIS_URL must be a redis:// URL, got: {self.redis_url[:20]}...")

        if self.geo_cache_ttl_seconds <= 0:
            errors.append("GEO_CACHE_TTL_SECONDS must be positive")

        if self.listing_default_limit <= 0 or self.listing_max_limit < self.listing_default_limit:
            errors.append("LISTING_DEFAULT_LIMIT must be positive and <= LISTING_MAX_LIMIT")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


# Global settings instance - validates at import time
settings = Settings()
