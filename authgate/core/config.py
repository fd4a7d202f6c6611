"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
- production disables the in-memory storage fallback and forces secure cookies
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_db_settings() -> "DatabaseSettings":
    """Build database settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return DatabaseSettings()  # type: ignore[call-arg]


def _build_auth_settings() -> "AuthSettings":
    return AuthSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class DatabaseSettings(BaseSettings):
    """Durable store configuration.

    Any SQLAlchemy async URL works. Plain ``postgresql://`` URLs (as handed out
    by most hosting providers) are rewritten to the asyncpg driver.
    """

    url: str = Field(
        "sqlite+aiosqlite:///./authgate.db",
        description="SQLAlchemy async database URL",
    )
    pool_size: int = Field(5, description="Connection pool size (ignored for SQLite)", ge=1)
    max_overflow: int = Field(10, description="Extra connections above pool_size", ge=0)
    echo: bool = Field(False, description="Log every SQL statement")

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )

    @field_validator("url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        return v


class AuthSettings(BaseSettings):
    """Credential and session configuration."""

    session_ttl_seconds: int = Field(
        60 * 60 * 24 * 7,
        description="Lifetime of a session (and its cookie) in seconds",
        ge=60,
    )
    cookie_name: str = Field(
        "tg_session",
        description="Name of the cookie carrying the raw session token",
    )
    password_iterations: int = Field(
        120_000,
        description="PBKDF2 iteration count for newly hashed passwords",
        ge=1,
    )
    password_min_length: int = Field(8, description="Minimum sign-up password length", ge=1)
    password_max_length: int = Field(72, description="Maximum sign-up password length", ge=1)
    name_max_length: int = Field(80, description="Maximum display name length", ge=1)

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting for credential endpoints."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on sign-in and sign-up",
    )
    requests: int = Field(
        5,
        description="Maximum number of requests allowed per window (per identifier)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    sweep_interval_seconds: float = Field(
        60.0,
        description="Cadence of the background sweep removing expired windows",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate the log file at this size (0 disables)", ge=0)
    backup_count: int = Field(3, description="Rotated files to keep", ge=0)
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    db: DatabaseSettings = Field(default_factory=_build_db_settings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
