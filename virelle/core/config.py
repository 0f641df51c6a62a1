"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
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
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enforce per-user rate limits on guarded endpoints",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        300.0,
        description="Interval between sweeps that drop expired rate limit windows",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description=(
            "Add X-RateLimit-Limit/X-RateLimit-Remaining to 429 responses "
            "(Retry-After is always sent)"
        ),
    )
    user_id_header: str = Field(
        "X-User-Id",
        description="Header carrying the caller's user id, set by the upstream gateway",
    )

    ip_rate_limit_enabled: bool = Field(
        True,
        description="Throttle requests per client IP on the routes below",
    )
    ip_rate_limit_window_ms: int = Field(
        60_000,
        description="Window length shared by all per-IP route ceilings",
        ge=1,
    )
    ip_rate_limit_global_prefix: str = Field(
        "/v1/",
        description="Path prefix covered by the general per-IP ceiling",
    )
    ip_rate_limit_global_max: int = Field(
        200,
        description="General per-IP ceiling for every path under the global prefix",
        ge=1,
    )
    ip_rate_limit_routes: dict[str, int] = Field(
        default_factory=lambda: {
            "/v1/auth/login": 10,
            "/v1/auth/register": 5,
            "/v1/auth/password-reset": 3,
            "/v1/generation/quick": 20,
            "/v1/characters/ai-generate": 20,
            "/v1/characters/ai-generate-from-photo": 20,
            "/v1/director/messages": 30,
        },
        description="Stricter per-IP ceilings by path prefix (JSON object in env)",
    )
    ip_rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        description="Interval between sweeps of the per-IP limiter",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (defaults to logs/virelle.log)",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
