"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
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

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


TOKEN_BUCKET_SWEEP_INTERVAL_SECONDS = 60.0

RateLimitStrategy = Literal["global", "ip", "window"]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment.

    See _build_app_settings() for rationale about the type ignore.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "Throttle API",
        description="Service name used in OpenAPI metadata",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Bind address used when running the server directly",
    )
    port: int = Field(
        8080,
        description="Bind port used when running the server directly",
        ge=1,
        le=65535,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Strategies:
    - ``global``: one token bucket shared by every client.
    - ``ip``: one token bucket per client identifier.
    - ``window``: exact sliding window per client identifier.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting",
    )
    apply_globally: bool = Field(
        True,
        description="Gate every request with the middleware; when false only routes declaring the dependency are limited",
    )
    strategy: RateLimitStrategy = Field(
        "ip",
        description="Limiter strategy: global, ip or window",
    )
    rate: float = Field(
        5.0,
        description="Sustained permits per second (token bucket strategies)",
        gt=0,
    )
    burst: int = Field(
        10,
        description="Maximum instantaneous permits (token bucket strategies)",
        ge=1,
    )
    limit: int = Field(
        100,
        description="Maximum requests per window (window strategy)",
        ge=1,
    )
    window_seconds: float = Field(
        60.0,
        description="Trailing window duration in seconds (window strategy)",
        gt=0,
    )
    sweep_interval_seconds: float | None = Field(
        None,
        description="Reaper interval; defaults to 60s for token buckets and window_seconds for windows",
        gt=0,
    )
    idle_seconds: float | None = Field(
        None,
        description="Minimum idle time before a full token bucket is evicted; defaults to the sweep interval",
        ge=0,
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For entry as the client identifier",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Request paths that bypass the limiter",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _resolve_sweep_defaults(self) -> "RateLimitSettings":
        if self.sweep_interval_seconds is None:
            if self.strategy == "window":
                self.sweep_interval_seconds = self.window_seconds
            else:
                self.sweep_interval_seconds = TOKEN_BUCKET_SWEEP_INTERVAL_SECONDS
        if self.idle_seconds is None:
            self.idle_seconds = self.sweep_interval_seconds
        return self


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log output format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Log destination",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid
    (e.g. a non-positive rate or window).
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
