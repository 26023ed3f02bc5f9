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
_env_file = str(_env_path) if _env_path.is_file() else None

# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Examples:
        >>> split_csv("client.host, headers.x-api-key")
        ['client.host', 'headers.x-api-key']
        >>> split_csv(None)
        []
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class RateLimitSettings(BaseSettings):
    """Fixed-window quota applied by the rate-limit middleware."""

    enabled: bool = Field(
        True,
        description="Install the rate-limit middleware on the application",
    )
    total: int = Field(
        100,
        description="Maximum number of requests per window and counting key",
        ge=1,
    )
    expire_ms: int = Field(
        60_000,
        description="Window length in milliseconds (also the store TTL)",
        ge=1,
    )
    path: str | None = Field(
        None,
        description="Resource identifier override; limits only this path when method is also set",
    )
    method: str | None = Field(
        None,
        description="HTTP method override; limits only this method when path is also set",
    )
    lookup: str = Field(
        "client.host",
        description="Comma-separated dotted request attributes identifying a client",
    )
    skip_headers: bool = Field(
        False,
        description="Suppress X-RateLimit-* and Retry-After response headers",
    )
    ignore_errors: bool = Field(
        False,
        description="Admit requests when the shared store is unavailable",
    )
    whitelist_paths: str = Field(
        "/health",
        description="Comma-separated request paths that bypass rate limiting",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Shared key-value store holding window records."""

    redis_url: str | None = Field(
        None,
        description="Redis URL (redis://host:port/db). Unset uses a per-process in-memory store",
    )
    socket_timeout_seconds: float = Field(
        5.0,
        description="Socket timeout for Redis commands",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
