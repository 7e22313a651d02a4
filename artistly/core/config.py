"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Every setting carries a hard-coded default so the service boots with an
empty environment (Redis on localhost, all acceleration features on).
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
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)

SCAN_BATCH_SIZE_MAX = 10_000


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)


class RedisSettings(BaseSettings):
    """Connection options for the backing Redis server.

    Retries, backoff and timeouts are handed to the redis client itself;
    the store adapter does not implement its own retry loop.
    """

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (redis:// or rediss://)",
    )
    connect_timeout_seconds: float = Field(10.0, description="Socket connect timeout")
    command_timeout_seconds: float = Field(5.0, description="Per-command socket timeout")
    max_retries: int = Field(3, ge=0, description="Retries per command on connection errors")
    retry_backoff_base_seconds: float = Field(0.05, description="Exponential backoff base")
    retry_backoff_cap_seconds: float = Field(2.0, description="Exponential backoff ceiling")
    health_check_interval_seconds: int = Field(
        30,
        description="Idle seconds after which a pooled connection is pinged before reuse",
    )
    scan_batch_size: int = Field(100, description="COUNT hint used for SCAN iterations")

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False)

    @field_validator("scan_batch_size")
    @classmethod
    def _clamp_scan_batch_size(cls, value: int) -> int:
        if value < 1:
            return 100
        return min(value, SCAN_BATCH_SIZE_MAX)


class CacheTTLSettings(BaseSettings):
    """Named TTL classes, in seconds."""

    short: int = Field(300, ge=1, description="Frequently changing data (5 minutes)")
    medium: int = Field(1800, ge=1, description="Default class (30 minutes)")
    long: int = Field(7200, ge=1, description="Mostly static data (2 hours)")
    user_profile: int = Field(3600, ge=1, description="User profiles (1 hour)")
    artist_data: int = Field(1800, ge=1, description="Artist listings (30 minutes)")
    notifications: int = Field(300, ge=1, description="Notification feeds (5 minutes)")
    session: int = Field(86400, ge=1, description="Session records (24 hours)")
    analytics: int = Field(604800, ge=1, description="Analytics counters (7 days)")
    tag_buffer: int = Field(
        3600,
        ge=0,
        description="Extra lifetime of a tag index beyond its newest member's TTL",
    )

    model_config = SettingsConfigDict(env_prefix="CACHE_TTL_", case_sensitive=False)


class KeyPrefixSettings(BaseSettings):
    """Key namespaces in the shared Redis keyspace."""

    cache: str = "cache:"
    session: str = "session:"
    rate: str = "rate:"
    tag: str = "tag:"
    analytics: str = "analytics:"
    user: str = "user:"

    model_config = SettingsConfigDict(env_prefix="KEY_PREFIX_", case_sensitive=False)


class RateLimitSettings(BaseSettings):
    """Sliding-window defaults and predefined action classes."""

    window_ms: int = Field(60_000, ge=1, description="Default window in milliseconds")
    max_requests: int = Field(60, ge=1, description="Default requests per window")

    login_window_ms: int = Field(15 * 60 * 1000, ge=1)
    login_max_requests: int = Field(5, ge=1)
    signup_window_ms: int = Field(60 * 60 * 1000, ge=1)
    signup_max_requests: int = Field(3, ge=1)
    password_reset_window_ms: int = Field(60 * 60 * 1000, ge=1)
    password_reset_max_requests: int = Field(3, ge=1)
    api_window_ms: int = Field(60 * 1000, ge=1)
    api_max_requests: int = Field(60, ge=1)
    search_window_ms: int = Field(60 * 1000, ge=1)
    search_max_requests: int = Field(30, ge=1)
    upload_window_ms: int = Field(60 * 1000, ge=1)
    upload_max_requests: int = Field(10, ge=1)

    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", case_sensitive=False)


class FeatureSettings(BaseSettings):
    """Feature flags; a disabled component becomes a pass-through."""

    cache: bool = Field(True, description="Enable the tagged cache")
    sessions: bool = Field(True, description="Enable the session registry")
    rate_limiting: bool = Field(True, description="Enable sliding-window rate limiting")
    analytics: bool = Field(False, description="Record hit/miss/deny counters")
    error_logging: bool = Field(
        True,
        description="Log degraded (fail-open) operations at error level",
    )

    model_config = SettingsConfigDict(env_prefix="ENABLE_", case_sensitive=False)


class LimitSettings(BaseSettings):
    """Size ceilings and maintenance cadence."""

    max_cache_size: str = Field("100mb", description="Advertised cache memory budget")
    max_key_length: int = Field(250, ge=16, description="Longer logical keys are hashed")
    max_sessions_per_user: int = Field(5, ge=1)
    cleanup_interval_seconds: int = Field(3600, ge=1)
    cleanup_batch_size: int = Field(100, ge=1)

    model_config = SettingsConfigDict(env_prefix="LIMIT_", case_sensitive=False)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    ttl: CacheTTLSettings = Field(default_factory=CacheTTLSettings)
    prefixes: KeyPrefixSettings = Field(default_factory=KeyPrefixSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
