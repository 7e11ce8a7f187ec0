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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LLMSettings()  # type: ignore[call-arg]


def _build_quota_settings() -> "QuotaSettings":
    """Build quota store settings from environment."""

    return QuotaSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LLMSettings(BaseSettings):
    """Generation service configuration.

    The sampling values are operational tuning and are sent unchanged on every
    completion request. Provider-specific validation happens in the factory.
    """

    provider: str = Field(
        ...,
        description="LLM provider name (openai or gemini)",
    )
    model: str = Field(
        ...,
        description="Model name (e.g., gemini-2.0-flash, gpt-4o-mini)",
    )
    api_key: str | None = Field(
        None,
        description="API key for the generation provider",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (overrides the provider default)",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds enforced by the SDK client",
    )
    temperature: float = Field(
        0.5,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )
    max_tokens: int = Field(
        5000,
        ge=1,
        description="Maximum number of tokens in the completion",
    )
    top_p: float = Field(
        0.95,
        gt=0.0,
        le=1.0,
        description="Nucleus sampling threshold",
    )
    top_k: int | None = Field(
        None,
        ge=1,
        description="Top-k sampling; only forwarded when set (not supported by OpenAI)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class QuotaSettings(BaseSettings):
    """Prepaid quota store configuration."""

    backend: str = Field(
        "postgrest",
        description="Quota store backend (postgrest or memory)",
    )
    url: str | None = Field(
        None,
        description="Base URL of the Supabase/PostgREST project",
    )
    service_key: str | None = Field(
        None,
        description="Service role key used for both apikey and bearer auth",
    )
    table: str = Field(
        "users",
        description="Table holding one row per user with a turns column",
    )
    identity_column: str = Field(
        "email",
        description="Column matched against the caller identity",
    )
    timeout_seconds: float = Field(
        10.0,
        description="HTTP timeout for store calls in seconds",
    )
    decrement_rpc: str | None = Field(
        None,
        description="Name of a store-side decrement-if-positive function, if deployed",
    )
    seed: str | None = Field(
        None,
        description="Memory backend only: comma-separated email=turns pairs",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        8000,
        description="Port the HTTP server listens on",
    )
    max_code_chars: int = Field(
        5000,
        ge=1,
        description="Maximum accepted code length in characters",
    )
    external_timeout_seconds: float = Field(
        60.0,
        gt=0,
        description="Upper bound for any single call to the quota store or the model",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-identity rate limiting",
    )
    rate_limit_requests: int = Field(
        10,
        description="Maximum number of requests allowed per window (per identity)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_max_keys: int = Field(
        10000,
        description="Maximum number of identities tracked before LRU eviction",
        ge=1,
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="Minimum interval between sweeps of expired windows",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int | None = Field(
        10_000_000,
        description="Rotate the log file at this size (None disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the correlation id",
    )
    redact_keys: str | None = Field(
        None,
        description="Comma-separated field names redacted in addition to the built-in set",
    )
    max_field_chars: int = Field(
        512,
        ge=16,
        description="String fields longer than this are truncated in log output",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    quota: QuotaSettings = Field(default_factory=_build_quota_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
