"""Settings for the quiz API, one ``BaseSettings`` class per concern.

Values come from the process environment. When ``APP_ENV`` names a known
environment and ``.env.<APP_ENV>`` exists at the project root, that file is
loaded into the environment first and wins over inherited variables.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
KNOWN_ENVIRONMENTS = ("development", "testing", "staging", "production")

APP_ENV = os.getenv("APP_ENV", "development")


def load_env_file(app_env: str) -> Path | None:
    """Load ``.env.<app_env>`` into ``os.environ`` and return its path.

    Unknown environments fall back to development. Returns None when the file
    is absent, which is normal for deployments that inject variables directly.
    """
    name = app_env if app_env in KNOWN_ENVIRONMENTS else "development"
    path = PROJECT_ROOT / f".env.{name}"
    if not path.is_file():
        return None
    # Nested settings classes read os.environ, not env_file
    load_dotenv(path, override=True)
    return path


load_env_file(APP_ENV)


class LLMSettings(BaseSettings):
    """Text-generation provider configuration.

    Any OpenAI-compatible chat completions endpoint works; Perplexity is the
    default because its responses carry web citations.
    """

    provider: str = Field(
        "perplexity",
        description="LLM provider name (perplexity or openai)",
    )
    model: str = Field(
        "sonar",
        description="Model used for follow-up chat",
    )
    reasoning_model: str = Field(
        "sonar-reasoning-pro",
        description="Model used for explanations and 'think harder' chat",
    )
    api_key: str | None = Field(
        None,
        description="API key for the provider",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (defaults to the provider's public URL)",
    )
    timeout_seconds: float = Field(
        60.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    cors_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Counter/cache key-value store configuration."""

    backend: str = Field(
        "redis",
        description="Store backend: redis or memory (single process only)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout for store commands",
        gt=0,
    )
    max_retries: int = Field(
        3,
        description="Retries per command on connection errors (exponential backoff)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    url: str = Field(
        "sqlite+pysqlite:///:memory:",
        description="SQLAlchemy database URL",
    )
    create_schema: bool = Field(
        True,
        description="Create missing tables at startup",
    )
    echo: bool = Field(
        False,
        description="Log every SQL statement",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Read-through cache configuration."""

    ttl_seconds: int = Field(
        86400,
        description="TTL applied to cached question listings",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class RateLimitRule(BaseModel):
    """Maximum request count per window for one endpoint."""

    requests: int = Field(..., ge=1)
    window_seconds: int = Field(..., ge=1)


class RateLimitSettings(BaseSettings):
    """Per-endpoint rate limiting configuration."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on protected endpoints",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )

    # Raised from 2/min: the listing is cached and cheap, unlike explain and chat
    questions_requests: int = Field(30, ge=1)
    questions_window_seconds: int = Field(60, ge=1)
    explain_requests: int = Field(15, ge=1)
    explain_window_seconds: int = Field(86400, ge=1)
    chat_requests: int = Field(35, ge=1)
    chat_window_seconds: int = Field(86400, ge=1)
    visitors_requests: int = Field(20, ge=1)
    visitors_window_seconds: int = Field(60, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def rule_for(self, endpoint: str) -> RateLimitRule:
        """Return the configured rule for an endpoint name.

        Raises:
            KeyError: If no rule is configured for the endpoint.
        """
        try:
            return RateLimitRule(
                requests=getattr(self, f"{endpoint}_requests"),
                window_seconds=getattr(self, f"{endpoint}_window_seconds"),
            )
        except AttributeError as exc:
            raise KeyError(f"No rate limit configured for endpoint '{endpoint}'") from exc


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this size (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """All settings, grouped by concern.

    Built once at import as ``settings``; tests pass their own to create_app().
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=LLMSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Default settings instance; create_app() accepts an explicit override.
settings = Settings()
