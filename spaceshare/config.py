"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./spaceshare.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    service_api_key: str = Field(default="service-key", description="API key for service-to-service calls")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    slot_cache_ttl: int = Field(default=60, description="TTL (s) for cached per-date slot listings")
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")

    notification_backend: Literal["database", "rabbitmq"] = Field(
        default="database",
        description="Where booking notifications are delivered.",
    )
    rabbitmq_host: str = Field(default="rabbitmq", description="Broker host for the rabbitmq backend")
    rabbitmq_queue: str = Field(default="notifications", description="Durable queue notifications are published to")

    enforce_availability: bool = Field(
        default=False,
        description="Reject booking requests that do not fall inside one of the day's offered slots.",
    )
    default_suggestion_radius_km: float = Field(default=0.5, gt=0, description="Suggestion radius without a user preference")
    suggestion_location_limit: int = Field(default=5, ge=1, description="Most-visited saved locations used for suggestions")

    log_dir: str = Field(default="logs", description="Directory for per-service audit logs")
    log_level: str = Field(default="INFO", description="Level for application loggers")

    spaces_service_port: int = 8001
    bookings_service_port: int = 8002
    suggestions_service_port: int = 8003


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
