"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="IANA timezone name (or UTC±HH:MM offset) used for schedule anchors",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API from a browser",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the background scheduler runner with the application",
    )
    scheduler_max_sleep_seconds: float = Field(
        default=60.0,
        description="Upper bound for the runner sleep between two checks of the job list",
        gt=0,
    )
    notification_max_connections_per_user: int = Field(
        default=5,
        description="Open notification websockets allowed per user before the oldest is closed",
        gt=0,
    )
    notification_dedup_window_hours: int = Field(
        default=24,
        description="Lookback window used to suppress duplicate notifications",
        gt=0,
    )
    scheduled_job_retention_days: int = Field(
        default=7,
        description="Days an executed job is kept before being pruned",
        gt=0,
    )
    scheduled_job_max_attempts: int = Field(
        default=5,
        description="Failed attempts after which a scheduled job is abandoned",
        gt=0,
    )
    scheduled_job_retry_base_seconds: int = Field(
        default=60,
        description="Base delay of the exponential backoff applied to failed jobs",
        gt=0,
    )

    @model_validator(mode="after")
    def _validate_log_level(self) -> "Settings":
        normalized = self.log_level.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG")
        self.log_level = normalized
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
