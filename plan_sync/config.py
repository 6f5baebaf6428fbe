"""Application configuration management."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./data/plan_sync.db",
        description="SQLAlchemy-compatible database URL.",
    )
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000, ge=1, le=65535)

    debug: bool = Field(default=False)

    athlete_id: str = Field(
        default="default",
        description="Key used to serialise matching passes for the local athlete.",
    )
    tracked_activity_kind: str = Field(default="run")
    grace_period_days: int = Field(default=3, ge=0)
    session_fetch_limit: int = Field(default=200, ge=1)
    keyword_config_path: Path | None = Field(
        default=None,
        description="Optional YAML file overriding the classifier keyword vocabulary.",
    )

    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("logs"))
    scheduler_interval_minutes: int = Field(default=60, ge=1)
    scheduler_lock_file: Path = Field(default=Path(".scheduler.lock"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("tracked_activity_kind")
    @classmethod
    def normalize_activity_kind(cls, value: str) -> str:
        """Store the tracked kind lower-cased so comparisons stay simple."""

        cleaned = value.strip().lower()
        if not cleaned:
            raise ValueError("TRACKED_ACTIVITY_KIND must not be empty")
        return cleaned

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        upper = value.upper()
        if upper not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(sorted(valid))}")
        return upper


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance so it can be reused across the app."""

    settings = Settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    return settings
