from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TR_", case_sensitive=False, extra="ignore")
    """Application runtime configuration."""

    app_name: str = "TimeReporting"
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8080

    database_url: Optional[str] = None
    sqlite_path: Path = Path("./data/timereporting.db")
    store_timeout_seconds: float = Field(default=5.0, gt=0)

    log_level: str = "INFO"
    log_json: bool = True

    clear_decline_comment_on_submit: bool = False
    enforce_required_tags: bool = False

    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=200, ge=1)

    suggestion_idle_minutes: float = 30.0
    seed_demo_data: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return str(value or "INFO").strip().upper()

    @computed_field
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.sqlite_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.resolved_database_url.startswith("sqlite")


settings = Settings()

# File-backed SQLite needs its directory before the engine connects
if settings.is_sqlite and not settings.database_url:
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
