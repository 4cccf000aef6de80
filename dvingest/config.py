"""Ingest configuration with environment variable support."""

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_import_workers() -> int:
    """Return a sensible default for import worker threads."""
    cpu_count = os.cpu_count() or 1
    return max(1, min(4, cpu_count // 2))


class Settings(BaseSettings):
    """Ingest configuration loaded from environment variables.

    Loads from environment (DVINGEST_*), .env file, or defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="DVINGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote repository
    api_url: str = "http://localhost:8080"
    api_key: str | None = None
    api_timeout: int = 30
    parent_collection: str = "root"

    # Import areas
    inbox: Path = Path("data/inbox")
    outbox: Path = Path("data/outbox")
    temp_dir: Path | None = None
    progress_log_name: str = "progress.json"

    # Uploads
    max_files_per_upload: int = Field(default=1000, ge=1)
    max_bytes_per_upload: int = Field(default=1024 * 1024 * 1024, ge=1)

    # Publishing
    publish_poll_interval_ms: int = Field(default=3000, ge=0)
    publish_max_retries: int = Field(default=10, ge=0)

    # Performance
    max_import_workers: int = Field(default_factory=_default_import_workers, ge=1)

    @field_validator("api_key", mode="before")
    @classmethod
    def parse_null_key(cls, v: str | None) -> str | None:
        """Convert 'null' string to None."""
        if isinstance(v, str) and v.lower() in ("null", "none", ""):
            return None
        return v

    @field_validator("temp_dir", mode="before")
    @classmethod
    def parse_null_temp_dir(cls, v: str | Path | None) -> str | Path | None:
        """Convert 'null' string to None."""
        if isinstance(v, str) and v.lower() in ("null", "none", ""):
            return None
        return v

    @field_validator("inbox", "outbox", "temp_dir", mode="after")
    @classmethod
    def create_dirs(cls, v: Path | None) -> Path | None:
        """Create directories if they don't exist."""
        if v is None:
            return None
        v.mkdir(parents=True, exist_ok=True)
        return v.resolve()
