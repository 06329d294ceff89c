"""Configuration from environment and optional .env file (no hardcoded secrets)."""

import os
from pathlib import Path
from typing import FrozenSet

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from replaysync.errors import ConfigError


class Settings(BaseSettings):
    """Sync settings from env. S3_* and DATABASE_URL are required."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Object store (any S3-compatible endpoint, e.g. Backblaze B2)
    s3_key_id: str
    s3_key: str
    s3_endpoint: str
    s3_bucket_name: str
    s3_region: str = "us-east-1"
    s3_timeout: float = 60.0

    # Metadata database (SQLAlchemy URL, e.g. sqlite:///replays.db or postgresql+psycopg://...)
    database_url: str

    # Comma-separated player names whose replays may be uploaded.
    # Kept as a string so pydantic-settings does not try to JSON-decode it.
    allowed_players: str = Field(
        "", validation_alias=AliasChoices("REPLAYSYNC_ALLOWED_PLAYERS", "allowed_players")
    )

    cache_path: Path = Field(
        Path(".cache"), validation_alias=AliasChoices("REPLAYSYNC_CACHE_PATH", "cache_path")
    )
    # 0 = one worker per CPU core
    max_workers: int = Field(
        0, validation_alias=AliasChoices("REPLAYSYNC_MAX_WORKERS", "max_workers")
    )

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = Field(
        "INFO", validation_alias=AliasChoices("REPLAYSYNC_LOG_LEVEL", "log_level")
    )
    log_file: str = Field(
        "", validation_alias=AliasChoices("REPLAYSYNC_LOG_FILE", "log_file")
    )

    @property
    def allowed_players_set(self) -> FrozenSet[str]:
        """Allow-list as a set (split on comma, blanks dropped)."""
        return frozenset(p.strip() for p in self.allowed_players.split(",") if p.strip())

    @property
    def worker_count(self) -> int:
        """Fingerprinting pool size: max_workers, or the CPU count when unset."""
        if self.max_workers > 0:
            return self.max_workers
        return os.cpu_count() or 1


def get_settings() -> Settings:
    """Return settings, or raise ConfigError naming every missing/invalid variable."""
    try:
        return Settings()
    except ValidationError as e:
        names = sorted({str(err["loc"][0]).upper() for err in e.errors() if err.get("loc")})
        raise ConfigError(f"Missing or invalid configuration: {', '.join(names)}") from e
