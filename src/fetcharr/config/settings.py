"""Application settings loaded from environment variables and .env.

Hey future me - every knob of the acquisition engine lives here, grouped into
nested sections. Environment variables use the FETCHARR_ prefix and "__" as
the nesting delimiter:

    FETCHARR_SEARCH__INDEXER_CONCURRENCY=2
    FETCHARR_QUEUE__STALL_TIMEOUT_MINUTES=90
    FETCHARR_DATABASE__URL=sqlite+aiosqlite:///./fetcharr.db

Runtime-editable config (quality profiles, custom formats, ...) is NOT here,
that comes from the library store as a ProfileCatalog.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseModel):
    """Decision/grab loop limits."""

    max_retries_per_cycle: int = Field(
        default=3, ge=0, description="Next-best grabs after a blocklisting, per target per cycle"
    )
    max_grab_attempts: int = Field(
        default=5, ge=1, description="Ranked candidates tried when dispatch keeps failing"
    )


class SearchSettings(BaseModel):
    """Indexer fan-out and backoff."""

    indexer_concurrency: int = Field(default=4, ge=1)
    search_timeout_seconds: float = Field(default=60.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    rss_sync_interval_minutes: int = Field(default=15, ge=10)
    indexer_failure_backoff_minutes: float = Field(
        default=5.0, ge=0, description="First bench time after a failed indexer, doubles per failure"
    )
    indexer_failure_backoff_max_minutes: float = Field(default=24 * 60.0, ge=0)


class ThrottleSettings(BaseModel):
    """Search cooldown policy (days)."""

    missing_cooldown_days: float = Field(default=7.0, ge=0)
    recent_anime_cooldown_days: float = Field(default=1.0, ge=0)
    stale_cooldown_days: float = Field(default=14.0, ge=0)
    recent_window_days: int = Field(default=30, ge=0)
    unreleased_grace_days: float = Field(default=1.0, ge=0)


class QueueSettings(BaseModel):
    """Download client polling."""

    poll_interval_seconds: int = Field(default=30, ge=1)
    stall_timeout_minutes: int = Field(default=60, ge=1)
    max_consecutive_failures: int = Field(default=5, ge=1)
    max_backoff_seconds: int = Field(default=600, ge=1)
    dispatch_retry_attempts: int = Field(default=3, ge=1)
    dispatch_retry_initial_delay: float = Field(default=1.0, ge=0)


class ImportSettings(BaseModel):
    """Completed-download import."""

    title_similarity_threshold: int = Field(default=85, ge=0, le=100)
    media_extensions: list[str] = Field(
        default_factory=lambda: [
            ".mkv",
            ".mp4",
            ".avi",
            ".m4v",
            ".ts",
            ".wmv",
            ".flac",
            ".mp3",
            ".m4a",
            ".aac",
            ".ogg",
            ".opus",
            ".wav",
        ]
    )
    sample_max_megabytes: int = Field(default=150, ge=0)

    @field_validator("media_extensions")
    @classmethod
    def normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]


class IndexerConfig(BaseModel):
    """One Newznab/Torznab endpoint (FETCHARR_INDEXERS is a JSON list of these)."""

    name: str
    url: str
    api_key: str = ""
    protocol: Literal["usenet", "torrent"] = "usenet"
    priority: int = Field(default=25, ge=1, le=100)
    enabled: bool = True
    supports_rss: bool = True
    categories: list[int] = Field(default_factory=list)
    requests_per_second: float = Field(default=1.0, gt=0)
    # Empty = carries every kind / serves every target
    content_kinds: list[Literal["series", "anime", "movie", "music"]] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class DownloadClientConfig(BaseModel):
    """One SABnzbd instance."""

    name: str
    url: str
    api_key: str = ""
    category: str | None = None
    priority: int = Field(default=1, ge=1, le=50)
    enabled: bool = True
    tags: list[str] = Field(default_factory=list)


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./fetcharr.db"
    echo: bool = False


class ObservabilitySettings(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="FETCHARR_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "fetcharr"
    engine: EngineSettings = Field(default_factory=EngineSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    imports: ImportSettings = Field(default_factory=ImportSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    indexers: list[IndexerConfig] = Field(default_factory=list)
    download_clients: list[DownloadClientConfig] = Field(default_factory=list)


# Hey future me - cached so every module sees the same object. Tests that
# monkeypatch env vars must call get_settings.cache_clear() first!
@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
