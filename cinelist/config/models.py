"""Pydantic models used across the CineList configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PipelineOptions(BaseModel):
    """Immutable tuning snapshot for one pipeline run."""

    model_config = ConfigDict(frozen=True)

    # -1 runs every source at once
    scraper_parallelism: int = -1
    dedup_parallelism: int = 2
    enrichment_parallelism: int = 5
    persistence_parallelism: int = 1
    batch_size: int = 50
    queue_capacity: int = 1000
    resolver_timeout_seconds: float = 30.0
    scrape_timeout_seconds: float = 60.0
    caching_enabled: bool = True
    cache_ttl_hours: float = 24.0
    cache_size_limit: int = Field(default=100, description="Maximum cached films.")
    dedup_enabled: bool = True
    retry_count: int = 3
    metrics_logging_enabled: bool = True

    @model_validator(mode="after")
    def _validate_limits(self) -> "PipelineOptions":
        if self.scraper_parallelism == 0 or self.scraper_parallelism < -1:
            raise ValueError("scraper_parallelism must be >= 1 or -1 for unbounded")
        for name in ("dedup_parallelism", "enrichment_parallelism", "persistence_parallelism"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.queue_capacity < 1:
            raise ValueError("queue_capacity must be >= 1")
        if self.retry_count < 1:
            raise ValueError("retry_count must be >= 1")
        if self.cache_ttl_hours <= 0:
            raise ValueError("cache_ttl_hours must be positive")
        if self.cache_size_limit < 1:
            raise ValueError("cache_size_limit must be >= 1")
        if self.resolver_timeout_seconds <= 0 or self.scrape_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        return self

    def scraper_workers(self, producer_count: int) -> int:
        if self.scraper_parallelism == -1:
            return max(producer_count, 1)
        return self.scraper_parallelism

    @property
    def source_request_timeout(self) -> float:
        """Per-request HTTP timeout for sources, a quarter of the whole-scrape budget."""

        return self.scrape_timeout_seconds / 4


class CatalogSettings(BaseModel):
    """Credentials and endpoints of the external film catalogs."""

    omdb_base_url: str = "https://www.omdbapi.com/"
    omdb_api_key: str = ""
    radarr_base_url: str = "http://localhost:7878/"
    radarr_api_key: str = ""
    radarr_quality_profile_id: int = 1
    radarr_root_folder: str = "/movies"

    @field_validator("omdb_base_url", "radarr_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        return value if value.endswith("/") else value + "/"


class SourceSettings(BaseModel):
    """One registered cinema source."""

    name: str
    enabled: bool = True
    base_url: str | None = None
    min_hours_between_runs: float = 24.0

    @field_validator("min_hours_between_runs")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("min_hours_between_runs must be >= 0")
        return value


class StoreBackend(str, Enum):
    SQLITE = "sqlite"
    MONGODB = "mongodb"


class StoreSettings(BaseModel):
    backend: StoreBackend = StoreBackend.SQLITE
    sqlite_path: Path = Field(default=Path("data/cinelist.db"))
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "cinelist"

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_sqlite_path(self, base_dir: Path) -> Path:
        if not self.sqlite_path.is_absolute():
            return (base_dir / self.sqlite_path).resolve()
        return self.sqlite_path


class ScheduleSettings(BaseModel):
    """Recurring run cadence used by ``cinelist schedule``."""

    interval_hours: float = 1.0
    run_on_start: bool = True

    @field_validator("interval_hours")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("interval_hours must be positive")
        return value


def _default_sources() -> list[SourceSettings]:
    return [
        SourceSettings(name="cinema_moderne", base_url="https://www.cinemamoderne.com/"),
        SourceSettings(name="cinema_beaubien", base_url="https://cinemacinema.ca/"),
    ]


class GlobalConfig(BaseModel):
    """Top-level configuration file contents."""

    pipeline: PipelineOptions = Field(default_factory=PipelineOptions)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    sources: list[SourceSettings] = Field(default_factory=_default_sources)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    @model_validator(mode="after")
    def _unique_sources(self) -> "GlobalConfig":
        names = [source.name for source in self.sources]
        if len(names) != len(set(names)):
            raise ValueError("source names must be unique")
        return self

    def enabled_sources(self) -> list[SourceSettings]:
        return [source for source in self.sources if source.enabled]


__all__ = [
    "CatalogSettings",
    "GlobalConfig",
    "PipelineOptions",
    "ScheduleSettings",
    "SourceSettings",
    "StoreBackend",
    "StoreSettings",
]
