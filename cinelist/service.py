"""Service wiring configuration, stores, sources and the catalog into runs."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Iterable

import httpx
import structlog

from .catalog import CatalogResolver
from .config import ConfigRepository, GlobalConfig, StoreBackend
from .engine import FilmFilter, FilmStore, HarvestPipeline, RunReport, TTLCache
from .engine.models import Film
from .infra import HistoryEntry, MongoFilmStore, RunHistoryStore, SQLiteFilmStore, SQLiteManager
from .logging_conf import configure_logging
from .sources import CinemaSource, build_sources


def build_film_store(config: GlobalConfig, storage: SQLiteManager, sqlite_path: Path) -> FilmStore:
    if config.store.backend is StoreBackend.MONGODB:
        return MongoFilmStore(uri=config.store.mongo_uri, database=config.store.mongo_database)
    return SQLiteFilmStore(storage, sqlite_path)


class HarvestService:
    """Own long-lived collaborators and start pipeline runs on demand.

    The metadata cache is shared by every run started from one service, which
    is what lets the scheduler benefit from lookups made in earlier runs.
    Runs never overlap: a second caller waits for the current run to finish.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        storage: SQLiteManager,
        *,
        http_client: httpx.Client | None = None,
        resolver: CatalogResolver | None = None,
        store: FilmStore | None = None,
        history: RunHistoryStore | None = None,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.config: GlobalConfig = repository.load_global_config()
        self.logger = configure_logging().bind(component="service")

        options = self.config.pipeline
        sqlite_path = self.config.store.resolved_sqlite_path(repository.store_base_dir())
        self.history = history or RunHistoryStore(storage, sqlite_path)
        self.store = store or build_film_store(self.config, storage, sqlite_path)
        self.http_client = http_client or httpx.Client(
            headers={"User-Agent": self.config.user_agent},
            timeout=options.source_request_timeout,
            follow_redirects=True,
        )
        self.resolver = resolver or CatalogResolver(
            self.config.catalog, timeout=options.resolver_timeout_seconds
        )
        self.cache: TTLCache[Film] = TTLCache(
            ttl_seconds=options.cache_ttl_hours * 3600,
            max_entries=options.cache_size_limit,
        )
        self._run_lock = Lock()
        self._pipeline: HarvestPipeline | None = None

    # ------------------------------------------------------------------
    def build_sources(self, only: Iterable[str] | None = None) -> list[CinemaSource]:
        return build_sources(self.config, self.http_client, self.history, only=only)

    def build_pipeline(
        self,
        sources: Iterable[str] | None = None,
        dedup_enabled: bool | None = None,
        caching_enabled: bool | None = None,
    ) -> HarvestPipeline:
        overrides = {}
        if dedup_enabled is not None:
            overrides["dedup_enabled"] = dedup_enabled
        if caching_enabled is not None:
            overrides["caching_enabled"] = caching_enabled
        options = self.config.pipeline.model_copy(update=overrides)
        return HarvestPipeline(
            self.build_sources(sources),
            self.resolver,
            self.store,
            options,
            cache=self.cache,
        )

    def run(
        self,
        sources: Iterable[str] | None = None,
        dedup_enabled: bool | None = None,
        caching_enabled: bool | None = None,
    ) -> RunReport:
        pipeline = self.build_pipeline(sources, dedup_enabled, caching_enabled)
        with self._run_lock:
            self._pipeline = pipeline
            try:
                return pipeline.run()
            finally:
                self._pipeline = None

    def run_scheduled(self) -> None:
        """Job entry point for the scheduler; failures are logged, not raised."""

        try:
            report = self.run()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("scheduled_run_failed", error=str(exc), exc_info=True)
            return
        self.logger.info(
            "scheduled_run_finished",
            run_id=report.run_id,
            persisted=report.metrics.films_persisted,
            cancelled=report.cancelled,
        )

    def cancel(self) -> None:
        pipeline = self._pipeline
        if pipeline is not None:
            pipeline.cancel()

    # ------------------------------------------------------------------
    def list_films(self, film_filter: FilmFilter = FilmFilter.ALL) -> list[Film]:
        return self.store.list_films(film_filter)

    def add_to_radarr(self, tmdb_id: str) -> None:
        self.resolver.add_to_radarr(tmdb_id, store=self.store)

    def synchronize_library(self) -> int:
        return self.resolver.synchronize_library(self.store)

    def synchronize_scheduled(self) -> None:
        try:
            self.synchronize_library()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("scheduled_sync_failed", error=str(exc), exc_info=True)

    def history_entries(self, limit: int = 20, source: str | None = None) -> list[HistoryEntry]:
        return self.history.list_runs(limit=limit, source=source)

    def close(self) -> None:
        self.http_client.close()
        self.resolver.close()
        close_store = getattr(self.store, "close", None)
        if callable(close_store):
            close_store()
        self.storage.close_all()


__all__ = ["HarvestService", "build_film_store"]
