"""Persistence stage: upsert batches and write per-source run history."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Sequence

import structlog

from .channel import Channel
from .contracts import FilmStore, SourceProducer
from .metrics import RunMetrics
from .models import Film, FilmBatch, RunContext


class PersistenceStage:
    """Upsert each batch and remember which films every source contributed.

    History is not written per batch. :meth:`finalize_history` is called once
    after the last batch so that each source gets exactly one entry per run.
    """

    def __init__(
        self,
        store: FilmStore,
        producers: Sequence[SourceProducer],
        metrics: RunMetrics,
        context: RunContext,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.producers = list(producers)
        self.metrics = metrics
        self.context = context
        self.logger = logger or structlog.get_logger("cinelist.persistence")
        self._films_by_source: Dict[str, Dict[str, Film]] = {}
        self._lock = Lock()

    def worker(self, inbox: Channel[FilmBatch]) -> None:
        for batch in inbox:
            self.persist(batch)

    def persist(self, batch: FilmBatch) -> int:
        if self.context.cancelled:
            self.logger.info("batch_discarded", size=batch.total_attempted, reason="cancelled")
            return 0
        if not batch.films:
            self.logger.info(
                "batch_empty",
                total=batch.total_attempted,
                failed=batch.failure_count,
            )
            return 0

        self.logger.info(
            "batch_persisting",
            films=len(batch.films),
            total=batch.total_attempted,
            success=batch.success_count,
            cached=batch.cached_count,
            failed=batch.failure_count,
        )
        try:
            self.store.upsert(list(batch.films))
        except Exception as exc:  # noqa: BLE001
            self.metrics.batches_lost.increment()
            self.logger.error(
                "batch_lost",
                films=len(batch.films),
                titles=[film.title for film in batch.films],
                error=str(exc),
            )
            return 0

        self._remember(batch)
        self.metrics.films_persisted.increment(len(batch.films))
        self.logger.info("batch_persisted", films=len(batch.films))
        return len(batch.films)

    def _remember(self, batch: FilmBatch) -> None:
        with self._lock:
            for outcome in batch.outcomes:
                if outcome.film is None:
                    continue
                films = self._films_by_source.setdefault(outcome.source_id, {})
                films.setdefault(outcome.film.storage_key(), outcome.film)

    def films_for(self, source_id: str) -> list[Film]:
        with self._lock:
            return list(self._films_by_source.get(source_id, {}).values())

    def finalize_history(self) -> dict[str, int]:
        """Write one history entry per source that contributed films this run."""

        written: dict[str, int] = {}
        for producer in self.producers:
            films = self.films_for(producer.source_id)
            if not films:
                continue
            self.logger.info("history_finalizing", source=producer.source_id, films=len(films))
            try:
                producer.record_run_history(films, self.context)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("history_failed", source=producer.source_id, error=str(exc))
                continue
            written[producer.source_id] = len(films)
        self.logger.info("history_finalized", sources=len(written))
        return written


__all__ = ["PersistenceStage"]
