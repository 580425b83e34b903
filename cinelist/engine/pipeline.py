"""Harvest pipeline wiring dispatch → dedup → enrichment → batch → persistence."""

from __future__ import annotations

import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import structlog

from ..config import PipelineOptions
from .batching import Batcher
from .cache import TTLCache
from .channel import Channel
from .contracts import FilmStore, MetadataResolver, SourceProducer
from .dedup import DeduplicationStage
from .dispatch import DispatchStage
from .enrichment import EnrichmentStage
from .metrics import MetricsSnapshot, RunMetrics
from .models import DedupDecision, EnrichmentOutcome, Film, FilmBatch, RunContext, ScrapedItem
from .persistence import PersistenceStage
from .retry import RetryPolicy
from .thread_pool import WorkerPools


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class RunReport:
    run_id: str
    metrics: MetricsSnapshot
    history: dict[str, int] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.metrics.cancelled


class HarvestPipeline:
    """Run every registered source through the staged enrichment pipeline.

    One instance may serve many runs; the metadata cache lives on the instance
    so entries survive between runs until their TTL expires. Everything else
    (seen keys, metrics, per-source accumulators) is created per run.
    """

    def __init__(
        self,
        producers: Sequence[SourceProducer],
        resolver: MetadataResolver,
        store: FilmStore,
        options: PipelineOptions | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
        cache: TTLCache[Film] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.producers = list(producers)
        self.resolver = resolver
        self.store = store
        self.options = options or PipelineOptions()
        self.sleep = sleep
        self.clock = clock
        self.logger = logger or structlog.get_logger("cinelist").bind(component="pipeline")
        if cache is None and self.options.caching_enabled:
            cache = TTLCache(
                ttl_seconds=self.options.cache_ttl_hours * 3600,
                max_entries=self.options.cache_size_limit,
            )
        self.cache = cache if self.options.caching_enabled else None
        self._context: RunContext | None = None

    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Ask the in-flight run to stop taking new work and drain."""

        if self._context is not None:
            self._context.cancel()
            self.logger.warning("run_cancel_requested", run_id=self._context.run_id)

    def run(self, context: RunContext | None = None) -> RunReport:
        context = context or RunContext(started_at=self.clock())
        self._context = context
        log = self.logger.bind(run_id=context.run_id)
        opts = self.options
        metrics = RunMetrics(clock=self.clock)

        dispatch = DispatchStage(
            metrics, context, scrape_timeout_seconds=opts.scrape_timeout_seconds, clock=self.clock,
            logger=log.bind(stage="dispatch"),
        )
        dedup = DeduplicationStage(
            metrics, context, enabled=opts.dedup_enabled, logger=log.bind(stage="dedup")
        )
        enrichment = EnrichmentStage(
            self.resolver,
            metrics,
            context,
            retry_policy=RetryPolicy(max_attempts=opts.retry_count, sleep=self.sleep),
            cache=self.cache,
            logger=log.bind(stage="enrichment"),
        )
        batcher = Batcher(opts.batch_size, context)
        persistence = PersistenceStage(
            self.store, self.producers, metrics, context, logger=log.bind(stage="persistence")
        )

        dispatch_workers = opts.scraper_workers(len(self.producers))
        inbox: Channel[SourceProducer] = Channel("producers", capacity=max(len(self.producers), 1))
        scraped: Channel[ScrapedItem] = Channel("scraped", capacity=opts.queue_capacity)
        decisions: Channel[DedupDecision] = Channel("decisions", capacity=opts.queue_capacity)
        outcomes: Channel[EnrichmentOutcome] = Channel("outcomes", capacity=opts.queue_capacity)
        batches: Channel[FilmBatch] = Channel("batches", capacity=opts.queue_capacity)

        log.info(
            "run_started",
            sources=[producer.source_id for producer in self.producers],
            dedup=opts.dedup_enabled,
            caching=self.cache is not None,
        )
        pools = WorkerPools(prefix=f"run-{context.run_id}")
        history: dict[str, int] = {}
        try:
            dispatch_futs = pools.spawn("dispatch", dispatch_workers, dispatch.worker, inbox, scraped)
            dedup_futs = pools.spawn("dedup", opts.dedup_parallelism, dedup.worker, scraped, decisions)
            enrich_futs = pools.spawn(
                "enrichment", opts.enrichment_parallelism, enrichment.worker, decisions, outcomes
            )
            batch_futs = pools.spawn("batch", 1, batcher.worker, outcomes, batches)
            persist_futs = pools.spawn(
                "persistence", opts.persistence_parallelism, persistence.worker, batches
            )

            for producer in self.producers:
                inbox.put(producer)
            inbox.close(readers=dispatch_workers)

            self._join(dispatch_futs, "dispatch", log)
            scraped.close(readers=opts.dedup_parallelism)
            self._join(dedup_futs, "dedup", log)
            decisions.close(readers=opts.enrichment_parallelism)
            self._join(enrich_futs, "enrichment", log)
            outcomes.close(readers=1)
            self._join(batch_futs, "batch", log)
            tail = batcher.flush()
            if tail is not None:
                batches.put(tail)
            batches.close(readers=opts.persistence_parallelism)
            self._join(persist_futs, "persistence", log)

            if context.cancelled:
                log.warning("history_not_written", reason="cancelled")
            else:
                history = persistence.finalize_history()
        finally:
            pools.shutdown(wait=True)
            self._context = None

        snapshot = metrics.finalize(cancelled=context.cancelled)
        if opts.metrics_logging_enabled:
            log.info("run_metrics", **snapshot.as_dict())
        log.info("run_finished", cancelled=snapshot.cancelled, persisted=snapshot.films_persisted)
        return RunReport(run_id=context.run_id, metrics=snapshot, history=history)

    @staticmethod
    def _join(futures: list[Future[Any]], stage: str, log: structlog.BoundLogger) -> None:
        for future in futures:
            try:
                future.result()
            except Exception as exc:  # noqa: BLE001
                log.error("stage_worker_crashed", stage=stage, error=str(exc), exc_info=True)


__all__ = ["HarvestPipeline", "RunReport"]
