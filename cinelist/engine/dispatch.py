"""Dispatch stage: run each cinema source once and flatten its listing."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime, timezone
from typing import Callable

import structlog

from ..errors import ProducerError
from .channel import Channel
from .contracts import SourceProducer
from .metrics import RunMetrics
from .models import RunContext, ScrapedFilm, ScrapedItem


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchStage:
    """Invoke eligible producers and emit one tagged item per scraped film."""

    def __init__(
        self,
        metrics: RunMetrics,
        context: RunContext,
        scrape_timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.metrics = metrics
        self.context = context
        self.scrape_timeout_seconds = scrape_timeout_seconds
        self.clock = clock
        self.logger = logger or structlog.get_logger("cinelist.dispatch")

    def worker(self, inbox: Channel[SourceProducer], outbox: Channel[ScrapedItem]) -> None:
        for producer in inbox:
            for item in self.run_producer(producer):
                outbox.put(item)

    def run_producer(self, producer: SourceProducer) -> list[ScrapedItem]:
        source_id = getattr(producer, "source_id", type(producer).__name__)
        if self.context.cancelled:
            self.logger.info("source_cancelled", source=source_id)
            return []
        try:
            if not producer.is_eligible(self.context):
                self.logger.info("source_skipped", source=source_id, reason="not_eligible")
                return []
            self.logger.info("source_started", source=source_id)
            films = self._scrape(producer, source_id)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("source_failed", source=source_id, error=str(exc))
            return []

        scraped_at = self.clock()
        items = [
            ScrapedItem(film=film, source_id=source_id, scraped_at=scraped_at)
            for film in films
            if film.should_be_added()
        ]
        self.metrics.total_scraped.increment(len(items))
        self.logger.info("source_scraped", source=source_id, count=len(items))
        return items

    def _scrape(self, producer: SourceProducer, source_id: str) -> list[ScrapedFilm]:
        if not self.scrape_timeout_seconds:
            return list(producer.scrape() or [])
        # A timed-out scrape keeps running on its helper thread and its result is
        # discarded. That thread is not a daemon: interpreter exit waits for it, so
        # sources must bound every request (see PipelineOptions.source_request_timeout).
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"scrape-{source_id}")
        try:
            future = executor.submit(producer.scrape)
            try:
                return list(future.result(timeout=self.scrape_timeout_seconds) or [])
            except FutureTimeout as exc:
                raise ProducerError(
                    source_id, f"scrape timed out after {self.scrape_timeout_seconds}s"
                ) from exc
        finally:
            executor.shutdown(wait=False)


__all__ = ["DispatchStage"]
