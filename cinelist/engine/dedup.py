"""Run-scoped deduplication by normalised title and year."""

from __future__ import annotations

from threading import Lock

import structlog

from .channel import Channel
from .metrics import RunMetrics
from .models import DedupDecision, RunContext, ScrapedItem, identity_key


class SeenKeys:
    """Set of identity keys with an atomic add-if-absent."""

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = Lock()

    def add_if_absent(self, key: str) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


class DeduplicationStage:
    """Mark the first occurrence of each identity canonical and the rest duplicate."""

    def __init__(
        self,
        metrics: RunMetrics,
        context: RunContext | None = None,
        enabled: bool = True,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.metrics = metrics
        self.context = context
        self.enabled = enabled
        self.logger = logger or structlog.get_logger("cinelist.dedup")
        self._seen = SeenKeys()

    def decide(self, item: ScrapedItem) -> DedupDecision:
        key = identity_key(item.film.title, item.film.year)
        # after a cancel items only drain; enrichment marks them skipped
        if not self.enabled or (self.context is not None and self.context.cancelled):
            return DedupDecision(item=item, identity_key=key, is_duplicate=False)
        is_duplicate = not self._seen.add_if_absent(key)
        if is_duplicate:
            self.metrics.duplicates_filtered.increment()
            self.logger.debug(
                "duplicate_film",
                title=item.film.title,
                year=item.film.year,
                source=item.source_id,
            )
        return DedupDecision(item=item, identity_key=key, is_duplicate=is_duplicate)

    def worker(self, inbox: Channel[ScrapedItem], outbox: Channel[DedupDecision]) -> None:
        for item in inbox:
            outbox.put(self.decide(item))

    @property
    def unique_count(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()
        self.logger.info("dedup_cache_cleared")


__all__ = ["DeduplicationStage", "SeenKeys"]
