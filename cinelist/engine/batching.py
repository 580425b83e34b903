"""Group enrichment outcomes into fixed-size batches."""

from __future__ import annotations

from threading import Lock

from .channel import Channel
from .models import EnrichmentOutcome, FilmBatch, RunContext


class Batcher:
    """Accumulate outcomes; emit a batch each time ``batch_size`` is reached."""

    def __init__(self, batch_size: int, context: RunContext | None = None) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.context = context
        self._pending: list[EnrichmentOutcome] = []
        self._lock = Lock()

    def add(self, outcome: EnrichmentOutcome) -> FilmBatch | None:
        with self._lock:
            self._pending.append(outcome)
            if len(self._pending) < self.batch_size:
                return None
            ready, self._pending = self._pending, []
        return FilmBatch.from_outcomes(ready)

    def flush(self) -> FilmBatch | None:
        """Emit whatever is pending; called once the upstream stream has ended."""

        with self._lock:
            if not self._pending or self._cancelled:
                self._pending = []
                return None
            ready, self._pending = self._pending, []
        return FilmBatch.from_outcomes(ready)

    @property
    def _cancelled(self) -> bool:
        return self.context is not None and self.context.cancelled

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def worker(self, inbox: Channel[EnrichmentOutcome], outbox: Channel[FilmBatch]) -> None:
        for outcome in inbox:
            if self._cancelled:
                # drain without grouping; persistence would discard the batch
                continue
            batch = self.add(outcome)
            if batch is not None:
                outbox.put(batch)


__all__ = ["Batcher"]
