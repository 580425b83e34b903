"""Run-wide counters updated concurrently by every stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Callable


class AtomicCounter:
    """Integer counter with lock-protected increments."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Frozen view of a finished (or cancelled) run."""

    total_scraped: int
    duplicates_filtered: int
    cache_hits: int
    lookup_calls: int
    lookup_failures: int
    films_persisted: int
    batches_lost: int
    started_at: datetime
    ended_at: datetime
    cancelled: bool = False

    @property
    def duration_seconds(self) -> float:
        return max((self.ended_at - self.started_at).total_seconds(), 0.0)

    @property
    def throughput_per_second(self) -> float:
        return _ratio(self.films_persisted, self.duration_seconds)

    @property
    def cache_hit_rate(self) -> float:
        return _ratio(self.cache_hits, self.cache_hits + self.lookup_calls)

    @property
    def duplication_rate(self) -> float:
        return _ratio(self.duplicates_filtered, self.total_scraped)

    @property
    def lookup_failure_rate(self) -> float:
        return _ratio(self.lookup_failures, self.lookup_calls)

    def as_dict(self) -> dict[str, object]:
        return {
            "total_scraped": self.total_scraped,
            "duplicates_filtered": self.duplicates_filtered,
            "cache_hits": self.cache_hits,
            "lookup_calls": self.lookup_calls,
            "lookup_failures": self.lookup_failures,
            "films_persisted": self.films_persisted,
            "batches_lost": self.batches_lost,
            "duration_seconds": round(self.duration_seconds, 3),
            "throughput_per_second": round(self.throughput_per_second, 3),
            "cache_hit_rate": round(self.cache_hit_rate, 4),
            "duplication_rate": round(self.duplication_rate, 4),
            "lookup_failure_rate": round(self.lookup_failure_rate, 4),
            "cancelled": self.cancelled,
        }


@dataclass
class RunMetrics:
    """Mutable counters for one run; every field is independently atomic."""

    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)
    total_scraped: AtomicCounter = field(default_factory=AtomicCounter)
    duplicates_filtered: AtomicCounter = field(default_factory=AtomicCounter)
    cache_hits: AtomicCounter = field(default_factory=AtomicCounter)
    lookup_calls: AtomicCounter = field(default_factory=AtomicCounter)
    lookup_failures: AtomicCounter = field(default_factory=AtomicCounter)
    films_persisted: AtomicCounter = field(default_factory=AtomicCounter)
    batches_lost: AtomicCounter = field(default_factory=AtomicCounter)
    started_at: datetime = field(init=False)
    ended_at: datetime | None = None

    def __post_init__(self) -> None:
        self.started_at = self.clock()

    def finalize(self, cancelled: bool = False) -> MetricsSnapshot:
        if self.ended_at is None:
            self.ended_at = self.clock()
        return MetricsSnapshot(
            total_scraped=self.total_scraped.value,
            duplicates_filtered=self.duplicates_filtered.value,
            cache_hits=self.cache_hits.value,
            lookup_calls=self.lookup_calls.value,
            lookup_failures=self.lookup_failures.value,
            films_persisted=self.films_persisted.value,
            batches_lost=self.batches_lost.value,
            started_at=self.started_at,
            ended_at=self.ended_at,
            cancelled=cancelled,
        )


__all__ = ["AtomicCounter", "MetricsSnapshot", "RunMetrics"]
