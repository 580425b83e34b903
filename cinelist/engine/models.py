"""Records flowing between pipeline stages."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Event
from typing import Any, Iterable

_WHITESPACE = re.compile(r"\s+")


def _normalise(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().casefold()


def identity_key(title: str | None, year: str | None) -> str:
    """Return the run-wide identity of a film: ``title|year`` normalised."""

    return f"{_normalise(title)}|{_normalise(year)}"


@dataclass(frozen=True, slots=True)
class ScrapedFilm:
    """Raw listing exactly as a cinema website exposes it."""

    title: str | None = None
    director: str | None = None
    country: str | None = None
    year: str | None = None
    duration: str | None = None
    language: str | None = None
    url: str | None = None

    def should_be_added(self) -> bool:
        return bool(self.title and self.title.strip())

    @property
    def identity_key(self) -> str:
        return identity_key(self.title, self.year)


@dataclass(frozen=True, slots=True)
class Film:
    """Canonical film record persisted in the film store."""

    title: str
    imdb_id: str = ""
    tmdb_id: str = ""
    is_in_radarr: bool = False
    country: str | None = None
    year: str | None = None
    poster_url: str | None = None

    def storage_key(self) -> str:
        """Stable identifier: TMDb id, then IMDb id, then normalised title+year."""

        if self.tmdb_id:
            return f"tmdb:{self.tmdb_id}"
        if self.imdb_id:
            return f"imdb:{self.imdb_id}"
        return f"title:{identity_key(self.title, self.year)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "imdb_id": self.imdb_id,
            "tmdb_id": self.tmdb_id,
            "is_in_radarr": self.is_in_radarr,
            "country": self.country,
            "year": self.year,
            "poster_url": self.poster_url,
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Film":
        return cls(
            title=str(data.get("title") or ""),
            imdb_id=str(data.get("imdb_id") or ""),
            tmdb_id=str(data.get("tmdb_id") or ""),
            is_in_radarr=bool(data.get("is_in_radarr")),
            country=data.get("country"),
            year=data.get("year"),
            poster_url=data.get("poster_url"),
        )


@dataclass(frozen=True, slots=True)
class ScrapedItem:
    film: ScrapedFilm
    source_id: str
    scraped_at: datetime


@dataclass(frozen=True, slots=True)
class DedupDecision:
    item: ScrapedItem
    identity_key: str
    is_duplicate: bool

    @property
    def source_id(self) -> str:
        return self.item.source_id


class EnrichmentStatus(str, Enum):
    """Terminal outcome of the enrichment stage for one item."""

    SUCCESS = "success"
    CACHED_SUCCESS = "cached_success"
    LOOKUP_FAILURE = "lookup_failure"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class EnrichmentOutcome:
    film: Film | None
    item: ScrapedItem
    identity_key: str
    was_cached: bool
    source_id: str
    status: EnrichmentStatus

    @classmethod
    def without_film(cls, decision: DedupDecision, status: EnrichmentStatus) -> "EnrichmentOutcome":
        return cls(
            film=None,
            item=decision.item,
            identity_key=decision.identity_key,
            was_cached=False,
            source_id=decision.source_id,
            status=status,
        )


@dataclass(frozen=True, slots=True)
class FilmBatch:
    """Group of enrichment outcomes handed to persistence as a unit."""

    outcomes: tuple[EnrichmentOutcome, ...]
    films: tuple[Film, ...]
    total_attempted: int
    success_count: int
    cached_count: int
    failure_count: int

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[EnrichmentOutcome]) -> "FilmBatch":
        grouped = tuple(outcomes)
        return cls(
            outcomes=grouped,
            films=tuple(outcome.film for outcome in grouped if outcome.film is not None),
            total_attempted=len(grouped),
            success_count=sum(1 for o in grouped if o.status is EnrichmentStatus.SUCCESS),
            cached_count=sum(1 for o in grouped if o.status is EnrichmentStatus.CACHED_SUCCESS),
            failure_count=sum(1 for o in grouped if o.status is EnrichmentStatus.LOOKUP_FAILURE),
        )

    def __len__(self) -> int:
        return self.total_attempted


@dataclass(slots=True)
class RunContext:
    """Identity and cancel signal of one pipeline run, shared with producers."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cancel_event: Event = field(default_factory=Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


__all__ = [
    "DedupDecision",
    "EnrichmentOutcome",
    "EnrichmentStatus",
    "Film",
    "FilmBatch",
    "RunContext",
    "ScrapedFilm",
    "ScrapedItem",
    "identity_key",
]
