"""Collaborator interfaces consumed by the pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Protocol, Sequence, runtime_checkable

from .models import Film, RunContext, ScrapedFilm


@runtime_checkable
class SourceProducer(Protocol):
    """One cinema website able to list the films it is currently showing."""

    source_id: str

    def is_eligible(self, context: RunContext) -> bool:
        """Return False when the source ran recently enough to be skipped."""

    def scrape(self) -> list[ScrapedFilm]:
        """Fetch the current listing. Called at most once per run."""

    def record_run_history(self, films: Sequence[Film], context: RunContext) -> None:
        """Write the single history entry summarising this run for the source."""


class MetadataResolver(Protocol):
    """Turn a scraped listing into a canonical film; safe for concurrent use."""

    def resolve(self, film: ScrapedFilm) -> Film | None:
        """Raise TransientLookupError or PermanentLookupError on failure."""


class FilmFilter(str, Enum):
    ALL = "all"
    IN_RADARR = "in-radarr"
    NOT_IN_RADARR = "not-in-radarr"


class FilmStore(Protocol):
    """Durable film catalogue, idempotent per :meth:`Film.storage_key`."""

    def upsert(self, films: Sequence[Film]) -> int:
        """Insert or update films, returning how many rows were written."""

    def list_films(self, film_filter: FilmFilter = FilmFilter.ALL) -> list[Film]:
        """Return stored films matching the filter."""

    def get_film(self, imdb_id: str) -> Film | None:
        """Look up one film by IMDb id."""

    def update_radarr_status(self, tmdb_id: str, is_in_radarr: bool) -> None:
        """Flip the library flag of the film with the given TMDb id."""


__all__ = ["FilmFilter", "FilmStore", "MetadataResolver", "SourceProducer"]
