"""Scraper run history backed by the shared SQLite database."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from ..engine.models import Film
from .storage import SQLiteManager


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One finished scrape of a source."""

    source: str
    scrape_date: datetime
    movies_scraped: dict[str, str] = field(default_factory=dict)
    run_id: str | None = None

    @property
    def film_count(self) -> int:
        return len(self.movies_scraped)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RunHistoryStore:
    """Record and query the per-source scrape history used for eligibility."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = path
        self.manager.connect(path)

    def record(
        self,
        source: str,
        films: Sequence[Film],
        at: datetime,
        run_id: str | None = None,
    ) -> HistoryEntry:
        movies = {film.title: film.imdb_id for film in films}
        entry = HistoryEntry(source=source, scrape_date=_as_utc(at), movies_scraped=movies, run_id=run_id)
        with self.manager.transaction(self.path) as conn:
            conn.execute(
                "INSERT INTO scraper_history(source, run_id, scrape_date, movies_scraped) VALUES (?, ?, ?, ?)",
                (source, run_id, entry.scrape_date.isoformat(), json.dumps(movies, ensure_ascii=False)),
            )
        return entry

    def last_run(self, source: str) -> HistoryEntry | None:
        with self.manager.transaction(self.path) as conn:
            row = conn.execute(
                "SELECT * FROM scraper_history WHERE source = ? ORDER BY scrape_date DESC, id DESC LIMIT 1",
                (source,),
            ).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def list_runs(self, limit: int = 20, source: str | None = None) -> list[HistoryEntry]:
        query = "SELECT * FROM scraper_history"
        params: tuple = ()
        if source:
            query += " WHERE source = ?"
            params = (source,)
        query += " ORDER BY scrape_date DESC, id DESC LIMIT ?"
        params = params + (limit,)
        with self.manager.transaction(self.path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def has_run_since(self, source: str, cutoff: datetime) -> bool:
        last = self.last_run(source)
        return last is not None and last.scrape_date >= _as_utc(cutoff)

    @staticmethod
    def _row_to_entry(row) -> HistoryEntry:
        return HistoryEntry(
            source=row["source"],
            scrape_date=_as_utc(datetime.fromisoformat(row["scrape_date"])),
            movies_scraped=json.loads(row["movies_scraped"] or "{}"),
            run_id=row["run_id"],
        )


__all__ = ["HistoryEntry", "RunHistoryStore"]
