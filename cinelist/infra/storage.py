"""Shared SQLite connections for the film catalogue and run history."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Dict, Iterator

SCHEMA = """
CREATE TABLE IF NOT EXISTS films (
    storage_key TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    imdb_id TEXT,
    tmdb_id TEXT,
    is_in_radarr INTEGER NOT NULL DEFAULT 0,
    country TEXT,
    year TEXT,
    poster_url TEXT
);
CREATE INDEX IF NOT EXISTS idx_films_imdb ON films(imdb_id);
CREATE INDEX IF NOT EXISTS idx_films_tmdb ON films(tmdb_id);

CREATE TABLE IF NOT EXISTS scraper_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL,
    run_id TEXT,
    scrape_date TEXT NOT NULL,
    movies_scraped TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_source_date ON scraper_history(source, scrape_date);
"""


class SQLiteManager:
    """One connection per database file, shared by every worker thread.

    All statements go through :meth:`transaction`, which holds the manager
    lock for the whole unit of work.
    """

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = RLock()

    def connect(self, path: Path) -> sqlite3.Connection:
        with self._lock:
            conn = self._connections.get(path)
            if conn is None:
                path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.executescript(SCHEMA)
                self._connections[path] = conn
            return conn

    @contextmanager
    def transaction(self, path: Path) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.connect(path)
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            conn.commit()

    def reset(self, path: Path) -> None:
        """Drop the connection and delete the database file."""

        with self._lock:
            conn = self._connections.pop(path, None)
            if conn is not None:
                conn.close()
            path.unlink(missing_ok=True)

    def close_all(self) -> None:
        with self._lock:
            while self._connections:
                _, conn = self._connections.popitem()
                conn.close()


__all__ = ["SCHEMA", "SQLiteManager"]
