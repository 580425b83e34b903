"""Film store implementations (SQLite and MongoDB)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from pymongo import MongoClient, UpdateOne

from ..engine.contracts import FilmFilter
from ..engine.models import Film
from ..errors import PersistenceError
from .storage import SQLiteManager

def _row_to_film(row: Any) -> Film:
    return Film(
        title=row["title"],
        imdb_id=row["imdb_id"] or "",
        tmdb_id=row["tmdb_id"] or "",
        is_in_radarr=bool(row["is_in_radarr"]),
        country=row["country"],
        year=row["year"],
        poster_url=row["poster_url"],
    )


class SQLiteFilmStore:
    """Persist films in SQLite keyed by :meth:`Film.storage_key`."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = path
        self.manager.connect(path)

    def upsert(self, films: Sequence[Film]) -> int:
        if not films:
            return 0
        rows = [
            (
                film.storage_key(),
                film.title,
                film.imdb_id,
                film.tmdb_id,
                int(film.is_in_radarr),
                film.country,
                film.year,
                film.poster_url,
            )
            for film in films
        ]
        try:
            with self.manager.transaction(self.path) as conn:
                conn.executemany(
                    """
                    INSERT INTO films(storage_key, title, imdb_id, tmdb_id, is_in_radarr, country, year, poster_url)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(storage_key) DO UPDATE SET
                        title = excluded.title,
                        imdb_id = excluded.imdb_id,
                        tmdb_id = excluded.tmdb_id,
                        is_in_radarr = excluded.is_in_radarr,
                        country = excluded.country,
                        year = excluded.year,
                        poster_url = excluded.poster_url
                    """,
                    rows,
                )
        except Exception as exc:
            raise PersistenceError(f"SQLite upsert failed: {exc}") from exc
        return len(rows)

    def list_films(self, film_filter: FilmFilter = FilmFilter.ALL) -> list[Film]:
        query = "SELECT * FROM films"
        params: tuple[Any, ...] = ()
        if film_filter is FilmFilter.IN_RADARR:
            query += " WHERE is_in_radarr = ?"
            params = (1,)
        elif film_filter is FilmFilter.NOT_IN_RADARR:
            query += " WHERE is_in_radarr = ?"
            params = (0,)
        query += " ORDER BY title COLLATE NOCASE"
        with self.manager.transaction(self.path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_film(row) for row in rows]

    def get_film(self, imdb_id: str) -> Film | None:
        with self.manager.transaction(self.path) as conn:
            row = conn.execute("SELECT * FROM films WHERE imdb_id = ?", (imdb_id,)).fetchone()
        return _row_to_film(row) if row is not None else None

    def update_radarr_status(self, tmdb_id: str, is_in_radarr: bool) -> None:
        with self.manager.transaction(self.path) as conn:
            conn.execute(
                "UPDATE films SET is_in_radarr = ? WHERE tmdb_id = ?",
                (int(is_in_radarr), tmdb_id),
            )

    def count(self) -> int:
        with self.manager.transaction(self.path) as conn:
            return int(conn.execute("SELECT count(*) FROM films").fetchone()[0])


class MongoFilmStore:
    """Persist films in a MongoDB collection with bulk upserts."""

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        database: str = "cinelist",
        collection: str = "films",
        client: Any | None = None,
    ) -> None:
        self.client = client if client is not None else MongoClient(uri)
        self.collection = self.client[database][collection]

    @staticmethod
    def _filter_for(film: Film) -> dict[str, Any]:
        clauses = []
        if film.imdb_id:
            clauses.append({"imdb_id": film.imdb_id})
        if film.tmdb_id:
            clauses.append({"tmdb_id": film.tmdb_id})
        if not clauses:
            return {"storage_key": film.storage_key()}
        return clauses[0] if len(clauses) == 1 else {"$or": clauses}

    def upsert(self, films: Sequence[Film]) -> int:
        if not films:
            return 0
        operations = [
            UpdateOne(
                self._filter_for(film),
                {"$set": {**film.to_dict(), "storage_key": film.storage_key()}},
                upsert=True,
            )
            for film in films
        ]
        try:
            self.collection.bulk_write(operations, ordered=False)
        except Exception as exc:
            raise PersistenceError(f"MongoDB bulk upsert failed: {exc}") from exc
        return len(operations)

    def list_films(self, film_filter: FilmFilter = FilmFilter.ALL) -> list[Film]:
        query: dict[str, Any] = {}
        if film_filter is FilmFilter.IN_RADARR:
            query = {"is_in_radarr": True}
        elif film_filter is FilmFilter.NOT_IN_RADARR:
            query = {"is_in_radarr": False}
        return [Film.from_mapping(doc) for doc in self.collection.find(query)]

    def get_film(self, imdb_id: str) -> Film | None:
        doc = self.collection.find_one({"imdb_id": imdb_id})
        return Film.from_mapping(doc) if doc else None

    def update_radarr_status(self, tmdb_id: str, is_in_radarr: bool) -> None:
        self.collection.update_one({"tmdb_id": tmdb_id}, {"$set": {"is_in_radarr": is_in_radarr}})

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoFilmStore", "SQLiteFilmStore"]
