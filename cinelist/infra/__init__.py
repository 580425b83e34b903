"""Infrastructure helpers (storage backends)."""

from .film_store import MongoFilmStore, SQLiteFilmStore
from .history_store import HistoryEntry, RunHistoryStore
from .storage import SQLiteManager

__all__ = ["HistoryEntry", "MongoFilmStore", "RunHistoryStore", "SQLiteFilmStore", "SQLiteManager"]
