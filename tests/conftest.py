"""Shared fixtures: in-memory collaborators for the pipeline and tmp config homes."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable, Sequence

import pytest

from cinelist.config import ConfigLocator, ConfigRepository, PipelineOptions
from cinelist.engine import Film, FilmFilter, RunContext, ScrapedFilm, identity_key
from cinelist.errors import PersistenceError


class FakeProducer:
    """Source returning a fixed listing and recording history writes."""

    def __init__(
        self,
        source_id: str,
        films: Iterable[ScrapedFilm] = (),
        eligible: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.source_id = source_id
        self.films = list(films)
        self.eligible = eligible
        self.error = error
        self.scrape_calls = 0
        self.history_calls: list[list[Film]] = []

    def is_eligible(self, context: RunContext) -> bool:
        return self.eligible

    def scrape(self) -> list[ScrapedFilm]:
        self.scrape_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.films)

    def record_run_history(self, films: Sequence[Film], context: RunContext) -> None:
        self.history_calls.append(list(films))


class FakeResolver:
    """Resolve by normalised title; scripted errors are raised before resolving."""

    def __init__(self, unknown: Iterable[str] = ()) -> None:
        self.calls: list[str] = []
        self.unknown = {title.casefold() for title in unknown}
        self.errors: dict[str, list[Exception]] = {}
        self.on_call: Callable[[ScrapedFilm], None] | None = None
        self._lock = Lock()

    def fail(self, title: str, *errors: Exception) -> None:
        self.errors[title.casefold()] = list(errors)

    def resolve(self, film: ScrapedFilm) -> Film | None:
        key = (film.title or "").strip().casefold()
        with self._lock:
            self.calls.append(key)
            pending = self.errors.get(key)
            error = pending.pop(0) if pending else None
        if self.on_call is not None:
            self.on_call(film)
        if error is not None:
            raise error
        if key in self.unknown:
            return None
        slug = identity_key(film.title, film.year).replace(" ", "-").replace("|", "-")
        return Film(
            title=(film.title or "").strip().title(),
            imdb_id=f"tt-{slug}",
            tmdb_id=f"tm-{slug}",
            year=film.year,
            country=film.country,
        )


class InMemoryFilmStore:
    """Film store keyed by storage key, able to fail chosen upsert calls."""

    def __init__(self, fail_on_calls: Iterable[int] = ()) -> None:
        self.films: dict[str, Film] = {}
        self.upsert_sizes: list[int] = []
        self.fail_on_calls = set(fail_on_calls)
        self._calls = 0
        self._lock = Lock()

    def upsert(self, films: Sequence[Film]) -> int:
        with self._lock:
            self._calls += 1
            if self._calls in self.fail_on_calls:
                raise PersistenceError("store unavailable")
            self.upsert_sizes.append(len(films))
            for film in films:
                self.films[film.storage_key()] = film
        return len(films)

    def list_films(self, film_filter: FilmFilter = FilmFilter.ALL) -> list[Film]:
        films = list(self.films.values())
        if film_filter is FilmFilter.IN_RADARR:
            return [film for film in films if film.is_in_radarr]
        if film_filter is FilmFilter.NOT_IN_RADARR:
            return [film for film in films if not film.is_in_radarr]
        return films

    def get_film(self, imdb_id: str) -> Film | None:
        return next((film for film in self.films.values() if film.imdb_id == imdb_id), None)

    def update_radarr_status(self, tmdb_id: str, is_in_radarr: bool) -> None:
        for key, film in list(self.films.items()):
            if film.tmdb_id == tmdb_id:
                self.films[key] = Film(**{**film.to_dict(), "is_in_radarr": is_in_radarr})


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []
        self._lock = Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.delays.append(seconds)


@pytest.fixture(autouse=True)
def cinelist_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CINELIST_HOME", str(tmp_path))
    monkeypatch.delenv("CINELIST_OMDB_API_KEY", raising=False)
    monkeypatch.delenv("CINELIST_RADARR_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def scraped() -> Callable[..., ScrapedFilm]:
    def _builder(title: str, year: str | None = "2020", **extra: Any) -> ScrapedFilm:
        return ScrapedFilm(title=title, year=year, **extra)

    return _builder


@pytest.fixture
def make_options() -> Callable[..., PipelineOptions]:
    def _builder(**overrides: Any) -> PipelineOptions:
        base: dict[str, Any] = {
            "scrape_timeout_seconds": 5.0,
            "metrics_logging_enabled": False,
        }
        base.update(overrides)
        return PipelineOptions(**base)

    return _builder


@pytest.fixture
def producer_factory() -> Callable[..., FakeProducer]:
    return FakeProducer


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def film_store() -> InMemoryFilmStore:
    return InMemoryFilmStore()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=tmp_path))
