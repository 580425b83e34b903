from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from cinelist.catalog import CatalogResolver
from cinelist.config import CatalogSettings
from cinelist.engine import Film, FilmFilter, ScrapedFilm
from cinelist.errors import PermanentLookupError, TransientLookupError

SETTINGS = CatalogSettings(
    omdb_base_url="https://omdb.test/",
    omdb_api_key="omdb-key",
    radarr_base_url="http://radarr.test/",
    radarr_api_key="radarr-key",
    radarr_quality_profile_id=4,
    radarr_root_folder="/media/movies",
)

OMDB_SEARCH = {
    "Response": "True",
    "Search": [
        {"Title": "Anatomie d'une chute (extended)", "imdbID": "tt0000001"},
        {"Title": "Anatomie d'une chute", "imdbID": "tt17009710"},
    ],
}
RADARR_LOOKUP = {
    "title": "Anatomy of a Fall",
    "tmdbId": 915935,
    "images": [
        {"coverType": "fanart", "remoteUrl": "https://img.test/fanart.jpg"},
        {"coverType": "poster", "remoteUrl": "https://img.test/poster.jpg"},
    ],
}


def _resolver(handler: Callable[[httpx.Request], httpx.Response]) -> CatalogResolver:
    transport = httpx.MockTransport(handler)
    return CatalogResolver(
        SETTINGS,
        omdb_client=httpx.Client(base_url=SETTINGS.omdb_base_url, transport=transport),
        radarr_client=httpx.Client(
            base_url=SETTINGS.radarr_base_url,
            transport=transport,
            headers={"X-Api-Key": SETTINGS.radarr_api_key},
        ),
    )


def _catalog_handler(library: list | None = None, requests: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.host == "omdb.test":
            return httpx.Response(200, json=OMDB_SEARCH)
        if request.url.path == "/api/v3/movie/lookup/imdb":
            return httpx.Response(200, json=RADARR_LOOKUP)
        if request.url.path == "/api/v3/movie":
            return httpx.Response(200, json=library or [])
        return httpx.Response(404)

    return handler


def test_resolve_builds_film_from_omdb_and_radarr() -> None:
    requests: list[httpx.Request] = []
    resolver = _resolver(_catalog_handler(library=[{"tmdbId": 915935}], requests=requests))
    scraped = ScrapedFilm(title="Anatomie d'une chute", year="2023", country="France")

    film = resolver.resolve(scraped)

    assert film == Film(
        title="Anatomy of a Fall",
        imdb_id="tt17009710",
        tmdb_id="915935",
        is_in_radarr=True,
        country="France",
        year="2023",
        poster_url="https://img.test/poster.jpg",
    )
    omdb_request = requests[0]
    assert omdb_request.url.params["apikey"] == "omdb-key"
    assert omdb_request.url.params["s"] == "Anatomie d'une chute"
    assert omdb_request.url.params["y"] == "2023"
    assert requests[1].url.params["imdbId"] == "tt17009710"
    assert requests[1].headers["X-Api-Key"] == "radarr-key"
    assert requests[2].url.params["tmdbId"] == "915935"


def test_resolve_marks_films_missing_from_library() -> None:
    film = _resolver(_catalog_handler(library=[])).resolve(ScrapedFilm(title="Anatomie d'une chute"))
    assert film is not None
    assert film.is_in_radarr is False
    assert film.year is None


def test_resolve_requires_exact_title_match() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Response": "True", "Search": [{"Title": "Other", "imdbID": "tt9"}]})

    with pytest.raises(PermanentLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Anatomie d'une chute"))


def test_omdb_not_found_is_permanent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Response": "False", "Error": "Movie not found!"})

    with pytest.raises(PermanentLookupError, match="Movie not found"):
        _resolver(handler).resolve(ScrapedFilm(title="Inconnu"))


@pytest.mark.parametrize("status", [429, 500, 503])
def test_throttling_and_server_errors_are_transient(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    with pytest.raises(TransientLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Alpha"))


@pytest.mark.parametrize("status", [400, 401, 404])
def test_client_errors_are_permanent(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    with pytest.raises(PermanentLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Alpha"))


def test_network_errors_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Alpha"))


def test_timeouts_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransientLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Alpha"))


def test_malformed_json_is_permanent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(PermanentLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Alpha"))


def test_radarr_lookup_without_tmdb_id_is_permanent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "omdb.test":
            return httpx.Response(200, json=OMDB_SEARCH)
        return httpx.Response(200, json={"title": "Anatomy of a Fall"})

    with pytest.raises(PermanentLookupError):
        _resolver(handler).resolve(ScrapedFilm(title="Anatomie d'une chute"))


def test_add_to_radarr_posts_movie_and_marks_store(film_store) -> None:
    film_store.upsert([Film(title="Anatomy of a Fall", imdb_id="tt17009710", tmdb_id="915935")])
    posted: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(json.loads(request.content))
        assert request.method == "POST"
        assert request.url.path == "/api/v3/movie/"
        return httpx.Response(201, json={"id": 1})

    _resolver(handler).add_to_radarr("915935", store=film_store)

    assert posted == [
        {
            "tmdbId": 915935,
            "qualityProfileId": 4,
            "rootFolderPath": "/media/movies",
            "monitored": True,
            "addOptions": {"searchForMovie": False},
        }
    ]
    assert film_store.list_films(FilmFilter.IN_RADARR)[0].tmdb_id == "915935"


def test_add_to_radarr_rejection_leaves_store_untouched(film_store) -> None:
    film_store.upsert([Film(title="Alpha", tmdb_id="1")])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json=[{"errorMessage": "already added"}])

    with pytest.raises(PermanentLookupError):
        _resolver(handler).add_to_radarr("1", store=film_store)
    assert film_store.list_films(FilmFilter.IN_RADARR) == []


def test_synchronize_library_flips_films_now_in_radarr(film_store) -> None:
    film_store.upsert(
        [
            Film(title="Alpha", tmdb_id="1"),
            Film(title="Beta", tmdb_id="2"),
            Film(title="Gamma", tmdb_id="3"),
            Film(title="Untracked", imdb_id="tt4"),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        tmdb_id = request.url.params["tmdbId"]
        if tmdb_id == "3":
            return httpx.Response(503)
        return httpx.Response(200, json=[{"tmdbId": 1}] if tmdb_id == "1" else [])

    updated = _resolver(handler).synchronize_library(film_store)

    assert updated == 1
    assert [film.title for film in film_store.list_films(FilmFilter.IN_RADARR)] == ["Alpha"]
