"""OMDb + Radarr backed metadata resolver."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ..config import CatalogSettings
from ..engine.contracts import FilmFilter, FilmStore
from ..engine.models import Film, ScrapedFilm
from ..errors import PermanentLookupError, TransientLookupError


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class CatalogResolver:
    """Resolve scraped listings to canonical films.

    Lookup chain: OMDb title search (exact title match) gives the IMDb id,
    Radarr's IMDb lookup gives the TMDb id, title and poster, and a Radarr
    library query tells whether the film is already tracked.
    The underlying ``httpx.Client`` instances are thread-safe, so one resolver
    serves every enrichment worker.
    """

    def __init__(
        self,
        settings: CatalogSettings,
        *,
        timeout: float = 30.0,
        omdb_client: httpx.Client | None = None,
        radarr_client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("cinelist.catalog")
        self._omdb = omdb_client or httpx.Client(
            base_url=settings.omdb_base_url, timeout=timeout, follow_redirects=True
        )
        self._radarr = radarr_client or httpx.Client(
            base_url=settings.radarr_base_url,
            timeout=timeout,
            headers={"X-Api-Key": settings.radarr_api_key},
        )

    def close(self) -> None:
        self._omdb.close()
        self._radarr.close()

    # ------------------------------------------------------------------
    def resolve(self, film: ScrapedFilm) -> Film | None:
        title = (film.title or "").strip()
        if not title:
            raise PermanentLookupError("listing has no title")

        imdb_id = self._search_imdb_id(title, film.year)
        movie = self._lookup_radarr_movie(imdb_id)
        tmdb_id = movie.get("tmdbId")
        if not tmdb_id:
            raise PermanentLookupError(f"Radarr returned no TMDb id for {imdb_id}")
        tmdb_id = str(tmdb_id)

        return Film(
            title=movie.get("title") or title,
            imdb_id=imdb_id,
            tmdb_id=tmdb_id,
            is_in_radarr=self.is_in_library(tmdb_id),
            country=film.country,
            year=film.year,
            poster_url=self._poster_url(movie),
        )

    def is_in_library(self, tmdb_id: str) -> bool:
        payload = self._get_json(self._radarr, "api/v3/movie", {"tmdbId": tmdb_id}, service="radarr")
        return isinstance(payload, list) and len(payload) > 0

    def add_to_radarr(self, tmdb_id: str, store: FilmStore | None = None) -> None:
        """Ask Radarr to monitor the film, then flag it in the store."""

        body = {
            "tmdbId": int(tmdb_id) if str(tmdb_id).isdigit() else tmdb_id,
            "qualityProfileId": self.settings.radarr_quality_profile_id,
            "rootFolderPath": self.settings.radarr_root_folder,
            "monitored": True,
            "addOptions": {"searchForMovie": False},
        }
        response = self._send(self._radarr, "POST", "api/v3/movie/", service="radarr", json=body)
        self._check_status(response, service="radarr")
        self.logger.info("radarr_movie_added", tmdb_id=tmdb_id)
        if store is not None:
            store.update_radarr_status(str(tmdb_id), True)

    def synchronize_library(self, store: FilmStore) -> int:
        """Re-check films not yet in Radarr and flip the ones that now are."""

        updated = 0
        pending = store.list_films(FilmFilter.NOT_IN_RADARR)
        for film in pending:
            if not film.tmdb_id:
                continue
            try:
                in_library = self.is_in_library(film.tmdb_id)
            except (TransientLookupError, PermanentLookupError) as exc:
                self.logger.warning("radarr_sync_failed", tmdb_id=film.tmdb_id, error=str(exc))
                continue
            if in_library:
                store.update_radarr_status(film.tmdb_id, True)
                updated += 1
        self.logger.info("radarr_sync_finished", checked=len(pending), updated=updated)
        return updated

    # ------------------------------------------------------------------
    def _search_imdb_id(self, title: str, year: str | None) -> str:
        params = {"apikey": self.settings.omdb_api_key, "s": title}
        if year:
            params["y"] = year
        payload = self._get_json(self._omdb, "", params, service="omdb")
        if not isinstance(payload, dict) or payload.get("Response") != "True":
            reason = payload.get("Error") if isinstance(payload, dict) else "unexpected payload"
            raise PermanentLookupError(f"OMDb found nothing for {title!r}: {reason}")
        for result in payload.get("Search") or []:
            if result.get("Title") == title and result.get("imdbID"):
                return str(result["imdbID"])
        raise PermanentLookupError(f"OMDb has no exact title match for {title!r}")

    def _lookup_radarr_movie(self, imdb_id: str) -> dict[str, Any]:
        payload = self._get_json(
            self._radarr, "api/v3/movie/lookup/imdb", {"imdbId": imdb_id}, service="radarr"
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict):
            raise PermanentLookupError(f"Radarr lookup returned nothing for {imdb_id}")
        return payload

    @staticmethod
    def _poster_url(movie: dict[str, Any]) -> str | None:
        for image in movie.get("images") or []:
            if image.get("coverType") == "poster":
                return image.get("remoteUrl") or image.get("url")
        return None

    def _get_json(self, client: httpx.Client, url: str, params: dict[str, Any], service: str) -> Any:
        response = self._send(client, "GET", url, service=service, params=params)
        self._check_status(response, service=service)
        try:
            return response.json()
        except ValueError as exc:
            raise PermanentLookupError(f"{service} returned malformed JSON") from exc

    @staticmethod
    def _send(client: httpx.Client, method: str, url: str, service: str, **kwargs: Any) -> httpx.Response:
        try:
            return client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientLookupError(f"{service} request timed out") from exc
        except httpx.TransportError as exc:
            raise TransientLookupError(f"{service} request failed: {exc}") from exc

    @staticmethod
    def _check_status(response: httpx.Response, service: str) -> None:
        if response.is_success:
            return
        message = f"{service} responded with HTTP {response.status_code}"
        if _is_transient_status(response.status_code):
            raise TransientLookupError(message)
        raise PermanentLookupError(message)


__all__ = ["CatalogResolver"]
