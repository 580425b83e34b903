"""Shared behaviour of cinema website sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence
from urllib.parse import urljoin

import httpx
import structlog

from ..engine.models import Film, RunContext, ScrapedFilm
from ..errors import ProducerError
from ..infra import RunHistoryStore
from ..logging_conf import source_logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CinemaSource(ABC):
    """History-gated eligibility and one history entry per run.

    Concrete sources satisfy the ``SourceProducer`` protocol by implementing
    :meth:`scrape`; :meth:`fetch` and :meth:`url_for` cover their HTTP needs.
    """

    source_id: str = "cinema"
    default_base_url: str = ""

    def __init__(
        self,
        client: httpx.Client,
        history: RunHistoryStore,
        *,
        base_url: str | None = None,
        min_hours_between_runs: float = 24.0,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.history = history
        self.base_url = base_url or self.default_base_url
        self.min_hours_between_runs = min_hours_between_runs
        self.clock = clock
        self.logger = logger or source_logger(self.source_id)

    def is_eligible(self, context: RunContext) -> bool:
        cutoff = context.started_at - timedelta(hours=self.min_hours_between_runs)
        recent = self.history.has_run_since(self.source_id, cutoff)
        if recent:
            self.logger.info("source_recently_scraped", cutoff=cutoff.isoformat())
        return not recent

    @abstractmethod
    def scrape(self) -> list[ScrapedFilm]:
        """Return every listing currently shown by the cinema."""

    def record_run_history(self, films: Sequence[Film], context: RunContext) -> None:
        entry = self.history.record(self.source_id, films, at=self.clock(), run_id=context.run_id)
        self.logger.info("history_recorded", films=entry.film_count, run_id=context.run_id)

    # ------------------------------------------------------------------
    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path)

    def fetch(self, url: str) -> str:
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProducerError(self.source_id, f"GET {url} failed: {exc}") from exc
        return response.text


__all__ = ["CinemaSource"]
