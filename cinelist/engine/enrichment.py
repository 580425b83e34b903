"""Enrichment stage: cached, retried catalog lookups for canonical films."""

from __future__ import annotations

import structlog

from ..errors import CatalogLookupError
from .cache import TTLCache
from .channel import Channel
from .contracts import MetadataResolver
from .metrics import RunMetrics
from .models import DedupDecision, EnrichmentOutcome, EnrichmentStatus, Film, RunContext
from .retry import RetryPolicy


class EnrichmentStage:
    """Resolve each canonical listing into a :class:`Film`.

    The cache is checked before the resolver and filled after a success.
    Two workers missing the cache for the same identity at the same moment
    may both call the resolver; the second write simply refreshes the entry.
    """

    def __init__(
        self,
        resolver: MetadataResolver,
        metrics: RunMetrics,
        context: RunContext,
        retry_policy: RetryPolicy,
        cache: TTLCache[Film] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.resolver = resolver
        self.metrics = metrics
        self.context = context
        self.retry_policy = retry_policy
        self.cache = cache
        self.logger = logger or structlog.get_logger("cinelist.enrichment")
        if self.retry_policy.logger is None:
            self.retry_policy.logger = self.logger

    @property
    def caching_enabled(self) -> bool:
        return self.cache is not None

    def worker(self, inbox: Channel[DedupDecision], outbox: Channel[EnrichmentOutcome]) -> None:
        for decision in inbox:
            outbox.put(self.enrich(decision))

    def enrich(self, decision: DedupDecision) -> EnrichmentOutcome:
        if decision.is_duplicate:
            return EnrichmentOutcome.without_film(decision, EnrichmentStatus.SKIPPED)
        if self.context.cancelled:
            return EnrichmentOutcome.without_film(decision, EnrichmentStatus.SKIPPED)

        scraped = decision.item.film
        try:
            if self.cache is not None:
                cached = self.cache.get(decision.identity_key)
                if cached is not None:
                    self.metrics.cache_hits.increment()
                    self.logger.debug("cache_hit", title=scraped.title, year=scraped.year)
                    return EnrichmentOutcome(
                        film=cached,
                        item=decision.item,
                        identity_key=decision.identity_key,
                        was_cached=True,
                        source_id=decision.source_id,
                        status=EnrichmentStatus.CACHED_SUCCESS,
                    )

            self.metrics.lookup_calls.increment()
            film = self.retry_policy.call(
                lambda: self.resolver.resolve(scraped), label=scraped.title or ""
            )
            if film is None:
                return self._failed(decision, reason="no_match")

            if self.cache is not None:
                self.cache.set(decision.identity_key, film)
            self.logger.info(
                "film_enriched", title=scraped.title, imdb_id=film.imdb_id, source=decision.source_id
            )
            return EnrichmentOutcome(
                film=film,
                item=decision.item,
                identity_key=decision.identity_key,
                was_cached=False,
                source_id=decision.source_id,
                status=EnrichmentStatus.SUCCESS,
            )
        except CatalogLookupError as exc:
            return self._failed(decision, reason=type(exc).__name__, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "enrichment_error",
                title=scraped.title,
                source=decision.source_id,
                error=str(exc),
                exc_info=True,
            )
            return self._failed(decision, reason="unexpected_error", error=str(exc))

    def _failed(self, decision: DedupDecision, reason: str, error: str | None = None) -> EnrichmentOutcome:
        self.metrics.lookup_failures.increment()
        self.logger.warning(
            "lookup_failed",
            title=decision.item.film.title,
            year=decision.item.film.year,
            source=decision.source_id,
            reason=reason,
            error=error,
        )
        return EnrichmentOutcome.without_film(decision, EnrichmentStatus.LOOKUP_FAILURE)


__all__ = ["EnrichmentStage"]
