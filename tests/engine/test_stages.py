from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import pytest

from cinelist.engine import (
    Batcher,
    Channel,
    DedupDecision,
    DeduplicationStage,
    DispatchStage,
    EnrichmentOutcome,
    EnrichmentStage,
    EnrichmentStatus,
    Film,
    FilmBatch,
    PersistenceStage,
    RetryPolicy,
    RunContext,
    RunMetrics,
    ScrapedFilm,
    ScrapedItem,
    TTLCache,
    identity_key,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _item(title: str, year: str = "2020", source: str = "moderne") -> ScrapedItem:
    return ScrapedItem(film=ScrapedFilm(title=title, year=year), source_id=source, scraped_at=NOW)


def _decision(title: str, duplicate: bool = False, source: str = "moderne") -> DedupDecision:
    item = _item(title, source=source)
    return DedupDecision(item=item, identity_key=identity_key(title, "2020"), is_duplicate=duplicate)


def _success(title: str, source: str, tmdb_id: str) -> EnrichmentOutcome:
    decision = _decision(title, source=source)
    return EnrichmentOutcome(
        film=Film(title=title, imdb_id=f"tt{tmdb_id}", tmdb_id=tmdb_id),
        item=decision.item,
        identity_key=decision.identity_key,
        was_cached=False,
        source_id=source,
        status=EnrichmentStatus.SUCCESS,
    )


# -- dispatch ---------------------------------------------------------------


def test_dispatch_drops_untitled_listings_and_counts_the_rest(producer_factory) -> None:
    metrics = RunMetrics()
    producer = producer_factory(
        "moderne", [ScrapedFilm(title="Alpha"), ScrapedFilm(title="   "), ScrapedFilm(title=None)]
    )
    stage = DispatchStage(metrics, RunContext(), clock=lambda: NOW)

    items = stage.run_producer(producer)

    assert [item.film.title for item in items] == ["Alpha"]
    assert items[0].source_id == "moderne"
    assert items[0].scraped_at == NOW
    assert metrics.total_scraped.value == 1


def test_dispatch_times_out_slow_scrapes() -> None:
    class SlowProducer:
        source_id = "slow"

        def is_eligible(self, context):  # noqa: ANN001
            return True

        def scrape(self):
            time.sleep(0.5)
            return [ScrapedFilm(title="Late")]

        def record_run_history(self, films, context):  # noqa: ANN001
            pass

    metrics = RunMetrics()
    stage = DispatchStage(metrics, RunContext(), scrape_timeout_seconds=0.05)

    assert stage.run_producer(SlowProducer()) == []
    assert metrics.total_scraped.value == 0


def test_dispatch_isolates_eligibility_errors() -> None:
    class BrokenGate:
        source_id = "gate"

        def is_eligible(self, context):  # noqa: ANN001
            raise RuntimeError("history store offline")

        def scrape(self):
            raise AssertionError("must not scrape")

        def record_run_history(self, films, context):  # noqa: ANN001
            pass

    stage = DispatchStage(RunMetrics(), RunContext())
    assert stage.run_producer(BrokenGate()) == []


# -- dedup ------------------------------------------------------------------


def test_identity_key_normalises_case_and_whitespace() -> None:
    assert identity_key("  The   Matrix ", "1999") == identity_key("the matrix", "1999")
    assert identity_key("The Matrix", "1999") != identity_key("The Matrix", "2021")
    assert identity_key(None, None) == "|"


def test_dedup_marks_first_occurrence_canonical() -> None:
    metrics = RunMetrics()
    stage = DeduplicationStage(metrics)

    first = stage.decide(_item("Alpha"))
    second = stage.decide(_item("ALPHA", source="beaubien"))
    other = stage.decide(_item("Beta"))

    assert not first.is_duplicate
    assert second.is_duplicate
    assert not other.is_duplicate
    assert metrics.duplicates_filtered.value == 1
    assert stage.unique_count == 2


def test_dedup_concurrent_identical_keys_yield_one_canonical() -> None:
    stage = DeduplicationStage(RunMetrics())
    barrier = threading.Barrier(8)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        decision = stage.decide(_item("Alpha"))
        with lock:
            results.append(decision.is_duplicate)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(False) == 1
    assert results.count(True) == 7


def test_dedup_disabled_passes_everything_through() -> None:
    metrics = RunMetrics()
    stage = DeduplicationStage(metrics, enabled=False)

    decisions = [stage.decide(_item("Alpha")) for _ in range(3)]

    assert not any(decision.is_duplicate for decision in decisions)
    assert decisions[0].identity_key == identity_key("Alpha", "2020")
    assert metrics.duplicates_filtered.value == 0


def test_dedup_clear_forgets_seen_keys() -> None:
    stage = DeduplicationStage(RunMetrics())
    stage.decide(_item("Alpha"))
    stage.clear()
    assert not stage.decide(_item("Alpha")).is_duplicate


# -- enrichment -------------------------------------------------------------


def _enrichment(resolver, cache=None, context=None, sleep=None) -> tuple[EnrichmentStage, RunMetrics]:
    metrics = RunMetrics()
    policy = RetryPolicy(max_attempts=3, sleep=sleep or (lambda _: None))
    stage = EnrichmentStage(resolver, metrics, context or RunContext(), policy, cache=cache)
    return stage, metrics


def test_enrichment_cache_hit_skips_lookup(resolver) -> None:
    cache: TTLCache[Film] = TTLCache(ttl_seconds=3600)
    cached_film = Film(title="Alpha", imdb_id="tt1", tmdb_id="1")
    cache.set(identity_key("Alpha", "2020"), cached_film)
    stage, metrics = _enrichment(resolver, cache=cache)

    outcome = stage.enrich(_decision("Alpha"))

    assert outcome.status is EnrichmentStatus.CACHED_SUCCESS
    assert outcome.was_cached
    assert outcome.film == cached_film
    assert resolver.calls == []
    assert metrics.cache_hits.value == 1
    assert metrics.lookup_calls.value == 0


def test_enrichment_fills_cache_after_success(resolver) -> None:
    cache: TTLCache[Film] = TTLCache(ttl_seconds=3600)
    stage, metrics = _enrichment(resolver, cache=cache)

    first = stage.enrich(_decision("Alpha"))
    second = stage.enrich(_decision("Alpha"))

    assert first.status is EnrichmentStatus.SUCCESS
    assert second.status is EnrichmentStatus.CACHED_SUCCESS
    assert metrics.cache_hits.value == 1
    assert metrics.lookup_calls.value == 1


def test_enrichment_skips_duplicates_and_cancelled_runs(resolver) -> None:
    context = RunContext()
    stage, metrics = _enrichment(resolver, context=context)

    assert stage.enrich(_decision("Alpha", duplicate=True)).status is EnrichmentStatus.SKIPPED
    context.cancel()
    assert stage.enrich(_decision("Beta")).status is EnrichmentStatus.SKIPPED
    assert resolver.calls == []
    assert metrics.lookup_calls.value == 0


def test_dedup_stops_tracking_keys_once_cancelled() -> None:
    metrics = RunMetrics()
    context = RunContext()
    stage = DeduplicationStage(metrics, context)
    context.cancel()

    first = stage.decide(_item("Alpha"))
    second = stage.decide(_item("Alpha"))

    assert not first.is_duplicate and not second.is_duplicate
    assert metrics.duplicates_filtered.value == 0
    assert stage.unique_count == 0


def test_batcher_drains_without_batching_once_cancelled() -> None:
    context = RunContext()
    batcher = Batcher(batch_size=2, context=context)
    batcher.add(_success("Alpha", "moderne", "1"))
    context.cancel()
    inbox: Channel[EnrichmentOutcome] = Channel("outcomes", capacity=10)
    outbox: Channel[FilmBatch] = Channel("batches", capacity=10)
    for title in ("Beta", "Gamma", "Delta"):
        inbox.put(_success(title, "moderne", title))
    inbox.close(readers=1)

    batcher.worker(inbox, outbox)

    assert outbox.qsize() == 0
    assert batcher.flush() is None
    assert batcher.pending == 0


def test_enrichment_unexpected_error_becomes_failure(resolver) -> None:
    resolver.fail("alpha", KeyError("payload"))
    stage, metrics = _enrichment(resolver)

    outcome = stage.enrich(_decision("Alpha"))

    assert outcome.status is EnrichmentStatus.LOOKUP_FAILURE
    assert outcome.film is None
    assert metrics.lookup_failures.value == 1


# -- batching ---------------------------------------------------------------


def test_batcher_emits_full_batches_and_flushes_tail() -> None:
    batcher = Batcher(batch_size=2)
    outcomes = [_success(title, "moderne", str(i)) for i, title in enumerate(["A", "B", "C"])]

    emitted = [batcher.add(outcome) for outcome in outcomes]

    assert emitted[0] is None
    assert emitted[1] is not None and len(emitted[1]) == 2
    assert emitted[2] is None
    tail = batcher.flush()
    assert tail is not None and len(tail) == 1
    assert batcher.flush() is None


def test_batch_counts_statuses() -> None:
    batcher = Batcher(batch_size=3)
    failure = EnrichmentOutcome.without_film(_decision("Zeta"), EnrichmentStatus.LOOKUP_FAILURE)
    batcher.add(_success("A", "moderne", "1"))
    batcher.add(failure)
    batch = batcher.add(_success("B", "moderne", "2"))

    assert batch is not None
    assert batch.total_attempted == 3
    assert batch.success_count == 2
    assert batch.failure_count == 1
    assert len(batch.films) == 2


def test_batcher_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        Batcher(batch_size=0)


# -- persistence ------------------------------------------------------------


def test_persistence_accumulates_distinct_films_per_source(producer_factory, film_store) -> None:
    moderne = producer_factory("moderne")
    beaubien = producer_factory("beaubien")
    metrics = RunMetrics()
    stage = PersistenceStage(film_store, [moderne, beaubien], metrics, RunContext())
    batcher = Batcher(batch_size=3)
    batcher.add(_success("Alpha", "moderne", "1"))
    batcher.add(_success("Alpha", "moderne", "1"))
    batch = batcher.add(_success("Beta", "beaubien", "2"))
    assert batch is not None

    assert stage.persist(batch) == 3
    written = stage.finalize_history()

    assert written == {"moderne": 1, "beaubien": 1}
    assert [film.title for film in moderne.history_calls[0]] == ["Alpha"]
    assert metrics.films_persisted.value == 3


def test_persistence_history_error_for_one_source_keeps_others(producer_factory, film_store) -> None:
    class FailingHistory:
        source_id = "moderne"

        def record_run_history(self, films, context):  # noqa: ANN001
            raise RuntimeError("history collection unavailable")

    beaubien = producer_factory("beaubien")
    stage = PersistenceStage(film_store, [FailingHistory(), beaubien], RunMetrics(), RunContext())
    batcher = Batcher(batch_size=2)
    batcher.add(_success("Alpha", "moderne", "1"))
    batch = batcher.add(_success("Beta", "beaubien", "2"))
    assert batch is not None
    stage.persist(batch)

    assert stage.finalize_history() == {"beaubien": 1}
    assert len(beaubien.history_calls) == 1


def test_persistence_discards_batches_after_cancel(producer_factory, film_store) -> None:
    context = RunContext()
    stage = PersistenceStage(film_store, [producer_factory("moderne")], RunMetrics(), context)
    batch = Batcher(batch_size=1).add(_success("Alpha", "moderne", "1"))
    assert batch is not None
    context.cancel()

    assert stage.persist(batch) == 0
    assert film_store.upsert_sizes == []
