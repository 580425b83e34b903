"""Engine components orchestrating dispatch → dedup → enrichment → batch → persistence."""

from .batching import Batcher
from .cache import TTLCache
from .channel import Channel
from .contracts import FilmFilter, FilmStore, MetadataResolver, SourceProducer
from .dedup import DeduplicationStage, SeenKeys
from .dispatch import DispatchStage
from .enrichment import EnrichmentStage
from .metrics import AtomicCounter, MetricsSnapshot, RunMetrics
from .models import (
    DedupDecision,
    EnrichmentOutcome,
    EnrichmentStatus,
    Film,
    FilmBatch,
    RunContext,
    ScrapedFilm,
    ScrapedItem,
    identity_key,
)
from .persistence import PersistenceStage
from .pipeline import HarvestPipeline, RunReport
from .retry import RetryPolicy
from .thread_pool import WorkerPools

__all__ = [
    "AtomicCounter",
    "Batcher",
    "Channel",
    "DedupDecision",
    "DeduplicationStage",
    "DispatchStage",
    "EnrichmentOutcome",
    "EnrichmentStage",
    "EnrichmentStatus",
    "Film",
    "FilmBatch",
    "FilmFilter",
    "FilmStore",
    "HarvestPipeline",
    "MetadataResolver",
    "MetricsSnapshot",
    "PersistenceStage",
    "RetryPolicy",
    "RunContext",
    "RunMetrics",
    "RunReport",
    "ScrapedFilm",
    "ScrapedItem",
    "SeenKeys",
    "SourceProducer",
    "TTLCache",
    "WorkerPools",
    "identity_key",
]
