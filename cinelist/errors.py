"""Exception taxonomy shared by the pipeline and its collaborators."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised inside the harvest pipeline."""


class CatalogLookupError(PipelineError):
    """A metadata lookup did not produce a canonical film."""


class TransientLookupError(CatalogLookupError):
    """Network or timeout failure; worth retrying with backoff."""


class PermanentLookupError(CatalogLookupError):
    """Bad or absent catalog data; retrying will not help."""


class ProducerError(PipelineError):
    """A cinema source failed to check eligibility or to scrape."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id


class PersistenceError(PipelineError):
    """The film store rejected a batch."""


class RunCancelled(PipelineError):
    """Raised by blocking helpers when the run-wide cancel signal is set."""


__all__ = [
    "CatalogLookupError",
    "PermanentLookupError",
    "PersistenceError",
    "PipelineError",
    "ProducerError",
    "RunCancelled",
    "TransientLookupError",
]
