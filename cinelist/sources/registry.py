"""Name → source class mapping and construction from configuration."""

from __future__ import annotations

from typing import Iterable

import httpx

from ..config import GlobalConfig, SourceSettings
from ..infra import RunHistoryStore
from .base import CinemaSource
from .cinema_beaubien import CinemaBeaubienSource
from .cinema_moderne import CinemaModerneSource

SOURCE_TYPES: dict[str, type[CinemaSource]] = {
    CinemaModerneSource.source_id: CinemaModerneSource,
    CinemaBeaubienSource.source_id: CinemaBeaubienSource,
}


def available_sources() -> list[str]:
    return sorted(SOURCE_TYPES)


def build_source(settings: SourceSettings, client: httpx.Client, history: RunHistoryStore) -> CinemaSource:
    try:
        source_type = SOURCE_TYPES[settings.name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown source {settings.name!r}; available: {', '.join(available_sources())}"
        ) from exc
    return source_type(
        client,
        history,
        base_url=settings.base_url,
        min_hours_between_runs=settings.min_hours_between_runs,
    )


def build_sources(
    config: GlobalConfig,
    client: httpx.Client,
    history: RunHistoryStore,
    only: Iterable[str] | None = None,
) -> list[CinemaSource]:
    """Instantiate enabled sources, optionally restricted to the given names."""

    selected = set(only or ())
    known = {settings.name for settings in config.sources}
    missing = selected - known
    if missing:
        raise ValueError(f"Sources not configured: {', '.join(sorted(missing))}")
    sources = []
    for settings in config.sources:
        if selected:
            if settings.name not in selected:
                continue
        elif not settings.enabled:
            continue
        sources.append(build_source(settings, client, history))
    return sources


__all__ = ["SOURCE_TYPES", "available_sources", "build_source", "build_sources"]
