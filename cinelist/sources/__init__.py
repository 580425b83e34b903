"""Cinema website sources feeding the pipeline."""

from .base import CinemaSource
from .cinema_beaubien import CinemaBeaubienSource
from .cinema_moderne import CinemaModerneSource
from .registry import SOURCE_TYPES, available_sources, build_source, build_sources

__all__ = [
    "CinemaBeaubienSource",
    "CinemaModerneSource",
    "CinemaSource",
    "SOURCE_TYPES",
    "available_sources",
    "build_source",
    "build_sources",
]
