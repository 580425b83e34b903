"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CatalogSettings,
    GlobalConfig,
    PipelineOptions,
    ScheduleSettings,
    SourceSettings,
    StoreBackend,
    StoreSettings,
)

__all__ = [
    "CatalogSettings",
    "ConfigLocator",
    "ConfigRepository",
    "GlobalConfig",
    "PipelineOptions",
    "ScheduleSettings",
    "SourceSettings",
    "StoreBackend",
    "StoreSettings",
]
