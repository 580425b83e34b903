"""External film catalog clients."""

from .client import CatalogResolver

__all__ = ["CatalogResolver"]
