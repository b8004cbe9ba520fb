"""
Catalog collaborator interface and reference implementation.
"""

from catalog_sync.catalog.base import CatalogEntity, CatalogStore
from catalog_sync.catalog.memory import InMemoryCatalogStore

__all__ = ["CatalogEntity", "CatalogStore", "InMemoryCatalogStore"]
