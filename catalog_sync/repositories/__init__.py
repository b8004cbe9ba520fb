"""
Repository layer exports.
"""

from catalog_sync.repositories.catalog_repository import SQLAlchemyCatalogStore

__all__ = ["SQLAlchemyCatalogStore"]
