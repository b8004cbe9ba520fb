"""
catalog_sync/api/routers package marker.
"""

from catalog_sync.api.routers.health import router as health_router
from catalog_sync.api.routers.sync import router as sync_router

__all__ = [
    "health_router",
    "sync_router",
]
