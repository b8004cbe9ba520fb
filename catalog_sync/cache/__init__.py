"""
Cache store implementations.
"""

from __future__ import annotations

from catalog_sync.cache.base import CacheStore
from catalog_sync.cache.memory import InMemoryCacheStore
from catalog_sync.cache.redis_store import RedisCacheStore
from catalog_sync.config import CacheSettings
from catalog_sync.errors import ConfigurationError


def build_cache_store(settings: CacheSettings) -> CacheStore:
    """
    Build the configured cache backend.
    """

    backend = settings.backend.strip().lower()
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "redis":
        return RedisCacheStore(settings=settings)
    raise ConfigurationError(f"Unsupported cache backend: {settings.backend!r}")


__all__ = ["CacheStore", "InMemoryCacheStore", "RedisCacheStore", "build_cache_store"]
