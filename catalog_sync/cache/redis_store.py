"""
catalog_sync/cache/redis_store.py

Redis-backed cache store.

Redis failures are logged and degrade to cache misses; the cache is derived
data and must never take a lookup down with it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from catalog_sync.config import CacheSettings

logger = logging.getLogger(__name__)


class RedisCacheStore:
    def __init__(
        self,
        *,
        settings: CacheSettings,
        client: redis.Redis | None = None,
    ) -> None:
        self._prefix = settings.key_prefix
        self._client = client or redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.socket_timeout_seconds,
            socket_timeout=settings.socket_timeout_seconds,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        try:
            cached = self._client.get(self._key(key))
        except redis.RedisError as exc:
            logger.error("Cache read failed key=%s error=%s", key, exc)
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding undecodable cache entry key=%s", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        try:
            self._client.setex(self._key(key), int(ttl_seconds), json.dumps(value, default=str))
        except redis.RedisError as exc:
            logger.error("Cache write failed key=%s error=%s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(self._key(key)))
        except redis.RedisError as exc:
            logger.error("Cache delete failed key=%s error=%s", key, exc)
            return False

    def clear(self, prefix: str = "") -> int:
        """
        Delete keys under this store's prefix (and ``prefix``), leaving other keys alone.
        """

        pattern = f"{self._key(prefix)}*"
        deleted = 0
        try:
            batch: list[str] = []
            for key in self._client.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    deleted += int(self._client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(self._client.delete(*batch))
        except redis.RedisError as exc:
            logger.error("Cache clear failed pattern=%s error=%s", pattern, exc)
        return deleted

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
