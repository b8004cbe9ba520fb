"""
catalog_sync/cache/base.py

Key-value cache contract shared by every lookup and sync path.
"""

from __future__ import annotations

from typing import Any, Protocol


class CacheStore(Protocol):
    """
    Minimal TTL cache contract. Values are JSON-compatible.

    Writes are last-writer-wins per key.
    """

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self, prefix: str = "") -> int:
        ...

    def ping(self) -> bool:
        """
        Return ``False`` when the backend cannot be reached. Never raises.
        """
