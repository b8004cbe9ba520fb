"""
catalog_sync/domain/fallback.py

Fallback tier and cache entry models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class Tier(str, Enum):
    """
    Acquisition path that produced an answer.

    ``UNAVAILABLE`` only appears on resolution results, never on stored entries.
    """

    LIVE = "live"
    CACHE = "cache"
    STATIC = "static"
    ALTERNATE = "alternate"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class FallbackEntry(Generic[T]):
    key: str
    value: T
    cached_at: datetime
    expires_at: datetime
    tier: Tier
    origin_tier: Tier | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_payload(self, encode: Callable[[T], Any]) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": encode(self.value),
            "cached_at": self.cached_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "tier": self.tier.value,
        }

    @classmethod
    def from_cache_payload(
        cls,
        payload: dict[str, Any],
        decode: Callable[[Any], T],
    ) -> "FallbackEntry[T]":
        """
        Rebuild an entry read back from the cache store.

        The returned entry is tagged ``cache``; the tier it was stored with is
        kept as ``origin_tier``.
        """

        return cls(
            key=str(payload["key"]),
            value=decode(payload["value"]),
            cached_at=datetime.fromisoformat(payload["cached_at"]),
            expires_at=datetime.fromisoformat(payload["expires_at"]),
            tier=Tier.CACHE,
            origin_tier=Tier(payload.get("tier", Tier.LIVE.value)),
        )


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    key: str
    tier: Tier
    value: T | None = None
    error: Exception | None = None
    entry: FallbackEntry[T] | None = None
    not_found: bool = False

    @property
    def available(self) -> bool:
        return self.tier is not Tier.UNAVAILABLE and self.value is not None

    @property
    def degraded(self) -> bool:
        return self.tier is not Tier.LIVE
