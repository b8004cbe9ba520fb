"""
catalog_sync/services/fallback_resolver.py

Degrade-gracefully lookup chain: live -> cache -> static -> alternate -> unavailable.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from catalog_sync.cache.base import CacheStore
from catalog_sync.config import FallbackSettings
from catalog_sync.domain.fallback import FallbackEntry, FallbackResult, Tier
from catalog_sync.domain.monitoring import EventReporter, MonitoringEventType
from catalog_sync.errors import (
    LiveLookupSuppressedError,
    NotFoundError,
    SourceTimeoutError,
    error_class_of,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

RESOLVER_SOURCE = "fallback_resolver"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FallbackResolver(Generic[RecordT]):
    """
    Resolves one record type through the tiered lookup chain.

    ``resolve`` never raises. Live successes are written to the cache so they
    can serve as tomorrow's fallback; every resolution that ends anywhere but
    the live tier reports exactly one ``fallback_activated`` event.
    """

    def __init__(
        self,
        *,
        namespace: str,
        record_type: type[RecordT],
        settings: FallbackSettings,
        cache: CacheStore | None = None,
        monitoring: EventReporter | None = None,
        static_records: Mapping[str, RecordT] | None = None,
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.namespace = namespace
        self._record_type = record_type
        self._settings = settings
        self._cache = cache
        self._monitoring = monitoring
        self._static: dict[str, RecordT] = dict(static_records or {})
        self._ttl_seconds = int(ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds)
        self._clock = clock
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._consecutive_failures: dict[str, int] = {}
        self._suppressed_until: dict[str, float] = {}
        self._served: Counter[str] = Counter()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def cache_key(self, key: str) -> str:
        return f"fallback:{self.namespace}:{key}"

    def resolve(
        self,
        key: str,
        live_fetch: Callable[[], RecordT | None],
        *,
        alternate_fetch: Callable[[], RecordT | None] | None = None,
        prefer_cache: bool = False,
        timeout_seconds: float | None = None,
    ) -> FallbackResult[RecordT]:
        """
        Resolve ``key`` through the tier chain.

        Args:
            key: Natural key of the record.
            live_fetch: Zero-argument callable hitting the live source. Returning
                ``None`` (or raising ``NotFoundError``) means the provider has no
                such record.
            alternate_fetch: Optional single-attempt alternate source.
            prefer_cache: Serve an unexpired cache entry without calling the live
                source. Used by point lookups; sync runs always go live first.
            timeout_seconds: Deadline for the live call. On expiry the call is
                treated as a ``Timeout`` and resolution falls through.
        """

        if prefer_cache:
            cached = self._read_cache(key)
            if cached is not None:
                self._count_served(Tier.CACHE)
                self._report(
                    MonitoringEventType.LOOKUP_SERVED,
                    metadata={"key": key, "namespace": self.namespace, "tier": Tier.CACHE.value},
                )
                return FallbackResult(key=key, tier=Tier.CACHE, value=cached.value, entry=cached)

        tiers_tried: list[Tier] = [Tier.LIVE]
        live_error: Exception | None = None
        not_found = False

        suppressed_for = self._suppression_remaining(key)
        if suppressed_for is not None:
            live_error = LiveLookupSuppressedError(
                f"Live lookups for {key} suppressed for {suppressed_for:.0f}s after repeated failures.",
                source=self.namespace,
            )
        else:
            try:
                value = self._call_live(key, live_fetch, timeout_seconds)
            except NotFoundError:
                value = None
            except Exception as exc:
                live_error = exc
                self._record_live_failure(key)
            if live_error is None:
                self._record_live_success(key)
                if value is not None:
                    entry = self._write_cache(key, value, Tier.LIVE)
                    self._count_served(Tier.LIVE)
                    self._report(
                        MonitoringEventType.LOOKUP_SERVED,
                        metadata={"key": key, "namespace": self.namespace, "tier": Tier.LIVE.value},
                    )
                    return FallbackResult(key=key, tier=Tier.LIVE, value=value, entry=entry)
                not_found = True

        if self._settings.enable_cache and self._cache is not None:
            tiers_tried.append(Tier.CACHE)
            cached = self._read_cache(key)
            if cached is not None:
                return self._degraded(key, Tier.CACHE, cached.value, live_error, tiers_tried, not_found, cached)

        if self._settings.enable_static_data:
            tiers_tried.append(Tier.STATIC)
            with self._lock:
                static_value = self._static.get(key)
            if static_value is not None:
                return self._degraded(key, Tier.STATIC, static_value, live_error, tiers_tried, not_found)

        if self._settings.enable_alternate_source and alternate_fetch is not None:
            tiers_tried.append(Tier.ALTERNATE)
            try:
                alternate_value = alternate_fetch()
            except Exception as exc:
                logger.warning(
                    "Alternate source failed namespace=%s key=%s error_class=%s error=%s",
                    self.namespace,
                    key,
                    error_class_of(exc),
                    exc,
                )
            else:
                if alternate_value is not None:
                    entry = self._write_cache(key, alternate_value, Tier.ALTERNATE)
                    return self._degraded(
                        key, Tier.ALTERNATE, alternate_value, live_error, tiers_tried, not_found, entry
                    )

        return self._degraded(key, Tier.UNAVAILABLE, None, live_error, tiers_tried, not_found)

    def clear_cache(self) -> int:
        if self._cache is None:
            return 0
        removed = self._cache.clear(self.cache_key(""))
        logger.info("Cleared fallback cache namespace=%s removed=%s", self.namespace, removed)
        return removed

    def stats(self) -> dict[str, Any]:
        now = self._monotonic()
        with self._lock:
            return {
                "namespace": self.namespace,
                "served_by_tier": {tier.value: self._served.get(tier.value, 0) for tier in Tier},
                "static_entries": len(self._static),
                "suppressed_keys": sum(1 for until in self._suppressed_until.values() if until > now),
                "ttl_seconds": self._ttl_seconds,
            }

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _call_live(
        self,
        key: str,
        live_fetch: Callable[[], RecordT | None],
        timeout_seconds: float | None,
    ) -> RecordT | None:
        if timeout_seconds is None:
            return live_fetch()

        future = self._get_executor().submit(live_fetch)
        try:
            return future.result(timeout=max(0.0, timeout_seconds))
        except FutureTimeoutError as exc:
            future.cancel()
            self._report(
                MonitoringEventType.API_ERROR,
                metadata={
                    "key": key,
                    "namespace": self.namespace,
                    "reason": "lookup_deadline",
                    "timeout_seconds": timeout_seconds,
                    "error_class": SourceTimeoutError.error_class,
                },
                error_message=f"Live lookup exceeded {timeout_seconds}s deadline.",
            )
            raise SourceTimeoutError(
                f"Live lookup for {key} exceeded {timeout_seconds}s deadline.",
                source=self.namespace,
            ) from exc

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=max(1, self._settings.lookup_workers),
                    thread_name_prefix=f"lookup-{self.namespace}",
                )
            return self._executor

    def _degraded(
        self,
        key: str,
        tier: Tier,
        value: RecordT | None,
        live_error: Exception | None,
        tiers_tried: list[Tier],
        not_found: bool,
        entry: FallbackEntry[RecordT] | None = None,
    ) -> FallbackResult[RecordT]:
        error_class = "NotFound" if not_found else (error_class_of(live_error) if live_error else None)
        self._count_served(tier)
        self._report(
            MonitoringEventType.FALLBACK_ACTIVATED,
            metadata={
                "key": key,
                "namespace": self.namespace,
                "error_class": error_class,
                "tiers_tried": [tried.value for tried in tiers_tried],
                "final_tier": tier.value,
            },
            error_message=str(live_error) if live_error is not None else None,
        )
        return FallbackResult(
            key=key,
            tier=tier,
            value=value,
            error=live_error,
            entry=entry,
            not_found=not_found,
        )

    def _read_cache(self, key: str) -> FallbackEntry[RecordT] | None:
        if not self._settings.enable_cache or self._cache is None:
            return None
        try:
            payload = self._cache.get(self.cache_key(key))
        except Exception as exc:
            logger.error("Fallback cache read failed namespace=%s key=%s error=%s", self.namespace, key, exc)
            return None
        if payload is None:
            return None
        try:
            entry = FallbackEntry.from_cache_payload(payload, self._record_type.model_validate)
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.warning(
                "Discarding unreadable fallback entry namespace=%s key=%s error=%s",
                self.namespace,
                key,
                exc,
            )
            return None
        if entry.is_expired(self._clock()):
            return None
        return entry

    def _write_cache(self, key: str, value: RecordT, tier: Tier) -> FallbackEntry[RecordT]:
        now = self._clock()
        entry = FallbackEntry(
            key=key,
            value=value,
            cached_at=now,
            expires_at=now + timedelta(seconds=self._ttl_seconds),
            tier=tier,
        )
        if self._settings.enable_cache and self._cache is not None:
            try:
                self._cache.set(
                    self.cache_key(key),
                    entry.to_payload(lambda record: record.model_dump(mode="json")),
                    self._ttl_seconds,
                )
            except Exception as exc:
                logger.error(
                    "Fallback cache write failed namespace=%s key=%s error=%s",
                    self.namespace,
                    key,
                    exc,
                )
        return entry

    def _suppression_remaining(self, key: str) -> float | None:
        now = self._monotonic()
        with self._lock:
            until = self._suppressed_until.get(key)
            if until is None:
                return None
            if until <= now:
                del self._suppressed_until[key]
                return None
            return until - now

    def _record_live_failure(self, key: str) -> None:
        with self._lock:
            failures = self._consecutive_failures.get(key, 0) + 1
            if failures < self._settings.max_live_failures_per_key:
                self._consecutive_failures[key] = failures
                return
            self._consecutive_failures.pop(key, None)
            cooldown = self._settings.live_failure_cooldown_seconds
            if cooldown > 0:
                self._suppressed_until[key] = self._monotonic() + cooldown
        logger.warning(
            "Suppressing live lookups namespace=%s key=%s failures=%s cooldown_seconds=%s",
            self.namespace,
            key,
            failures,
            cooldown,
        )

    def _record_live_success(self, key: str) -> None:
        with self._lock:
            self._consecutive_failures.pop(key, None)

    def _count_served(self, tier: Tier) -> None:
        with self._lock:
            self._served[tier.value] += 1

    def _report(
        self,
        event_type: MonitoringEventType,
        *,
        metadata: dict[str, Any],
        error_message: str | None = None,
    ) -> None:
        if self._monitoring is None:
            return
        self._monitoring.log_event(event_type, RESOLVER_SOURCE, metadata=metadata, error_message=error_message)
