"""
catalog_sync/config.py

Configuration objects for the external data integration subsystem.

Components receive these frozen settings at construction and never read the
environment themselves. ``get_integration_settings()`` is the single place
that maps environment variables onto them and is only called by the process
entry point.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from db.config import load_env_files

SOURCE_SPECS = "specs"
SOURCE_PRICING = "pricing"
KNOWN_SOURCES = (SOURCE_SPECS, SOURCE_PRICING)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_list_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list from environment variables.
    """

    raw = _get_optional_str_env(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SourceClientSettings:
    """
    Connection, pacing and retry behavior for one provider API.
    """

    api_key: str | None = None
    base_url: str = ""
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    min_request_interval_seconds: float = 1.0
    user_agent: str = "MobileMatrix/1.0"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and bool(self.base_url)


@dataclass(frozen=True)
class PriceTrackingSettings(SourceClientSettings):
    """
    Price-tracking provider settings.
    """

    min_request_interval_seconds: float = 2.0
    country: str = "IN"
    enabled_retailers: tuple[str, ...] = ("amazon", "flipkart", "croma", "reliance")


@dataclass(frozen=True)
class FallbackSettings:
    """
    Fallback resolver tiers and cache lifetime.
    """

    enable_cache: bool = True
    enable_static_data: bool = True
    enable_alternate_source: bool = False
    cache_ttl_seconds: int = 48 * 3600
    price_cache_ttl_seconds: int = 24 * 3600
    max_live_failures_per_key: int = 5
    live_failure_cooldown_seconds: float = 300.0
    lookup_timeout_seconds: float | None = 10.0
    lookup_workers: int = 4


@dataclass(frozen=True)
class SyncSettings:
    """
    Bulk synchronization behavior.
    """

    enabled_sources: tuple[str, ...] = KNOWN_SOURCES
    required_sources: tuple[str, ...] = ()
    batch_size: int = 10
    max_concurrency: int = 4
    batch_delay_seconds: float = 2.0
    sync_interval_seconds: int = 24 * 3600
    auto_start: bool = True
    discover_new_models: bool = False
    job_history_limit: int = 100


@dataclass(frozen=True)
class MonitoringSettings:
    """
    Event retention, rolling window and alert thresholds.
    """

    alerts_enabled: bool = True
    error_threshold: int = 10
    rate_limit_threshold: int = 5
    sync_failure_threshold: int = 3
    window_seconds: int = 3600
    event_capacity: int = 1000
    webhook_url: str | None = None
    webhook_timeout_seconds: float = 5.0
    email_recipients: tuple[str, ...] = ()


@dataclass(frozen=True)
class CacheSettings:
    """
    Key-value cache backend selection.
    """

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "catalog_sync:"
    socket_timeout_seconds: float = 2.0


@dataclass(frozen=True)
class CatalogSettings:
    """
    Catalog store selection. ``sql`` uses the SQLAlchemy catalog database.
    """

    backend: str = "sql"


@dataclass(frozen=True)
class IntegrationSettings:
    """
    Single configuration object handed to the integration facade.
    """

    specs: SourceClientSettings | None = None
    pricing: PriceTrackingSettings | None = None
    alternate_specs: SourceClientSettings | None = None
    fallback: FallbackSettings = field(default_factory=FallbackSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    catalog: CatalogSettings = field(default_factory=CatalogSettings)


def _source_settings_from_env(prefix: str, default_base_url: str) -> SourceClientSettings:
    return SourceClientSettings(
        api_key=_get_optional_str_env(f"{prefix}_API_KEY"),
        base_url=_get_str_env(f"{prefix}_BASE_URL", default_base_url),
        timeout_seconds=max(1.0, _get_float_env(f"{prefix}_TIMEOUT_SECONDS", 30.0)),
        max_attempts=max(1, _get_int_env(f"{prefix}_MAX_ATTEMPTS", 3)),
        backoff_initial_seconds=max(0.0, _get_float_env(f"{prefix}_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env(f"{prefix}_BACKOFF_MULTIPLIER", 2.0)),
        min_request_interval_seconds=max(0.0, _get_float_env(f"{prefix}_MIN_REQUEST_INTERVAL_SECONDS", 1.0)),
    )


@lru_cache(maxsize=1)
def get_integration_settings() -> IntegrationSettings:
    """
    Build integration settings from environment variables.
    """

    alternate = None
    if _get_optional_str_env("ALT_SPECS_API_KEY"):
        alternate = _source_settings_from_env("ALT_SPECS", "")

    return IntegrationSettings(
        specs=_source_settings_from_env("SPECS_API", "https://api.gsmarena.com/v1"),
        pricing=PriceTrackingSettings(
            api_key=_get_optional_str_env("PRICE_TRACKING_API_KEY"),
            base_url=_get_str_env("PRICE_TRACKING_BASE_URL", "https://api.pricetracking.com/v1"),
            timeout_seconds=max(1.0, _get_float_env("PRICE_TRACKING_TIMEOUT_SECONDS", 30.0)),
            max_attempts=max(1, _get_int_env("PRICE_TRACKING_MAX_ATTEMPTS", 3)),
            backoff_initial_seconds=max(0.0, _get_float_env("PRICE_TRACKING_BACKOFF_INITIAL_SECONDS", 1.0)),
            backoff_multiplier=max(1.0, _get_float_env("PRICE_TRACKING_BACKOFF_MULTIPLIER", 2.0)),
            min_request_interval_seconds=max(
                0.0, _get_float_env("PRICE_TRACKING_MIN_REQUEST_INTERVAL_SECONDS", 2.0)
            ),
            country=_get_str_env("PRICE_TRACKING_COUNTRY", "IN"),
            enabled_retailers=_get_list_env(
                "PRICE_TRACKING_ENABLED_RETAILERS",
                ("amazon", "flipkart", "croma", "reliance"),
            ),
        ),
        alternate_specs=alternate,
        fallback=FallbackSettings(
            enable_cache=_get_bool_env("FALLBACK_ENABLE_CACHE", True),
            enable_static_data=_get_bool_env("FALLBACK_ENABLE_STATIC_DATA", True),
            enable_alternate_source=_get_bool_env("FALLBACK_ENABLE_ALTERNATE_SOURCE", alternate is not None),
            cache_ttl_seconds=max(60, _get_int_env("FALLBACK_CACHE_TTL_SECONDS", 48 * 3600)),
            price_cache_ttl_seconds=max(60, _get_int_env("FALLBACK_PRICE_CACHE_TTL_SECONDS", 24 * 3600)),
            max_live_failures_per_key=max(1, _get_int_env("FALLBACK_MAX_LIVE_FAILURES_PER_KEY", 5)),
            live_failure_cooldown_seconds=max(
                0.0, _get_float_env("FALLBACK_LIVE_FAILURE_COOLDOWN_SECONDS", 300.0)
            ),
            lookup_timeout_seconds=max(0.1, _get_float_env("FALLBACK_LOOKUP_TIMEOUT_SECONDS", 10.0)),
            lookup_workers=max(1, _get_int_env("FALLBACK_LOOKUP_WORKERS", 4)),
        ),
        sync=SyncSettings(
            enabled_sources=_get_list_env("SYNC_ENABLED_SOURCES", KNOWN_SOURCES),
            required_sources=_get_list_env("SYNC_REQUIRED_SOURCES", ()),
            batch_size=max(1, _get_int_env("SYNC_BATCH_SIZE", 10)),
            max_concurrency=max(1, _get_int_env("SYNC_MAX_CONCURRENCY", 4)),
            batch_delay_seconds=max(0.0, _get_float_env("SYNC_BATCH_DELAY_SECONDS", 2.0)),
            sync_interval_seconds=max(0, _get_int_env("SYNC_INTERVAL_SECONDS", 24 * 3600)),
            auto_start=_get_bool_env("SYNC_AUTO_START", True),
            discover_new_models=_get_bool_env("SYNC_DISCOVER_NEW_MODELS", False),
        ),
        monitoring=MonitoringSettings(
            alerts_enabled=_get_bool_env("MONITORING_ALERTS_ENABLED", True),
            error_threshold=max(1, _get_int_env("MONITORING_ERROR_THRESHOLD", 10)),
            rate_limit_threshold=max(1, _get_int_env("MONITORING_RATE_LIMIT_THRESHOLD", 5)),
            sync_failure_threshold=max(1, _get_int_env("MONITORING_SYNC_FAILURE_THRESHOLD", 3)),
            window_seconds=max(60, _get_int_env("MONITORING_WINDOW_SECONDS", 3600)),
            event_capacity=max(10, _get_int_env("MONITORING_EVENT_CAPACITY", 1000)),
            webhook_url=_get_optional_str_env("MONITORING_WEBHOOK_URL"),
            email_recipients=_get_list_env("MONITORING_EMAIL_RECIPIENTS", ()),
        ),
        cache=CacheSettings(
            backend=_get_str_env("CACHE_BACKEND", "memory").lower(),
            redis_url=_get_str_env("REDIS_URL", "redis://localhost:6379/0"),
            key_prefix=_get_str_env("CACHE_KEY_PREFIX", "catalog_sync:"),
        ),
        catalog=CatalogSettings(backend=_get_str_env("CATALOG_BACKEND", "sql").lower()),
    )
