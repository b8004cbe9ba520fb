"""
catalog_sync/services/integration_facade.py

Single entry point the rest of the application uses for external phone data.

``ExternalDataIntegration`` is constructed once at process start and handed to
its callers; it wires the source clients, fallback resolvers, sync orchestrator
and monitoring service together and owns the periodic-sync timer.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Any

import requests
from apscheduler.schedulers.background import BackgroundScheduler

from catalog_sync.cache.base import CacheStore
from catalog_sync.cache.memory import InMemoryCacheStore
from catalog_sync.catalog.base import CatalogEntity, CatalogStore
from catalog_sync.config import (
    KNOWN_SOURCES,
    SOURCE_PRICING,
    SOURCE_SPECS,
    IntegrationSettings,
)
from catalog_sync.connectors.base import BaseSourceClient
from catalog_sync.connectors.price_client import PriceTrackingClient
from catalog_sync.connectors.specs_client import SpecificationsClient
from catalog_sync.domain.monitoring import (
    ApiPerformanceMetrics,
    HealthReport,
    MonitoringEvent,
    MonitoringEventType,
    SyncMetrics,
)
from catalog_sync.domain.sync_job import SyncJob, SyncJobStatus
from catalog_sync.errors import ConfigurationError, SyncAlreadyRunningError, SyncRunError
from catalog_sync.logging_utils import log_event
from catalog_sync.scheduler.jobs import build_sync_scheduler
from catalog_sync.schemas.records import ExternalPhoneRecord, ExternalPriceRecord, natural_key
from catalog_sync.services.fallback_resolver import FallbackResolver
from catalog_sync.services.monitoring_service import MonitoringService
from catalog_sync.services.sync_orchestrator import SyncOrchestrator, SyncSource
from catalog_sync.static_data import STATIC_PHONES, STATIC_PRICES

logger = logging.getLogger(__name__)

ALTERNATE_SPECS_SOURCE = "specs_alternate"

SchedulerFactory = Callable[[Callable[[], object], int], BackgroundScheduler]


class AutoSyncState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class IntegrationHealth:
    report: HealthReport
    sources: dict[str, str]
    auto_sync: AutoSyncState
    sync_running: bool
    cache: str = "configured"
    fallback: list[dict[str, Any]] = field(default_factory=list)


class ExternalDataIntegration:
    """
    Facade over the external data sync and resilience layer.

    Point lookups (``get_phone_data``, ``get_price_data``, ``search_phones``)
    never raise. ``perform_full_sync`` raises only when the run as a whole
    produced no usable job.
    """

    def __init__(
        self,
        settings: IntegrationSettings,
        *,
        catalog: CatalogStore,
        cache: CacheStore | None = None,
        monitoring: MonitoringService | None = None,
        session: requests.Session | None = None,
        clients: dict[str, BaseSourceClient[Any]] | None = None,
        scheduler_factory: SchedulerFactory = build_sync_scheduler,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._cache = cache if cache is not None else InMemoryCacheStore()
        self._monitoring = monitoring or MonitoringService(settings.monitoring)
        self._scheduler_factory = scheduler_factory

        self._enabled_sources = self._validate_sources(settings, clients)
        self._clients: dict[str, BaseSourceClient[Any]] = (
            {
                name: client
                for name, client in clients.items()
                if name in self._enabled_sources or name == ALTERNATE_SPECS_SOURCE
            }
            if clients is not None
            else self._build_clients(settings, session, sleep)
        )
        self._alternate_specs = self._clients.pop(ALTERNATE_SPECS_SOURCE, None)
        self._source_status = {name: "configured" for name in self._clients}
        self._cache_status = "configured"

        fallback = settings.fallback
        self._phone_resolver: FallbackResolver[ExternalPhoneRecord] = FallbackResolver(
            namespace="phones",
            record_type=ExternalPhoneRecord,
            settings=fallback,
            cache=self._cache,
            monitoring=self._monitoring,
            static_records=STATIC_PHONES,
        )
        self._price_resolver: FallbackResolver[ExternalPriceRecord] = FallbackResolver(
            namespace="prices",
            record_type=ExternalPriceRecord,
            settings=fallback,
            cache=self._cache,
            monitoring=self._monitoring,
            static_records=STATIC_PRICES,
            ttl_seconds=min(fallback.cache_ttl_seconds, fallback.price_cache_ttl_seconds),
        )
        self._orchestrator = SyncOrchestrator(
            catalog=catalog,
            sources=self._build_sync_sources(),
            settings=settings.sync,
            monitoring=self._monitoring,
            sleep=sleep,
        )

        self._state_lock = threading.Lock()
        self._auto_sync_state = AutoSyncState.STOPPED
        self._scheduler: BackgroundScheduler | None = None
        self._initialized = False

    @property
    def monitoring(self) -> MonitoringService:
        return self._monitoring

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return self._orchestrator

    @property
    def auto_sync_state(self) -> AutoSyncState:
        return self._auto_sync_state

    @property
    def enabled_sources(self) -> list[str]:
        return list(self._clients)

    def initialize(self) -> None:
        """
        Check every enabled source once and start automatic sync if configured.

        Raises:
            ConfigurationError: a required source is unreachable.
        """

        if self._initialized:
            return

        required = set(self._settings.sync.required_sources)
        for name, client in self._clients.items():
            try:
                client.check_connectivity()
            except Exception as exc:
                if name in required:
                    logger.error("Required source unreachable at startup source=%s error=%s", name, exc)
                    raise ConfigurationError(
                        f"Required source {name!r} is unreachable: {exc}",
                        source=name,
                    ) from exc
                self._source_status[name] = "degraded"
                logger.warning("Optional source unreachable at startup source=%s error=%s", name, exc)
            else:
                self._source_status[name] = "available"

        if self._cache.ping():
            self._cache_status = "available"
        else:
            self._cache_status = "degraded"
            logger.warning("Cache backend unreachable at startup; lookups fall through to live and static tiers")

        self._initialized = True
        log_event(logger, logging.INFO, "integration_initialized", sources=self._source_status)

        if self._settings.sync.auto_start and self._settings.sync.sync_interval_seconds > 0:
            self.start_automatic_sync()

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    def get_phone_data(
        self,
        brand: str,
        model: str,
        timeout_seconds: float | None = None,
    ) -> ExternalPhoneRecord | None:
        if not brand.strip() or not model.strip():
            return None
        try:
            result = self._phone_resolver.resolve(
                natural_key(brand, model),
                self._phone_live_fetch(brand, model),
                alternate_fetch=self._alternate_phone_fetch(brand, model),
                prefer_cache=True,
                timeout_seconds=self._lookup_timeout(timeout_seconds),
            )
            return result.value if result.available else None
        except Exception:
            logger.exception("Phone lookup failed brand=%s model=%s", brand, model)
            return None

    def get_price_data(
        self,
        brand: str,
        model: str,
        variant: str | None = None,
        timeout_seconds: float | None = None,
    ) -> ExternalPriceRecord | None:
        if not brand.strip() or not model.strip():
            return None
        try:
            result = self._price_resolver.resolve(
                natural_key(brand, model, variant),
                self._price_live_fetch(brand, model, variant),
                prefer_cache=True,
                timeout_seconds=self._lookup_timeout(timeout_seconds),
            )
            return result.value if result.available else None
        except Exception:
            logger.exception("Price lookup failed brand=%s model=%s variant=%s", brand, model, variant)
            return None

    def search_phones(self, query: str) -> list[ExternalPhoneRecord]:
        """
        Search the specifications provider, falling back to bundled seed records.
        """

        query = query.strip()
        if not query:
            return []

        client = self._clients.get(SOURCE_SPECS)
        error: Exception | None = None
        if client is not None:
            try:
                return list(client.fetch_by_query(query))
            except Exception as exc:
                error = exc
                logger.warning("Phone search failed, serving static matches query=%s error=%s", query, exc)

        tokens = [token for token in query.lower().split() if token]
        matches = [
            record
            for record in STATIC_PHONES.values()
            if all(token in f"{record.brand} {record.model}".lower() for token in tokens)
        ]
        self._monitoring.log_event(
            MonitoringEventType.FALLBACK_ACTIVATED,
            SOURCE_SPECS,
            metadata={"operation": "search", "query": query, "final_tier": "static", "matches": len(matches)},
            error_message=str(error) if error is not None else None,
        )
        return matches

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def perform_full_sync(self) -> list[SyncJob]:
        """
        Run one full catalog sync and return its jobs.

        Raises:
            SyncAlreadyRunningError: a run is already in flight.
            SyncRunError: every job of the run failed.
        """

        jobs = self._orchestrator.start_full_sync()
        if not jobs or all(job.status is SyncJobStatus.FAILED for job in jobs):
            reasons = "; ".join(job.errors[-1] for job in jobs if job.errors) or "no sources enabled"
            raise SyncRunError(f"Full sync failed: {reasons}")
        return jobs

    def sync_phone_data(self, entity_id: str) -> bool:
        try:
            return self._orchestrator.sync_entity(entity_id)
        except Exception:
            logger.exception("Single-entity sync failed entity_id=%s", entity_id)
            return False

    def run_scheduled_sync(self) -> list[SyncJob] | None:
        """
        Timer tick. Skips (does not queue) when a run is already in flight.
        """

        try:
            return self.perform_full_sync()
        except SyncAlreadyRunningError:
            logger.warning("Scheduled sync skipped: previous run still in flight")
            return None
        except Exception:
            logger.exception("Scheduled sync failed")
            return None

    def start_automatic_sync(self, interval_seconds: int | None = None) -> bool:
        """
        Move automatic sync from stopped to running. Returns ``False`` if already running.
        """

        interval = interval_seconds if interval_seconds is not None else self._settings.sync.sync_interval_seconds
        if interval <= 0:
            raise ValueError("Automatic sync interval must be positive.")

        with self._state_lock:
            if self._auto_sync_state is AutoSyncState.RUNNING:
                logger.info("Automatic sync already running")
                return False
            scheduler = self._scheduler_factory(self.run_scheduled_sync, interval)
            scheduler.start()
            self._scheduler = scheduler
            self._auto_sync_state = AutoSyncState.RUNNING
        logger.info("Automatic sync started interval_seconds=%s", interval)
        return True

    def stop_automatic_sync(self) -> bool:
        """
        Move automatic sync from running to stopped. Returns ``False`` if already stopped.
        """

        with self._state_lock:
            if self._auto_sync_state is AutoSyncState.STOPPED:
                return False
            scheduler, self._scheduler = self._scheduler, None
            self._auto_sync_state = AutoSyncState.STOPPED
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("Automatic sync stopped")
        return True

    def get_job(self, job_id: str) -> SyncJob | None:
        return self._orchestrator.get_job(job_id)

    def list_jobs(self, limit: int | None = None) -> list[SyncJob]:
        return self._orchestrator.list_jobs(limit)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_health_status(self) -> IntegrationHealth:
        return IntegrationHealth(
            report=self._monitoring.generate_health_report(),
            sources=dict(self._source_status),
            auto_sync=self._auto_sync_state,
            sync_running=self._orchestrator.is_running,
            cache=self._cache_status,
            fallback=[self._phone_resolver.stats(), self._price_resolver.stats()],
        )

    def get_metrics(self) -> SyncMetrics:
        return self._monitoring.get_metrics()

    def get_api_performance_metrics(self, hours: float = 24) -> ApiPerformanceMetrics:
        return self._monitoring.get_api_performance_metrics(hours)

    def get_recent_events(self, hours: float = 24) -> list[MonitoringEvent]:
        since = self._monitoring.now() - timedelta(hours=hours)
        return self._monitoring.get_events(since=since)

    def clear_cache(self) -> int:
        removed = self._phone_resolver.clear_cache() + self._price_resolver.clear_cache()
        logger.info("Fallback caches cleared removed=%s", removed)
        return removed

    def shutdown(self) -> None:
        self.stop_automatic_sync()
        self._phone_resolver.shutdown()
        self._price_resolver.shutdown()
        clients = list(self._clients.values())
        if self._alternate_specs is not None:
            clients.append(self._alternate_specs)
        for client in clients:
            client.close()
        logger.info("External data integration shut down")

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_sources(
        settings: IntegrationSettings,
        clients: dict[str, BaseSourceClient[Any]] | None,
    ) -> list[str]:
        enabled = list(dict.fromkeys(settings.sync.enabled_sources))
        unknown = [name for name in enabled if name not in KNOWN_SOURCES]
        if unknown:
            raise ConfigurationError(f"Unknown sources enabled: {', '.join(unknown)}")

        if clients is not None:
            configured = {name for name in enabled if name in clients}
        else:
            source_settings = {SOURCE_SPECS: settings.specs, SOURCE_PRICING: settings.pricing}
            configured = {
                name
                for name in enabled
                if source_settings[name] is not None and source_settings[name].is_configured
            }

        for name in settings.sync.required_sources:
            if name not in enabled:
                raise ConfigurationError(f"Required source {name!r} is not enabled.", source=name)
            if name not in configured:
                raise ConfigurationError(f"Required source {name!r} has no credentials.", source=name)

        if not configured:
            raise ConfigurationError("At least one enabled source must be configured with credentials.")

        for name in enabled:
            if name not in configured:
                logger.warning("Enabled source has no credentials and will be skipped source=%s", name)
        return [name for name in enabled if name in configured]

    def _build_clients(
        self,
        settings: IntegrationSettings,
        session: requests.Session | None,
        sleep: Callable[[float], None],
    ) -> dict[str, BaseSourceClient[Any]]:
        clients: dict[str, BaseSourceClient[Any]] = {}
        if SOURCE_SPECS in self._enabled_sources and settings.specs is not None:
            clients[SOURCE_SPECS] = SpecificationsClient(
                settings=settings.specs,
                monitoring=self._monitoring,
                session=session,
                sleep=sleep,
            )
        if SOURCE_PRICING in self._enabled_sources and settings.pricing is not None:
            clients[SOURCE_PRICING] = PriceTrackingClient(
                settings=settings.pricing,
                monitoring=self._monitoring,
                session=session,
                sleep=sleep,
            )
        alternate = settings.alternate_specs
        if settings.fallback.enable_alternate_source and alternate is not None and alternate.is_configured:
            # The alternate tier is tried once, without retries.
            clients[ALTERNATE_SPECS_SOURCE] = SpecificationsClient(
                settings=replace(alternate, max_attempts=1),
                source=ALTERNATE_SPECS_SOURCE,
                monitoring=self._monitoring,
                session=session,
                sleep=sleep,
            )
        return clients

    def _build_sync_sources(self) -> list[SyncSource]:
        sources: list[SyncSource] = []
        specs = self._clients.get(SOURCE_SPECS)
        if isinstance(specs, SpecificationsClient):
            sources.append(
                SyncSource(
                    name=SOURCE_SPECS,
                    resolve=lambda entity: self._phone_resolver.resolve(
                        entity.natural_key,
                        self._entity_phone_fetch(specs, entity),
                        alternate_fetch=self._alternate_phone_fetch(entity.brand, entity.model, entity.variant),
                    ),
                    write=self._catalog.upsert_phone,
                    discover=specs.fetch_by_brand,
                )
            )
        pricing = self._clients.get(SOURCE_PRICING)
        if isinstance(pricing, PriceTrackingClient):
            sources.append(
                SyncSource(
                    name=SOURCE_PRICING,
                    resolve=lambda entity: self._price_resolver.resolve(
                        entity.natural_key,
                        lambda: pricing.get_phone_prices(entity.brand, entity.model, entity.variant),
                    ),
                    write=self._catalog.upsert_price,
                )
            )
        return sources

    @staticmethod
    def _entity_phone_fetch(
        client: SpecificationsClient,
        entity: CatalogEntity,
    ) -> Callable[[], ExternalPhoneRecord | None]:
        if entity.external_id:
            return lambda: client.fetch_by_id(entity.external_id or "")
        return lambda: client.find_phone(entity.brand, entity.model, entity.variant)

    def _alternate_phone_fetch(
        self,
        brand: str,
        model: str,
        variant: str | None = None,
    ) -> Callable[[], ExternalPhoneRecord | None] | None:
        alternate = self._alternate_specs
        if not isinstance(alternate, SpecificationsClient):
            return None
        return lambda: alternate.find_phone(brand, model, variant)

    def _phone_live_fetch(self, brand: str, model: str) -> Callable[[], ExternalPhoneRecord | None]:
        client = self._clients.get(SOURCE_SPECS)
        if not isinstance(client, SpecificationsClient):
            return _unconfigured(SOURCE_SPECS)
        return lambda: client.find_phone(brand, model)

    def _price_live_fetch(
        self,
        brand: str,
        model: str,
        variant: str | None,
    ) -> Callable[[], ExternalPriceRecord | None]:
        client = self._clients.get(SOURCE_PRICING)
        if not isinstance(client, PriceTrackingClient):
            return _unconfigured(SOURCE_PRICING)
        return lambda: client.get_phone_prices(brand, model, variant)

    def _lookup_timeout(self, timeout_seconds: float | None) -> float | None:
        if timeout_seconds is not None:
            return timeout_seconds
        return self._settings.fallback.lookup_timeout_seconds


def _unconfigured(source: str) -> Callable[[], Any]:
    def fetch() -> Any:
        raise ConfigurationError(f"Source {source!r} is not configured.", source=source)

    return fetch
