"""
catalog_sync/services/sync_orchestrator.py

Bulk and per-entity catalog synchronization with sync-job bookkeeping.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from catalog_sync.catalog.base import CatalogEntity, CatalogStore
from catalog_sync.config import SyncSettings
from catalog_sync.domain.fallback import FallbackResult, Tier
from catalog_sync.domain.monitoring import EventReporter, MonitoringEventType
from catalog_sync.domain.sync_job import SyncJob, SyncJobStatus, UpsertOutcome
from catalog_sync.errors import (
    SourceTimeoutError,
    SourceUnreachableError,
    SyncAlreadyRunningError,
    SyncRunError,
    error_class_of,
)
from catalog_sync.logging_utils import log_event

logger = logging.getLogger(__name__)

CONNECTIVITY_ERRORS = (SourceUnreachableError, SourceTimeoutError)


@dataclass(frozen=True)
class SyncSource:
    """
    How one provider participates in a sync run.

    ``resolve`` looks an entity up through the fallback resolver, ``write``
    applies a live record to the catalog, and ``discover`` (optional) lists a
    brand's models for new-model discovery.
    """

    name: str
    resolve: Callable[[CatalogEntity], FallbackResult[Any]]
    write: Callable[[Any], UpsertOutcome]
    discover: Callable[[str], Sequence[Any]] | None = None


@dataclass(frozen=True)
class _EntityOutcome:
    upsert: UpsertOutcome | None = None
    error: str | None = None
    connectivity_lost: bool = False


class SyncOrchestrator:
    """
    Drives full catalog sweeps and single-entity refreshes.

    Only one full sync may run at a time; the in-flight flag is a lock taken
    without blocking. Entities within a batch run on a bounded worker pool and
    their outcomes are folded into the job on the orchestrating thread.
    """

    def __init__(
        self,
        *,
        catalog: CatalogStore,
        sources: Sequence[SyncSource],
        settings: SyncSettings,
        monitoring: EventReporter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._catalog = catalog
        self._sources = list(sources)
        self._settings = settings
        self._monitoring = monitoring
        self._sleep = sleep
        self._run_lock = threading.Lock()
        self._jobs_lock = threading.Lock()
        self._jobs: OrderedDict[str, SyncJob] = OrderedDict()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self._sources]

    def start_full_sync(self) -> list[SyncJob]:
        """
        Sweep the whole catalog once per source and return one job per source.

        Raises:
            SyncAlreadyRunningError: another full sync is in flight.
        """

        if not self._run_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError("A full sync is already running.")
        try:
            log_event(logger, logging.INFO, "full_sync_started", sources=self.source_names)
            jobs = [self._run_full_job(source) for source in self._sources]
            log_event(
                logger,
                logging.INFO,
                "full_sync_finished",
                jobs=[job.summary() for job in jobs],
            )
            return jobs
        finally:
            self._run_lock.release()

    def sync_entity(self, entity_id: str) -> bool:
        """
        Refresh one catalog entity from every source.

        Returns ``False`` when the entity is unknown or any source reported an error.
        """

        entity = self._catalog.get_entity(entity_id)
        if entity is None:
            logger.warning("Sync requested for unknown catalog entity entity_id=%s", entity_id)
            return False

        succeeded = True
        for source in self._sources:
            job = self._open_job(source.name, scope="entity", entity_count=1)
            outcome = self._sync_one(source, entity)
            job.record(outcome.upsert, outcome.error)
            self._close_job(job)
            if outcome.error:
                succeeded = False
        return succeeded

    def get_job(self, job_id: str) -> SyncJob | None:
        with self._jobs_lock:
            return self._jobs.get(job_id)

    def list_jobs(self, limit: int | None = None) -> list[SyncJob]:
        """
        Return remembered jobs, newest first.
        """

        with self._jobs_lock:
            jobs = list(reversed(self._jobs.values()))
        return jobs if limit is None else jobs[: max(0, limit)]

    def _run_full_job(self, source: SyncSource) -> SyncJob:
        job = self._open_job(source.name, scope="full")
        try:
            entities = list(self._catalog.list_entities())
            batch_size = max(1, self._settings.batch_size)
            batches = [entities[start : start + batch_size] for start in range(0, len(entities), batch_size)]
            workers = max(1, self._settings.max_concurrency)

            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"sync-{source.name}") as pool:
                for index, batch in enumerate(batches):
                    if index > 0 and self._settings.batch_delay_seconds > 0:
                        self._sleep(self._settings.batch_delay_seconds)
                    outcomes = list(pool.map(lambda entity: self._sync_one(source, entity), batch))
                    for outcome in outcomes:
                        job.record(outcome.upsert, outcome.error)
                    if all(outcome.connectivity_lost for outcome in outcomes):
                        raise SyncRunError(
                            f"{source.name}: lost connectivity for every entity in batch "
                            f"{index + 1}/{len(batches)}."
                        )
                    logger.debug(
                        "Sync batch finished source=%s batch=%s/%s processed=%s",
                        source.name,
                        index + 1,
                        len(batches),
                        job.records_processed,
                    )

            if source.discover is not None and self._settings.discover_new_models:
                self._discover_new_models(source, entities, job)
        except Exception as exc:
            logger.exception("Full sync failed source=%s job_id=%s", source.name, job.id)
            self._close_job(job, error=f"{error_class_of(exc)}: {exc}")
            return job

        self._close_job(job)
        return job

    def _sync_one(self, source: SyncSource, entity: CatalogEntity) -> _EntityOutcome:
        try:
            result = source.resolve(entity)
            if result.tier is Tier.LIVE and result.value is not None:
                return _EntityOutcome(upsert=source.write(result.value))
            if result.not_found:
                logger.info(
                    "Entity not found at source source=%s key=%s",
                    source.name,
                    entity.natural_key,
                )
                return _EntityOutcome()

            error_class = error_class_of(result.error) if result.error is not None else "Unavailable"
            return _EntityOutcome(
                error=(
                    f"{entity.natural_key}: {error_class}: {result.error} "
                    f"(served {result.tier.value}, not written)"
                ),
                connectivity_lost=isinstance(result.error, CONNECTIVITY_ERRORS),
            )
        except Exception as exc:
            logger.exception(
                "Entity sync failed source=%s key=%s",
                source.name,
                entity.natural_key,
            )
            return _EntityOutcome(error=f"{entity.natural_key}: {error_class_of(exc)}: {exc}")

    def _discover_new_models(
        self,
        source: SyncSource,
        entities: Sequence[CatalogEntity],
        job: SyncJob,
    ) -> None:
        known_keys = {entity.natural_key for entity in entities}
        brands = sorted({entity.brand for entity in entities})
        for brand in brands:
            try:
                candidates = source.discover(brand) if source.discover else []
            except Exception as exc:
                logger.warning("Model discovery failed source=%s brand=%s error=%s", source.name, brand, exc)
                job.add_error(f"discover {brand}: {error_class_of(exc)}: {exc}")
                continue

            for record in candidates:
                if record.natural_key in known_keys:
                    continue
                known_keys.add(record.natural_key)
                try:
                    job.record_discovery(source.write(record))
                except Exception as exc:
                    logger.exception("Discovered model write failed key=%s", record.natural_key)
                    job.record_discovery(None, f"{record.natural_key}: {error_class_of(exc)}: {exc}")

    def _open_job(self, source: str, *, scope: str, entity_count: int | None = None) -> SyncJob:
        job = SyncJob(source=source, scope=scope)
        job.mark_running()
        with self._jobs_lock:
            self._jobs[job.id] = job
            while len(self._jobs) > max(1, self._settings.job_history_limit):
                self._jobs.popitem(last=False)
        self._report(
            MonitoringEventType.SYNC_STARTED,
            source,
            metadata={"job_id": job.id, "scope": scope, "entities": entity_count},
        )
        return job

    def _close_job(self, job: SyncJob, *, error: str | None = None) -> None:
        if error is None:
            job.complete()
        else:
            job.fail(error)

        summary = job.summary()
        if job.status is SyncJobStatus.COMPLETED:
            self._report(
                MonitoringEventType.SYNC_COMPLETED,
                job.source,
                metadata=summary,
                duration_ms=job.duration_ms,
            )
        else:
            self._report(
                MonitoringEventType.SYNC_FAILED,
                job.source,
                metadata=summary,
                error_message=error,
                duration_ms=job.duration_ms,
            )
        log_event(logger, logging.INFO, "sync_job_finished", duration_ms=job.duration_ms, **summary)

    def _report(
        self,
        event_type: MonitoringEventType,
        source: str,
        *,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self._monitoring is None:
            return
        self._monitoring.log_event(
            event_type,
            source,
            metadata=metadata,
            error_message=error_message,
            duration_ms=duration_ms,
        )
