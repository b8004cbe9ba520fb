"""
catalog_sync/domain/sync_job.py

In-memory bookkeeping for synchronization runs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class SyncJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncJob:
    """
    One bookkeeping record for a bulk or per-entity sync run.

    Owned and mutated by a single orchestrator run; frozen once it reaches
    ``completed`` or ``failed``.
    """

    source: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: SyncJobStatus = SyncJobStatus.PENDING
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_discovered: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    scope: str = "full"

    @property
    def is_finished(self) -> bool:
        return self.status in (SyncJobStatus.COMPLETED, SyncJobStatus.FAILED)

    @property
    def duration_ms(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000.0

    def mark_running(self) -> None:
        self._ensure_open()
        self.status = SyncJobStatus.RUNNING

    def record(self, outcome: UpsertOutcome | None, error: str | None = None) -> None:
        """
        Account for one attempted entity.
        """

        self._ensure_open()
        self.records_processed += 1
        if outcome is UpsertOutcome.CREATED:
            self.records_created += 1
        elif outcome is UpsertOutcome.UPDATED:
            self.records_updated += 1
        if error:
            self.errors.append(error)

    def record_discovery(self, outcome: UpsertOutcome | None, error: str | None = None) -> None:
        """
        Account for one model found by discovery. These are not catalog entities
        attempted, so ``records_processed`` is left alone.
        """

        self._ensure_open()
        if outcome is UpsertOutcome.CREATED:
            self.records_discovered += 1
            self.records_created += 1
        elif outcome is UpsertOutcome.UPDATED:
            self.records_updated += 1
        if error:
            self.errors.append(error)

    def add_error(self, error: str) -> None:
        self._ensure_open()
        self.errors.append(error)

    def complete(self) -> None:
        self._ensure_open()
        self.status = SyncJobStatus.COMPLETED
        self.completed_at = _utcnow()

    def fail(self, error: str) -> None:
        self._ensure_open()
        self.errors.append(error)
        self.status = SyncJobStatus.FAILED
        self.completed_at = _utcnow()

    def summary(self) -> dict[str, object]:
        return {
            "id": self.id,
            "source": self.source,
            "scope": self.scope,
            "status": self.status.value,
            "records_processed": self.records_processed,
            "records_created": self.records_created,
            "records_updated": self.records_updated,
            "records_discovered": self.records_discovered,
            "errors": len(self.errors),
        }

    def _ensure_open(self) -> None:
        if self.is_finished:
            raise RuntimeError(f"Sync job {self.id} is already {self.status.value}.")
