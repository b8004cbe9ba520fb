"""
catalog_sync/domain package marker.
"""

from catalog_sync.domain.fallback import FallbackEntry, FallbackResult, Tier
from catalog_sync.domain.monitoring import (
    Alert,
    EventReporter,
    HealthReport,
    HealthStatus,
    MonitoringEvent,
    MonitoringEventType,
    SyncMetrics,
)
from catalog_sync.domain.sync_job import SyncJob, SyncJobStatus, UpsertOutcome

__all__ = [
    "Alert",
    "EventReporter",
    "FallbackEntry",
    "FallbackResult",
    "HealthReport",
    "HealthStatus",
    "MonitoringEvent",
    "MonitoringEventType",
    "SyncJob",
    "SyncJobStatus",
    "SyncMetrics",
    "Tier",
    "UpsertOutcome",
]
