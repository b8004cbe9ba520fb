"""
catalog_sync/domain/monitoring.py

Monitoring event, metrics and health report models.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class MonitoringEventType(str, Enum):
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"
    API_REQUEST = "api_request"
    API_ERROR = "api_error"
    RATE_LIMITED = "rate_limited"
    VALIDATION_ERROR = "validation_error"
    FALLBACK_ACTIVATED = "fallback_activated"
    LOOKUP_SERVED = "lookup_served"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class MonitoringEvent:
    type: MonitoringEventType
    source: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None
    error_message: str | None = None
    duration_ms: float | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class HealthReport:
    """
    Point-in-time verdict derived from the active window's counters.
    """

    status: HealthStatus
    error_rate: float
    error_count: int
    rate_limit_hit_count: int
    sync_failure_count: int
    last_sync_at: datetime | None
    window_started_at: datetime
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncMetrics:
    """
    Lifetime totals since the monitoring service started.
    """

    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    average_duration_ms: float = 0.0
    last_sync_time: datetime | None = None
    api_requests_count: int = 0
    api_errors_count: int = 0
    rate_limit_hits: int = 0
    fallback_activations: int = 0


@dataclass(frozen=True)
class ApiPerformanceMetrics:
    """
    Request latency and failure figures over a trailing window of hours.

    error_rate is api_error events per hundred api_request events, rounded to
    two places.
    """

    total_requests: int
    average_response_time_ms: float
    error_rate: float
    requests_by_source: dict[str, int] = field(default_factory=dict)
    slowest_requests: tuple[MonitoringEvent, ...] = ()


@dataclass(frozen=True)
class Alert:
    counter: str
    value: int
    threshold: int
    message: str
    triggered_at: datetime
    event: MonitoringEvent | None = None


class EventReporter(Protocol):
    """
    Narrow reporting interface handed to clients and resolvers.
    """

    def log_event(
        self,
        event_type: MonitoringEventType,
        source: str,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> MonitoringEvent:
        ...
