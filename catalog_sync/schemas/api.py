"""
catalog_sync/schemas/api.py

Response schemas for the sync and health HTTP endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalog_sync.domain.monitoring import ApiPerformanceMetrics, HealthStatus, MonitoringEvent, SyncMetrics
from catalog_sync.domain.sync_job import SyncJob, SyncJobStatus


class HealthReportResponse(BaseModel):
    status: HealthStatus
    error_rate: float = Field(..., ge=0.0, le=1.0)
    error_count: int = Field(..., ge=0)
    rate_limit_hit_count: int = Field(..., ge=0)
    sync_failure_count: int = Field(..., ge=0)
    last_sync_at: datetime | None = None
    window_started_at: datetime
    issues: list[str] = Field(default_factory=list)


class SyncHealthResponse(BaseModel):
    """
    Health verdict plus per-source and scheduler state.
    """

    health: HealthReportResponse
    sources: dict[str, str]
    auto_sync: str
    sync_running: bool
    cache: str = "configured"
    fallback: list[dict[str, Any]] = Field(default_factory=list)


class SyncJobResponse(BaseModel):
    id: str
    source: str
    scope: str
    status: SyncJobStatus
    records_processed: int = Field(..., ge=0)
    records_created: int = Field(..., ge=0)
    records_updated: int = Field(..., ge=0)
    records_discovered: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float | None = None

    @classmethod
    def from_job(cls, job: SyncJob) -> SyncJobResponse:
        return cls(
            id=job.id,
            source=job.source,
            scope=job.scope,
            status=job.status,
            records_processed=job.records_processed,
            records_created=job.records_created,
            records_updated=job.records_updated,
            records_discovered=job.records_discovered,
            errors=list(job.errors),
            started_at=job.started_at,
            completed_at=job.completed_at,
            duration_ms=job.duration_ms,
        )


class FullSyncResponse(BaseModel):
    jobs: list[SyncJobResponse]


class EntitySyncResponse(BaseModel):
    entity_id: str
    success: bool


class SyncJobListResponse(BaseModel):
    jobs: list[SyncJobResponse]
    count: int = Field(..., ge=0)


class MonitoringEventResponse(BaseModel):
    id: str
    type: str
    source: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None
    error_message: str | None = None
    duration_ms: float | None = None

    @classmethod
    def from_event(cls, event: MonitoringEvent) -> MonitoringEventResponse:
        return cls(
            id=event.id,
            type=event.type.value,
            source=event.source,
            timestamp=event.timestamp,
            metadata=event.metadata,
            error_message=event.error_message,
            duration_ms=event.duration_ms,
        )


class MonitoringEventListResponse(BaseModel):
    events: list[MonitoringEventResponse]
    count: int = Field(..., ge=0)


class SyncMetricsResponse(BaseModel):
    total_syncs: int = Field(..., ge=0)
    successful_syncs: int = Field(..., ge=0)
    failed_syncs: int = Field(..., ge=0)
    average_duration_ms: float = Field(..., ge=0.0)
    last_sync_time: datetime | None = None
    api_requests_count: int = Field(..., ge=0)
    api_errors_count: int = Field(..., ge=0)
    rate_limit_hits: int = Field(..., ge=0)
    fallback_activations: int = Field(..., ge=0)

    @classmethod
    def from_metrics(cls, metrics: SyncMetrics) -> SyncMetricsResponse:
        return cls(
            total_syncs=metrics.total_syncs,
            successful_syncs=metrics.successful_syncs,
            failed_syncs=metrics.failed_syncs,
            average_duration_ms=metrics.average_duration_ms,
            last_sync_time=metrics.last_sync_time,
            api_requests_count=metrics.api_requests_count,
            api_errors_count=metrics.api_errors_count,
            rate_limit_hits=metrics.rate_limit_hits,
            fallback_activations=metrics.fallback_activations,
        )


class ApiPerformanceResponse(BaseModel):
    hours: float = Field(..., gt=0)
    total_requests: int = Field(..., ge=0)
    average_response_time_ms: float = Field(..., ge=0.0)
    error_rate: float = Field(..., ge=0.0)
    requests_by_source: dict[str, int] = Field(default_factory=dict)
    slowest_requests: list[MonitoringEventResponse] = Field(default_factory=list)

    @classmethod
    def from_metrics(cls, metrics: ApiPerformanceMetrics, hours: float) -> ApiPerformanceResponse:
        return cls(
            hours=hours,
            total_requests=metrics.total_requests,
            average_response_time_ms=metrics.average_response_time_ms,
            error_rate=metrics.error_rate,
            requests_by_source=metrics.requests_by_source,
            slowest_requests=[MonitoringEventResponse.from_event(event) for event in metrics.slowest_requests],
        )


class CacheClearResponse(BaseModel):
    removed: int = Field(..., ge=0)
