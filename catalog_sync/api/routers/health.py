"""
catalog_sync/api/routers/health.py

Health, metrics and event log endpoints for the sync subsystem.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from catalog_sync.api.dependencies import get_integration
from catalog_sync.schemas.api import (
    ApiPerformanceResponse,
    HealthReportResponse,
    MonitoringEventListResponse,
    MonitoringEventResponse,
    SyncHealthResponse,
    SyncMetricsResponse,
)
from catalog_sync.services.integration_facade import ExternalDataIntegration

router = APIRouter(tags=["sync-health"])


@router.get("/health/sync", response_model=SyncHealthResponse)
def get_sync_health(
    integration: ExternalDataIntegration = Depends(get_integration),
) -> SyncHealthResponse:
    """
    Return the current health verdict with per-source and scheduler state.
    """

    health = integration.get_health_status()
    report = health.report
    return SyncHealthResponse(
        health=HealthReportResponse(
            status=report.status,
            error_rate=report.error_rate,
            error_count=report.error_count,
            rate_limit_hit_count=report.rate_limit_hit_count,
            sync_failure_count=report.sync_failure_count,
            last_sync_at=report.last_sync_at,
            window_started_at=report.window_started_at,
            issues=list(report.issues),
        ),
        sources=health.sources,
        auto_sync=health.auto_sync.value,
        sync_running=health.sync_running,
        cache=health.cache,
        fallback=health.fallback,
    )


@router.get("/sync/metrics", response_model=SyncMetricsResponse)
def get_sync_metrics(
    integration: ExternalDataIntegration = Depends(get_integration),
) -> SyncMetricsResponse:
    return SyncMetricsResponse.from_metrics(integration.get_metrics())


@router.get("/sync/metrics/api", response_model=ApiPerformanceResponse)
def get_api_performance(
    hours: float = Query(default=24, gt=0, le=24 * 30, description="Look-back window in hours"),
    integration: ExternalDataIntegration = Depends(get_integration),
) -> ApiPerformanceResponse:
    """
    Request counts by source, average latency, error rate and the slowest requests.
    """

    return ApiPerformanceResponse.from_metrics(integration.get_api_performance_metrics(hours), hours)


@router.get("/sync/events", response_model=MonitoringEventListResponse)
def get_sync_events(
    hours: float = Query(default=24, gt=0, le=24 * 30, description="Look-back window in hours"),
    integration: ExternalDataIntegration = Depends(get_integration),
) -> MonitoringEventListResponse:
    events = [MonitoringEventResponse.from_event(event) for event in integration.get_recent_events(hours)]
    return MonitoringEventListResponse(events=events, count=len(events))
