"""
catalog_sync/api/routers/sync.py

Admin and cron trigger endpoints for catalog synchronization.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalog_sync.api.dependencies import get_integration
from catalog_sync.errors import SyncAlreadyRunningError, SyncRunError
from catalog_sync.schemas.api import (
    CacheClearResponse,
    EntitySyncResponse,
    FullSyncResponse,
    SyncJobListResponse,
    SyncJobResponse,
)
from catalog_sync.services.integration_facade import ExternalDataIntegration

router = APIRouter(tags=["sync"])


@router.post("/sync", response_model=FullSyncResponse)
def trigger_full_sync(
    integration: ExternalDataIntegration = Depends(get_integration),
) -> FullSyncResponse:
    """
    Run one full catalog sync synchronously and return its jobs.
    """

    try:
        jobs = integration.perform_full_sync()
    except SyncAlreadyRunningError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except SyncRunError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return FullSyncResponse(jobs=[SyncJobResponse.from_job(job) for job in jobs])


@router.post("/sync/phone/{entity_id}", response_model=EntitySyncResponse)
def trigger_entity_sync(
    entity_id: str,
    integration: ExternalDataIntegration = Depends(get_integration),
) -> EntitySyncResponse:
    return EntitySyncResponse(entity_id=entity_id, success=integration.sync_phone_data(entity_id))


@router.get("/sync/jobs", response_model=SyncJobListResponse)
def list_sync_jobs(
    limit: int = Query(default=20, ge=1, le=100, description="Maximum jobs to return"),
    integration: ExternalDataIntegration = Depends(get_integration),
) -> SyncJobListResponse:
    jobs = [SyncJobResponse.from_job(job) for job in integration.list_jobs(limit)]
    return SyncJobListResponse(jobs=jobs, count=len(jobs))


@router.get("/sync/jobs/{job_id}", response_model=SyncJobResponse)
def get_sync_job(
    job_id: str,
    integration: ExternalDataIntegration = Depends(get_integration),
) -> SyncJobResponse:
    job = integration.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Sync job {job_id} not found.",
        )
    return SyncJobResponse.from_job(job)


@router.delete("/sync/cache", response_model=CacheClearResponse)
def clear_sync_cache(
    integration: ExternalDataIntegration = Depends(get_integration),
) -> CacheClearResponse:
    return CacheClearResponse(removed=integration.clear_cache())
