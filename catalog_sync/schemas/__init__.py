"""
catalog_sync/schemas package marker.
"""

from catalog_sync.schemas.records import (
    ExternalPhoneRecord,
    ExternalPriceRecord,
    PhoneSpecifications,
    Pricing,
    RetailerOffer,
    natural_key,
)
from catalog_sync.schemas.api import (
    CacheClearResponse,
    EntitySyncResponse,
    FullSyncResponse,
    HealthReportResponse,
    MonitoringEventListResponse,
    MonitoringEventResponse,
    SyncHealthResponse,
    SyncJobListResponse,
    SyncJobResponse,
    SyncMetricsResponse,
)

__all__ = [
    "CacheClearResponse",
    "EntitySyncResponse",
    "FullSyncResponse",
    "HealthReportResponse",
    "MonitoringEventListResponse",
    "MonitoringEventResponse",
    "SyncHealthResponse",
    "SyncJobListResponse",
    "SyncJobResponse",
    "SyncMetricsResponse",
    "ExternalPhoneRecord",
    "ExternalPriceRecord",
    "PhoneSpecifications",
    "Pricing",
    "RetailerOffer",
    "natural_key",
]
