"""
catalog_sync/services package marker.
"""

from catalog_sync.services.fallback_resolver import FallbackResolver
from catalog_sync.services.integration_facade import (
    AutoSyncState,
    ExternalDataIntegration,
    IntegrationHealth,
)
from catalog_sync.services.monitoring_service import (
    LoggingAlertNotifier,
    MonitoringService,
    WebhookAlertNotifier,
)
from catalog_sync.services.sync_orchestrator import SyncOrchestrator, SyncSource

__all__ = [
    "AutoSyncState",
    "ExternalDataIntegration",
    "FallbackResolver",
    "IntegrationHealth",
    "LoggingAlertNotifier",
    "MonitoringService",
    "SyncOrchestrator",
    "SyncSource",
    "WebhookAlertNotifier",
]
