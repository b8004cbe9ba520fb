"""
catalog_sync/api/dependencies.py

Shared FastAPI dependencies for the sync endpoints.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from catalog_sync.services.integration_facade import ExternalDataIntegration


def get_integration(request: Request) -> ExternalDataIntegration:
    """
    Return the integration facade created at application startup.
    """

    integration = getattr(request.app.state, "integration", None)
    if integration is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="External data integration is not initialized.",
        )
    return integration
