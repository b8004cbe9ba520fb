"""
catalog_sync/main.py

Process entry point for the sync service.

Run with ``uvicorn catalog_sync.main:create_app --factory``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine

from catalog_sync.cache import build_cache_store
from catalog_sync.catalog.base import CatalogStore
from catalog_sync.catalog.memory import InMemoryCatalogStore
from catalog_sync.config import IntegrationSettings, get_integration_settings
from catalog_sync.errors import ConfigurationError
from catalog_sync.repositories.catalog_repository import SQLAlchemyCatalogStore
from catalog_sync.services.integration_facade import ExternalDataIntegration
from catalog_sync.services.monitoring_service import MonitoringService

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db(engine: Engine) -> None:
    """Run SELECT 1. Raises RuntimeError if the catalog database is unreachable."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Catalog database unavailable.") from exc


def build_catalog_store(settings: IntegrationSettings) -> CatalogStore:
    """
    Build the configured catalog store.

    The SQL backend creates the ``catalog_phones`` table when it is missing.
    """

    backend = settings.catalog.backend.strip().lower()
    if backend == "memory":
        logger.warning("Using in-memory catalog store; catalog writes are not persisted")
        return InMemoryCatalogStore()
    if backend != "sql":
        raise ConfigurationError(f"Unsupported catalog backend: {settings.catalog.backend!r}")

    import db.models  # noqa: F401  registers ORM models on Base.metadata
    from db.base import Base
    from db.session import build_session_factory, create_db_engine

    engine = create_db_engine()
    _check_db(engine)
    Base.metadata.create_all(engine)
    logger.info("Catalog database connectivity confirmed")
    return SQLAlchemyCatalogStore(build_session_factory(engine))


def build_integration(settings: IntegrationSettings | None = None) -> ExternalDataIntegration:
    """
    Wire the integration facade from settings. Called once per process.
    """

    settings = settings or get_integration_settings()
    return ExternalDataIntegration(
        settings,
        catalog=build_catalog_store(settings),
        cache=build_cache_store(settings.cache),
        monitoring=MonitoringService(settings.monitoring),
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Check sources and start automatic sync on boot; stop everything on exit."""
    integration: ExternalDataIntegration = application.state.integration
    integration.initialize()
    logger.info("External data integration ready sources=%s", integration.enabled_sources)
    try:
        yield
    finally:
        integration.shutdown()


def create_app(integration: ExternalDataIntegration | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _configure_logging()

    application = FastAPI(
        title="Catalog Sync API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    application.state.integration = integration or build_integration()

    from catalog_sync.api.routers import health_router, sync_router

    application.include_router(health_router)
    application.include_router(sync_router)

    return application
