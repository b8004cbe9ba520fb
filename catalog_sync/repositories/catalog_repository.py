"""
catalog_sync/repositories/catalog_repository.py

SQLAlchemy-backed catalog store over the ``catalog_phones`` table.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from catalog_sync.catalog.base import CatalogEntity
from catalog_sync.domain.sync_job import UpsertOutcome
from catalog_sync.retry import RetryPolicy, retry_with_backoff
from catalog_sync.schemas.records import ExternalPhoneRecord, ExternalPriceRecord, natural_key
from db.models.catalog_phone import CatalogPhone

logger = logging.getLogger(__name__)

DEFAULT_WRITE_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    backoff_initial_seconds=0.5,
    backoff_multiplier=2.0,
    max_backoff_seconds=5.0,
)


def _is_transient_db_error(exc: Exception) -> bool:
    return isinstance(exc, OperationalError)


class SQLAlchemyCatalogStore:
    """
    Catalog writer applying normalized records as natural-key upserts.

    Every call opens its own short-lived session so the store is safe to share
    between sync worker threads. Transient ``OperationalError`` failures are
    retried with the shared backoff utility.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        retry_policy: RetryPolicy = DEFAULT_WRITE_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._retry_policy = retry_policy
        self._sleep = sleep

    def list_entities(self) -> list[CatalogEntity]:
        def operation() -> list[CatalogEntity]:
            with self._session_factory() as session:
                stmt = select(CatalogPhone).order_by(CatalogPhone.brand, CatalogPhone.model, CatalogPhone.variant)
                return [_to_entity(row) for row in session.scalars(stmt).all()]

        return self._with_retry(operation, "list_entities")

    def get_entity(self, entity_id: str) -> CatalogEntity | None:
        try:
            row_id = uuid.UUID(str(entity_id))
        except ValueError:
            return None

        def operation() -> CatalogEntity | None:
            with self._session_factory() as session:
                row = session.get(CatalogPhone, row_id)
                return None if row is None else _to_entity(row)

        return self._with_retry(operation, "get_entity")

    def upsert_phone(self, record: ExternalPhoneRecord) -> UpsertOutcome:
        values: dict[str, Any] = {
            "external_id": record.external_id,
            "availability": record.availability,
            "launch_date": record.launch_date,
            "specifications": record.specifications.model_dump(mode="json"),
            "images": list(record.images),
        }
        if record.pricing is not None:
            values.update(
                mrp=record.pricing.mrp,
                current_price=record.pricing.current_price,
                currency=record.pricing.currency,
            )
        return self._upsert(record.brand, record.model, record.variant, values, "specs_synced_at")

    def upsert_price(self, record: ExternalPriceRecord) -> UpsertOutcome:
        values: dict[str, Any] = {
            "price_external_id": record.external_id,
            "currency": record.currency,
            "lowest_price": record.lowest_price,
            "average_price": record.average_price,
            "highest_price": record.highest_price,
            "offers": [offer.model_dump(mode="json") for offer in record.offers],
        }
        return self._upsert(record.brand, record.model, record.variant, values, "prices_synced_at")

    def _upsert(
        self,
        brand: str,
        model: str,
        variant: str | None,
        values: dict[str, Any],
        synced_at_column: str,
    ) -> UpsertOutcome:
        variant_value = variant or ""
        key = natural_key(brand, model, variant)

        def operation() -> UpsertOutcome:
            with self._session_factory() as session, session.begin():
                stmt = select(CatalogPhone).where(CatalogPhone.natural_key == key)
                row = session.scalars(stmt).one_or_none()
                now = datetime.now(timezone.utc)
                if row is None:
                    session.add(
                        CatalogPhone(
                            brand=brand,
                            model=model,
                            variant=variant_value,
                            natural_key=key,
                            **values,
                            **{synced_at_column: now},
                        )
                    )
                    return UpsertOutcome.CREATED

                changed = {column: value for column, value in values.items() if getattr(row, column) != value}
                setattr(row, synced_at_column, now)
                if not changed:
                    return UpsertOutcome.UNCHANGED
                for column, value in changed.items():
                    setattr(row, column, value)
                return UpsertOutcome.UPDATED

        return self._with_retry(operation, f"upsert {brand} {model}")

    def _with_retry(self, operation: Callable[[], Any], description: str) -> Any:
        return retry_with_backoff(
            operation,
            policy=self._retry_policy,
            is_retryable=_is_transient_db_error,
            sleep=self._sleep,
            description=f"catalog {description}",
        )


def _to_entity(row: CatalogPhone) -> CatalogEntity:
    return CatalogEntity(
        id=str(row.id),
        brand=row.brand,
        model=row.model,
        variant=row.variant or None,
        external_id=row.external_id,
    )
