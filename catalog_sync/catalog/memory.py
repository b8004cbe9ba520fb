"""
catalog_sync/catalog/memory.py

Dict-backed catalog store used for local runs and tests.
"""

from __future__ import annotations

import threading
import uuid

from catalog_sync.catalog.base import CatalogEntity
from catalog_sync.domain.sync_job import UpsertOutcome
from catalog_sync.schemas.records import ExternalPhoneRecord, ExternalPriceRecord, natural_key


class InMemoryCatalogStore:
    """
    Upserts are keyed by natural key so repeated writes never create duplicates.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entities: dict[str, CatalogEntity] = {}
        self._ids_by_key: dict[str, str] = {}
        self._phones: dict[str, ExternalPhoneRecord] = {}
        self._prices: dict[str, ExternalPriceRecord] = {}

    def add_entity(
        self,
        brand: str,
        model: str,
        variant: str | None = None,
        *,
        external_id: str | None = None,
        entity_id: str | None = None,
    ) -> CatalogEntity:
        with self._lock:
            return self._ensure_entity(brand, model, variant, external_id, entity_id)[0]

    def list_entities(self) -> list[CatalogEntity]:
        with self._lock:
            return list(self._entities.values())

    def get_entity(self, entity_id: str) -> CatalogEntity | None:
        with self._lock:
            return self._entities.get(entity_id)

    def get_phone(self, key: str) -> ExternalPhoneRecord | None:
        with self._lock:
            return self._phones.get(key)

    def get_price(self, key: str) -> ExternalPriceRecord | None:
        with self._lock:
            return self._prices.get(key)

    def upsert_phone(self, record: ExternalPhoneRecord) -> UpsertOutcome:
        with self._lock:
            _, created = self._ensure_entity(
                record.brand, record.model, record.variant, record.external_id, None
            )
            return self._store(self._phones, record.natural_key, record, created)

    def upsert_price(self, record: ExternalPriceRecord) -> UpsertOutcome:
        with self._lock:
            _, created = self._ensure_entity(record.brand, record.model, record.variant, None, None)
            return self._store(self._prices, record.natural_key, record, created)

    def _ensure_entity(
        self,
        brand: str,
        model: str,
        variant: str | None,
        external_id: str | None,
        entity_id: str | None,
    ) -> tuple[CatalogEntity, bool]:
        key = natural_key(brand, model, variant)
        existing_id = self._ids_by_key.get(key)
        if existing_id is not None:
            return self._entities[existing_id], False

        entity = CatalogEntity(
            id=entity_id or uuid.uuid4().hex,
            brand=brand,
            model=model,
            variant=variant,
            external_id=external_id,
        )
        self._entities[entity.id] = entity
        self._ids_by_key[key] = entity.id
        return entity, True

    @staticmethod
    def _store(bucket: dict, key: str, record, created: bool) -> UpsertOutcome:
        previous = bucket.get(key)
        bucket[key] = record
        if created:
            return UpsertOutcome.CREATED
        if previous == record:
            return UpsertOutcome.UNCHANGED
        return UpsertOutcome.UPDATED
