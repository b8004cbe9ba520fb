"""
catalog_sync/catalog/base.py

Narrow interface to the persistent phone catalog that sync results are written into.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from catalog_sync.domain.sync_job import UpsertOutcome
from catalog_sync.schemas.records import ExternalPhoneRecord, ExternalPriceRecord, natural_key


@dataclass(frozen=True)
class CatalogEntity:
    """
    One phone known to the catalog, identified by its natural key.
    """

    id: str
    brand: str
    model: str
    variant: str | None = None
    external_id: str | None = None

    @property
    def natural_key(self) -> str:
        return natural_key(self.brand, self.model, self.variant)


class CatalogStore(Protocol):
    def list_entities(self) -> Sequence[CatalogEntity]:
        ...

    def get_entity(self, entity_id: str) -> CatalogEntity | None:
        ...

    def upsert_phone(self, record: ExternalPhoneRecord) -> UpsertOutcome:
        ...

    def upsert_price(self, record: ExternalPriceRecord) -> UpsertOutcome:
        ...
