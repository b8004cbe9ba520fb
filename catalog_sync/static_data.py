"""
catalog_sync/static_data.py

Bundled read-only reference records served when live and cached data are unavailable.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from catalog_sync.schemas.records import ExternalPhoneRecord, ExternalPriceRecord, Pricing

STATIC_SOURCE = "static"

_SEED_PHONES = (
    ("Apple", "iPhone 15", 79900.0),
    ("Samsung", "Galaxy S24", 74999.0),
    ("OnePlus", "12", 64999.0),
)


def _build_phone_records() -> dict[str, ExternalPhoneRecord]:
    records = {}
    for brand, model, price in _SEED_PHONES:
        record = ExternalPhoneRecord(
            source=STATIC_SOURCE,
            brand=brand,
            model=model,
            availability="available",
            pricing=Pricing(mrp=price, current_price=price, currency="INR"),
        )
        records[record.natural_key] = record
    return records


def _build_price_records() -> dict[str, ExternalPriceRecord]:
    records = {}
    for brand, model, price in _SEED_PHONES:
        record = ExternalPriceRecord(
            source=STATIC_SOURCE,
            brand=brand,
            model=model,
            currency="INR",
            lowest_price=price,
            average_price=price,
            highest_price=price,
        )
        records[record.natural_key] = record
    return records


STATIC_PHONES: Mapping[str, ExternalPhoneRecord] = MappingProxyType(_build_phone_records())
STATIC_PRICES: Mapping[str, ExternalPriceRecord] = MappingProxyType(_build_price_records())
