"""
catalog_sync/schemas/records.py

Provider-neutral phone and price records.

Every source client normalizes its provider payloads into these shapes; the
fallback resolver caches them and the catalog writer persists them.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def natural_key(brand: str, model: str, variant: str | None = None) -> str:
    """
    Build the brand+model(+variant) key identifying a catalog entity.

    >>> natural_key("Samsung", "Galaxy S24")
    'samsung-galaxy-s24'
    """

    parts = [brand, model]
    if variant:
        parts.append(variant)
    joined = "-".join(part.strip().lower() for part in parts if part and part.strip())
    return _NON_ALNUM.sub("-", joined).strip("-")


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)


class DisplaySpec(_Record):
    size: str = ""
    resolution: str = ""
    type: str = ""
    refresh_rate: float | None = None
    brightness: float | None = None


class CameraLens(_Record):
    megapixels: int = 0
    aperture: str | None = None


class CameraSpec(_Record):
    rear: tuple[CameraLens, ...] = ()
    front: CameraLens = Field(default_factory=CameraLens)
    features: tuple[str, ...] = ()


class PerformanceSpec(_Record):
    processor: str = ""
    gpu: str | None = None
    ram: tuple[str, ...] = ()
    storage: tuple[str, ...] = ()
    expandable_storage: bool | None = None


class BatterySpec(_Record):
    capacity_mah: int = 0
    charging_watts: float | None = None
    wireless_charging: bool | None = None


class ConnectivitySpec(_Record):
    network: tuple[str, ...] = ()
    wifi: str = ""
    bluetooth: str = ""
    nfc: bool | None = None


class BuildSpec(_Record):
    dimensions: str = ""
    weight: str = ""
    materials: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    water_resistance: str | None = None


class SoftwareSpec(_Record):
    os: str = ""
    version: str = ""


class PhoneSpecifications(_Record):
    display: DisplaySpec = Field(default_factory=DisplaySpec)
    camera: CameraSpec = Field(default_factory=CameraSpec)
    performance: PerformanceSpec = Field(default_factory=PerformanceSpec)
    battery: BatterySpec = Field(default_factory=BatterySpec)
    connectivity: ConnectivitySpec = Field(default_factory=ConnectivitySpec)
    build: BuildSpec = Field(default_factory=BuildSpec)
    software: SoftwareSpec = Field(default_factory=SoftwareSpec)


class Pricing(_Record):
    mrp: float = Field(default=0.0, ge=0)
    current_price: float = Field(default=0.0, ge=0)
    currency: str = "INR"


class ExternalPhoneRecord(_Record):
    """
    Normalized phone specification record.
    """

    source: str
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    variant: str | None = None
    external_id: str | None = None
    launch_date: date | None = None
    availability: Literal["available", "discontinued", "upcoming"] = "available"
    specifications: PhoneSpecifications = Field(default_factory=PhoneSpecifications)
    pricing: Pricing | None = None
    images: tuple[str, ...] = ()

    @property
    def natural_key(self) -> str:
        return natural_key(self.brand, self.model, self.variant)


class RetailerOffer(_Record):
    retailer: str
    price: float = Field(ge=0)
    currency: str
    availability: Literal["in_stock", "out_of_stock", "pre_order"]
    url: str
    last_updated: str | None = None


class ExternalPriceRecord(_Record):
    """
    Normalized price record across retailers.
    """

    source: str
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    variant: str | None = None
    external_id: str | None = None
    currency: str = "INR"
    offers: tuple[RetailerOffer, ...] = ()
    lowest_price: float = Field(default=0.0, ge=0)
    average_price: float = Field(default=0.0, ge=0)
    highest_price: float = Field(default=0.0, ge=0)

    @property
    def natural_key(self) -> str:
        return natural_key(self.brand, self.model, self.variant)
