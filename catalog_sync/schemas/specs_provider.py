"""
Wire schema for the specifications provider API.

Only identity fields are required. Everything else is optional and unknown
fields are ignored so small provider-side additions do not break parsing.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WireDisplay(_Wire):
    size: str | None = None
    resolution: str | None = None
    type: str | None = None
    refresh_rate: float | None = None
    brightness: float | None = None


class WireCamera(_Wire):
    main: str | None = None
    ultrawide: str | None = None
    telephoto: str | None = None
    depth: str | None = None
    front: str | None = None
    features: list[str] | None = None


class WirePerformance(_Wire):
    chipset: str | None = None
    cpu: str | None = None
    gpu: str | None = None
    ram: list[str] | None = None
    storage: list[str] | None = None
    card_slot: bool | None = None


class WireBattery(_Wire):
    capacity: int | None = None
    charging: float | None = None
    wireless: bool | None = None


class WireConnectivity(_Wire):
    network: list[str] | None = None
    wifi: str | None = None
    bluetooth: str | None = None
    nfc: bool | None = None


class WireBuild(_Wire):
    dimensions: str | None = None
    weight: str | None = None
    materials: list[str] | None = None
    colors: list[str] | None = None
    ip_rating: str | None = None


class WireSoftware(_Wire):
    os: str | None = None
    version: str | None = None


class WireSpecifications(_Wire):
    display: WireDisplay | None = None
    camera: WireCamera | None = None
    performance: WirePerformance | None = None
    battery: WireBattery | None = None
    connectivity: WireConnectivity | None = None
    build: WireBuild | None = None
    software: WireSoftware | None = None


class WirePrice(_Wire):
    currency: str | None = None
    price: float | None = None


class SpecsProviderPhone(_Wire):
    id: str
    name: str
    brand: str
    model: str
    variant: str | None = None
    launch_date: str | None = None
    status: Literal["available", "discontinued", "upcoming"] | None = None
    specifications: WireSpecifications | None = None
    images: list[str] | None = None
    price: WirePrice | None = None


class SpecsProviderPhoneList(_Wire):
    phones: list[SpecsProviderPhone]


class SpecsProviderPhoneEnvelope(_Wire):
    phone: SpecsProviderPhone | None = None


class SpecsProviderBrand(_Wire):
    name: str | None = None


class SpecsProviderBrandList(_Wire):
    brands: list[SpecsProviderBrand]
