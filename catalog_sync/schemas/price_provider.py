"""
Wire schema for the price-tracking provider API.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class WireRetailerPrice(_Wire):
    retailer: str
    price: float
    currency: str
    availability: Literal["in_stock", "out_of_stock", "pre_order"]
    url: str
    last_updated: str = Field(alias="lastUpdated")


class WirePricePoint(_Wire):
    date: str
    price: float
    retailer: str


class PriceProviderData(_Wire):
    phone_id: str = Field(alias="phoneId")
    brand: str
    model: str
    variant: str | None = None
    prices: list[WireRetailerPrice]
    average_price: float = Field(alias="averagePrice")
    lowest_price: float = Field(alias="lowestPrice")
    highest_price: float = Field(alias="highestPrice")
    price_history: list[WirePricePoint] | None = Field(default=None, alias="priceHistory")


class PriceProviderEnvelope(_Wire):
    price_data: PriceProviderData | None = Field(default=None, alias="priceData")


class PriceProviderHistory(_Wire):
    history: list[WirePricePoint]


class PriceProviderRetailer(_Wire):
    name: str | None = None


class PriceProviderRetailerList(_Wire):
    retailers: list[PriceProviderRetailer]


class PriceProviderDealList(_Wire):
    deals: list[PriceProviderData]


class PriceProviderAlert(_Wire):
    phone_id: str = Field(alias="phoneId")
    old_price: float = Field(alias="oldPrice")
    new_price: float = Field(alias="newPrice")
    discount: float


class PriceProviderAlertList(_Wire):
    alerts: list[PriceProviderAlert]
