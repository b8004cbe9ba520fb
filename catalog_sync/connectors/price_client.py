"""
catalog_sync/connectors/price_client.py

Price-tracking provider client.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import requests

from catalog_sync.config import SOURCE_PRICING, PriceTrackingSettings
from catalog_sync.connectors.base import BaseSourceClient
from catalog_sync.domain.monitoring import EventReporter
from catalog_sync.errors import ConfigurationError, SourceError
from catalog_sync.schemas.price_provider import (
    PriceProviderAlert,
    PriceProviderAlertList,
    PriceProviderData,
    PriceProviderDealList,
    PriceProviderEnvelope,
    PriceProviderHistory,
    PriceProviderRetailerList,
    WirePricePoint,
    WireRetailerPrice,
)
from catalog_sync.schemas.records import ExternalPriceRecord, RetailerOffer

logger = logging.getLogger(__name__)

TRACK_BATCH_SIZE = 5

# Retailer tokens matched against offer names and URLs.
RETAILER_ALIASES: dict[str, tuple[str, ...]] = {
    "amazon": ("amazon", "amazon.in"),
    "flipkart": ("flipkart", "flipkart.com"),
    "myntra": ("myntra", "myntra.com"),
    "croma": ("croma", "croma.com"),
    "reliance": ("reliance digital", "reliancedigital.in"),
    "vijay_sales": ("vijay sales", "vijaysales.com"),
    "poorvika": ("poorvika", "poorvika.com"),
    "sangeetha": ("sangeetha", "sangeethastores.com"),
}


@dataclass(frozen=True)
class PriceStats:
    average_price: float
    lowest_price: float
    highest_price: float
    price_range: float
    best_deal: WireRetailerPrice | None


class PriceTrackingClient(BaseSourceClient[ExternalPriceRecord]):
    """
    Client for the price-tracking provider.

    Endpoints:
        GET /prices/search?q=...&country=..   -> {"priceData": {...}}
        GET /prices/{id}?country=..           -> {"priceData": {...}}
        GET /prices/{id}/history?days=..      -> {"history": [...]}
        GET /deals?maxPrice=..&category=..   -> {"deals": [{...}]}
        GET /alerts?threshold=..             -> {"alerts": [...]}
        GET /retailers                        -> {"retailers": [{"name": ...}]}
    """

    def __init__(
        self,
        *,
        settings: PriceTrackingSettings,
        source: str = SOURCE_PRICING,
        monitoring: EventReporter | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            source=source,
            settings=settings,
            monitoring=monitoring,
            session=session,
            sleep=sleep,
        )
        self._country = settings.country
        self._enabled_retailers = tuple(retailer.lower() for retailer in settings.enabled_retailers)

    def fetch_by_query(self, query: str) -> list[ExternalPriceRecord]:
        data = self._fetch_price_data("/prices/search", {"q": query, "country": self._country})
        return [] if data is None else [self.to_record(data)]

    def fetch_by_id(self, external_id: str) -> ExternalPriceRecord | None:
        data = self._fetch_price_data(
            f"/prices/{self.quote_segment(external_id)}",
            {"country": self._country},
        )
        return None if data is None else self.to_record(data)

    def list_categories(self) -> list[str]:
        payload = self._request_json(
            "/retailers",
            parse=lambda data: self._validate(PriceProviderRetailerList, data),
        )
        if payload is None:
            return []
        return [retailer.name for retailer in payload.retailers if retailer.name]

    def get_phone_prices(
        self,
        brand: str,
        model: str,
        variant: str | None = None,
    ) -> ExternalPriceRecord | None:
        """
        Look up current retailer prices for one phone.
        """

        query = " ".join(part for part in (brand, model, variant) if part).strip()
        records = self.fetch_by_query(query)
        return records[0] if records else None

    def get_price_history(self, phone_id: str, days: int = 30) -> list[WirePricePoint]:
        payload = self._request_json(
            f"/prices/{self.quote_segment(phone_id)}/history",
            params={"days": max(1, days), "country": self._country},
            parse=lambda data: self._validate(PriceProviderHistory, data),
        )
        if payload is None:
            return []
        return list(payload.history)

    def track_price_changes(
        self,
        phone_ids: Iterable[str],
        *,
        batch_size: int = TRACK_BATCH_SIZE,
        batch_delay_seconds: float = 0.0,
    ) -> dict[str, ExternalPriceRecord]:
        """
        Refresh prices for many provider ids, ``batch_size`` at a time.

        Ids the provider does not know, or whose lookup fails, are left out of
        the result. Failures are logged and do not stop the remaining batches;
        rejected credentials still raise.
        """

        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        ids = list(dict.fromkeys(phone_id for phone_id in phone_ids if phone_id))
        tracked: dict[str, ExternalPriceRecord] = {}
        for start in range(0, len(ids), batch_size):
            if start and batch_delay_seconds > 0:
                self._sleep(batch_delay_seconds)
            for phone_id in ids[start : start + batch_size]:
                try:
                    record = self.fetch_by_id(phone_id)
                except ConfigurationError:
                    raise
                except SourceError as exc:
                    logger.warning("Price refresh failed phone_id=%s error=%s", phone_id, exc)
                    continue
                if record is not None:
                    tracked[phone_id] = record

        logger.info("Tracked price changes requested=%s refreshed=%s", len(ids), len(tracked))
        return tracked

    def get_best_deals(
        self,
        max_price: float | None = None,
        category: str | None = None,
    ) -> list[ExternalPriceRecord]:
        params: dict[str, Any] = {"country": self._country, "sortBy": "discount"}
        if max_price is not None:
            params["maxPrice"] = max_price
        if category:
            params["category"] = category
        payload = self._request_json(
            "/deals",
            params=params,
            parse=lambda data: self._validate(PriceProviderDealList, data),
        )
        if payload is None:
            return []
        return [self.to_record(deal) for deal in payload.deals]

    def get_price_alerts(self, threshold: float = 10.0) -> list[PriceProviderAlert]:
        """
        Phones whose price dropped by at least ``threshold`` percent.
        """

        payload = self._request_json(
            "/alerts",
            params={"threshold": threshold, "country": self._country},
            parse=lambda data: self._validate(PriceProviderAlertList, data),
        )
        if payload is None:
            return []
        return list(payload.alerts)

    def filter_retailers(self, data: PriceProviderData) -> PriceProviderData:
        """
        Keep only offers from enabled retailers and recompute the price summary.
        """

        tokens: list[str] = []
        for retailer in self._enabled_retailers:
            tokens.extend(RETAILER_ALIASES.get(retailer, (retailer,)))

        kept = [
            offer
            for offer in data.prices
            if any(token in offer.retailer.lower() or token in offer.url.lower() for token in tokens)
        ]
        stats = calculate_price_stats(kept)
        return data.model_copy(
            update={
                "prices": kept,
                "average_price": stats.average_price,
                "lowest_price": stats.lowest_price,
                "highest_price": stats.highest_price,
            }
        )

    def to_record(self, data: PriceProviderData) -> ExternalPriceRecord:
        filtered = self.filter_retailers(data)
        currency = filtered.prices[0].currency if filtered.prices else "INR"
        return ExternalPriceRecord(
            source=self.source,
            brand=filtered.brand,
            model=filtered.model,
            variant=filtered.variant,
            external_id=filtered.phone_id,
            currency=currency,
            offers=tuple(
                RetailerOffer(
                    retailer=offer.retailer,
                    price=offer.price,
                    currency=offer.currency,
                    availability=offer.availability,
                    url=offer.url,
                    last_updated=offer.last_updated,
                )
                for offer in filtered.prices
            ),
            lowest_price=filtered.lowest_price,
            average_price=filtered.average_price,
            highest_price=filtered.highest_price,
        )

    def _fetch_price_data(self, path: str, params: dict[str, str]) -> PriceProviderData | None:
        envelope = self._request_json(
            path,
            params=params,
            parse=lambda data: self._validate(PriceProviderEnvelope, data),
        )
        if envelope is None or envelope.price_data is None:
            return None
        return envelope.price_data


def calculate_price_stats(offers: Sequence[WireRetailerPrice]) -> PriceStats:
    """
    Summarize in-stock offers. Out-of-stock and pre-order offers are ignored.
    """

    in_stock = [offer for offer in offers if offer.availability == "in_stock"]
    if not in_stock:
        return PriceStats(0.0, 0.0, 0.0, 0.0, None)

    values = [offer.price for offer in in_stock]
    lowest = min(values)
    highest = max(values)
    best_deal = next(offer for offer in in_stock if offer.price == lowest)
    return PriceStats(
        average_price=float(round(sum(values) / len(values))),
        lowest_price=lowest,
        highest_price=highest,
        price_range=highest - lowest,
        best_deal=best_deal,
    )
