"""
tests/conftest.py

Shared fakes for the sync subsystem tests.

Nothing here touches the network or sleeps: HTTP goes through ``FakeSession``,
wall-clock and monotonic time are driven by ``ManualClock`` and
``ManualMonotonic``, and backoff waits are captured by ``RecordingSleep``.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import pytest
import requests

from catalog_sync.config import (
    FallbackSettings,
    IntegrationSettings,
    MonitoringSettings,
    PriceTrackingSettings,
    SourceClientSettings,
    SyncSettings,
)
from catalog_sync.domain.monitoring import MonitoringEvent, MonitoringEventType

_INVALID_JSON = object()


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = dict(headers or {})

    @classmethod
    def invalid_json(cls, status_code: int = 200) -> FakeResponse:
        return cls(status_code, _INVALID_JSON)

    def json(self) -> Any:
        if self._payload is _INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return copy.deepcopy(self._payload)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """
    Stand-in for ``requests.Session``.

    Responses come from ``routes`` (keyed by URL path suffix; the last item of
    a route repeats) or, when no route matches, from the ``responses`` queue.
    Exception instances are raised instead of returned.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        *,
        routes: dict[str, list[Any]] | None = None,
        post_response: FakeResponse | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.routes = {path: list(items) for path, items in (routes or {}).items()}
        self.post_response = post_response or FakeResponse(200, {})
        self.calls: list[dict[str, Any]] = []
        self.posts: list[dict[str, Any]] = []
        self.closed = False

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> FakeResponse:
        self.calls.append(
            {"method": method, "url": url, "params": params, "headers": headers, "timeout": timeout}
        )
        item = self._next(url)
        if isinstance(item, BaseException):
            raise item
        return item

    def post(self, url: str, json: Any = None, timeout: float | None = None) -> FakeResponse:
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        return self.post_response

    def close(self) -> None:
        self.closed = True

    def paths(self) -> list[str]:
        return [urlparse(call["url"]).path for call in self.calls]

    def _next(self, url: str) -> Any:
        path = urlparse(url).path
        for suffix, items in self.routes.items():
            if path.endswith(suffix):
                return items.pop(0) if len(items) > 1 else items[0]
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        return self.responses.pop(0)


# ---------------------------------------------------------------------------
# Time fakes
# ---------------------------------------------------------------------------


class ManualClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class ManualMonotonic:
    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingReporter:
    """
    Minimal event reporter collecting every event in order.
    """

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.events: list[MonitoringEvent] = []
        self._clock = clock or ManualClock()

    def log_event(
        self,
        event_type: MonitoringEventType,
        source: str,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> MonitoringEvent:
        event = MonitoringEvent(
            type=MonitoringEventType(event_type),
            source=source,
            timestamp=self._clock(),
            metadata=metadata,
            error_message=error_message,
            duration_ms=duration_ms,
        )
        self.events.append(event)
        return event

    def of_type(self, event_type: MonitoringEventType) -> list[MonitoringEvent]:
        return [event for event in self.events if event.type is event_type]

    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


# ---------------------------------------------------------------------------
# Provider payload builders
# ---------------------------------------------------------------------------


def phone_payload(
    phone_id: str,
    brand: str,
    model: str,
    variant: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": phone_id,
        "name": f"{brand} {model}",
        "brand": brand,
        "model": model,
        "variant": variant,
        "launch_date": "2024-01-17",
        "status": "available",
        "specifications": {
            "display": {"size": "6.2 inches", "resolution": "1080 x 2340", "type": "AMOLED", "refresh_rate": 120},
            "camera": {"main": "50MP f/1.8", "ultrawide": "12MP f/2.2", "front": "12MP f/2.2"},
            "performance": {"chipset": "Exynos 2400", "ram": ["8GB"], "storage": ["128GB", "256GB"]},
            "battery": {"capacity": 4000, "charging": 25},
        },
        "images": [f"https://img.example.com/{phone_id}.png"],
        "price": {"currency": "INR", "price": 74999},
    }
    payload.update(extra)
    return payload


def price_payload(
    phone_id: str,
    brand: str,
    model: str,
    offers: list[dict[str, Any]] | None = None,
    variant: str | None = None,
) -> dict[str, Any]:
    if offers is None:
        offers = [
            retailer_offer("Amazon", 74999, "https://www.amazon.in/dp/1"),
            retailer_offer("Flipkart", 72999, "https://www.flipkart.com/p/1"),
        ]
    in_stock = [offer["price"] for offer in offers if offer["availability"] == "in_stock"] or [0]
    return {
        "priceData": {
            "phoneId": phone_id,
            "brand": brand,
            "model": model,
            "variant": variant,
            "prices": offers,
            "averagePrice": sum(in_stock) / len(in_stock),
            "lowestPrice": min(in_stock),
            "highestPrice": max(in_stock),
        }
    }


def retailer_offer(
    retailer: str,
    price: float,
    url: str,
    availability: str = "in_stock",
) -> dict[str, Any]:
    return {
        "retailer": retailer,
        "price": price,
        "currency": "INR",
        "availability": availability,
        "url": url,
        "lastUpdated": "2024-06-01T10:00:00Z",
    }


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------


def specs_settings(**overrides: Any) -> SourceClientSettings:
    values: dict[str, Any] = {
        "api_key": "specs-key",
        "base_url": "https://specs.example.com/v1",
        "timeout_seconds": 5.0,
        "max_attempts": 3,
        "backoff_initial_seconds": 1.0,
        "backoff_multiplier": 2.0,
        "min_request_interval_seconds": 0.0,
    }
    values.update(overrides)
    return SourceClientSettings(**values)


def pricing_settings(**overrides: Any) -> PriceTrackingSettings:
    values: dict[str, Any] = {
        "api_key": "pricing-key",
        "base_url": "https://prices.example.com/v1",
        "timeout_seconds": 5.0,
        "max_attempts": 3,
        "backoff_initial_seconds": 1.0,
        "backoff_multiplier": 2.0,
        "min_request_interval_seconds": 0.0,
    }
    values.update(overrides)
    return PriceTrackingSettings(**values)


def integration_settings(**overrides: Any) -> IntegrationSettings:
    values: dict[str, Any] = {
        "specs": specs_settings(),
        "pricing": pricing_settings(),
        "fallback": FallbackSettings(lookup_timeout_seconds=None),
        "sync": SyncSettings(batch_delay_seconds=0.0, auto_start=False, max_concurrency=2),
        "monitoring": MonitoringSettings(),
    }
    values.update(overrides)
    return IntegrationSettings(**values)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def monotonic() -> ManualMonotonic:
    return ManualMonotonic()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def reporter(clock: ManualClock) -> RecordingReporter:
    return RecordingReporter(clock)
