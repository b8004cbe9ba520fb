"""
tests/test_source_clients.py

Pytest unit tests for the provider source clients.

No network: every client gets a FakeSession and a recording sleep.

Coverage
--------
- Record normalization (specs and prices)
- Batched price refresh, best deals and price-drop alerts
- HTTP status and transport error mapping onto the error taxonomy
- Attempt ceiling and non-decreasing backoff, including Retry-After on 429
- Malformed bodies are never retried and never coerced
- Monitoring reports per attempt
- Camera string parsing and price statistics
"""

from __future__ import annotations

from datetime import date

import pytest
import requests

from catalog_sync.connectors.price_client import PriceTrackingClient, calculate_price_stats
from catalog_sync.connectors.specs_client import SpecificationsClient, parse_camera_spec
from catalog_sync.domain.monitoring import MonitoringEventType
from catalog_sync.errors import (
    ConfigurationError,
    MalformedResponseError,
    RateLimitedError,
    RequestRejectedError,
    SourceTimeoutError,
    SourceUnreachableError,
)
from catalog_sync.schemas.price_provider import WireRetailerPrice
from conftest import (
    FakeResponse,
    FakeSession,
    phone_payload,
    price_payload,
    pricing_settings,
    retailer_offer,
    specs_settings,
)


def _specs_client(session, reporter, sleep, **overrides) -> SpecificationsClient:
    return SpecificationsClient(
        settings=specs_settings(**overrides),
        monitoring=reporter,
        session=session,
        sleep=sleep,
    )


def _price_client(session, reporter, sleep, **overrides) -> PriceTrackingClient:
    return PriceTrackingClient(
        settings=pricing_settings(**overrides),
        monitoring=reporter,
        session=session,
        sleep=sleep,
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestClientConfiguration:
    def test_missing_api_key_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            SpecificationsClient(settings=specs_settings(api_key=None), session=FakeSession())

    def test_missing_base_url_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            PriceTrackingClient(settings=pricing_settings(base_url=""), session=FakeSession())

    def test_requests_carry_bearer_token_and_timeout(self, reporter, sleep) -> None:
        session = FakeSession(routes={"/brands": [FakeResponse(200, {"brands": [{"name": "Samsung"}]})]})
        client = _specs_client(session, reporter, sleep)

        assert client.list_categories() == ["Samsung"]

        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://specs.example.com/v1/brands"
        assert call["headers"]["Authorization"] == "Bearer specs-key"
        assert call["timeout"] == 5.0


# ---------------------------------------------------------------------------
# Specifications normalization
# ---------------------------------------------------------------------------


class TestSpecificationsClient:
    def test_fetch_by_id_normalizes_phone(self, reporter, sleep) -> None:
        payload = {"phone": phone_payload("p-1", "Samsung", "Galaxy S24")}
        session = FakeSession(routes={"/phones/p-1": [FakeResponse(200, payload)]})
        client = _specs_client(session, reporter, sleep)

        record = client.fetch_by_id("p-1")

        assert record is not None
        assert record.source == "specs"
        assert record.external_id == "p-1"
        assert record.natural_key == "samsung-galaxy-s24"
        assert record.launch_date == date(2024, 1, 17)
        assert [lens.megapixels for lens in record.specifications.camera.rear] == [50, 12]
        assert record.specifications.camera.rear[0].aperture == "f/1.8"
        assert record.specifications.camera.front.megapixels == 12
        assert record.specifications.performance.processor == "Exynos 2400"
        assert record.specifications.battery.capacity_mah == 4000
        assert record.pricing is not None and record.pricing.current_price == 74999

    def test_success_reports_api_request_with_latency(self, reporter, sleep) -> None:
        payload = {"phone": phone_payload("p-1", "Samsung", "Galaxy S24")}
        session = FakeSession(routes={"/phones/p-1": [FakeResponse(200, payload)]})

        _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert reporter.types() == ["api_request"]
        event = reporter.events[0]
        assert event.source == "specs"
        assert event.duration_ms is not None and event.duration_ms >= 0

    def test_404_is_not_found_without_error_report(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(404, {"error": "not found"})])

        assert _specs_client(session, reporter, sleep).fetch_by_id("missing") is None
        assert len(session.calls) == 1
        assert reporter.events == []
        assert sleep.delays == []

    def test_unknown_fields_are_ignored(self, reporter, sleep) -> None:
        phone = phone_payload("p-2", "Apple", "iPhone 15", marketing_blurb="new!", rating=4.5)
        session = FakeSession([FakeResponse(200, {"phones": [phone], "page": 1})])

        records = _specs_client(session, reporter, sleep).fetch_by_query("iphone")

        assert [record.model for record in records] == ["iPhone 15"]

    def test_find_phone_prefers_exact_variant(self, reporter, sleep) -> None:
        phones = [
            phone_payload("base", "Samsung", "Galaxy S24"),
            phone_payload("v256", "Samsung", "Galaxy S24", variant="256GB"),
        ]
        session = FakeSession([FakeResponse(200, {"phones": phones})])

        record = _specs_client(session, reporter, sleep).find_phone("Samsung", "Galaxy S24", "256GB")

        assert record is not None and record.external_id == "v256"
        assert session.calls[0]["params"] == {"q": "Samsung Galaxy S24 256GB"}

    def test_find_phone_falls_back_to_base_model(self, reporter, sleep) -> None:
        phones = [
            phone_payload("other", "Samsung", "Galaxy S24 Ultra"),
            phone_payload("base", "Samsung", "Galaxy S24"),
        ]
        session = FakeSession([FakeResponse(200, {"phones": phones})])

        record = _specs_client(session, reporter, sleep).find_phone("Samsung", "Galaxy S24", "512GB")

        assert record is not None and record.external_id == "base"

    def test_find_phone_without_match_returns_none(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(200, {"phones": [phone_payload("x", "Google", "Pixel 8")]})])

        assert _specs_client(session, reporter, sleep).find_phone("Samsung", "Galaxy S24") is None

    def test_fetch_by_brand_quotes_path_segment(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(200, {"phones": []})])

        assert _specs_client(session, reporter, sleep).fetch_by_brand("Nothing Phone") == []
        assert session.calls[0]["url"].endswith("/brands/Nothing%20Phone/phones")


# ---------------------------------------------------------------------------
# Status and error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    def test_server_errors_retry_up_to_ceiling(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(503), FakeResponse(502), FakeResponse(500)])

        with pytest.raises(SourceUnreachableError):
            _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert len(session.calls) == 3
        assert sleep.delays == [1.0, 2.0]
        errors = reporter.of_type(MonitoringEventType.API_ERROR)
        assert [event.metadata["attempt"] for event in errors] == [1, 2, 3]
        assert {event.metadata["error_class"] for event in errors} == {"Unreachable"}

    def test_recovers_after_transient_failure(self, reporter, sleep) -> None:
        payload = {"phone": phone_payload("p-1", "Samsung", "Galaxy S24")}
        session = FakeSession([FakeResponse(503), FakeResponse(200, payload)])

        record = _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert record is not None
        assert reporter.types() == ["api_error", "api_request"]

    def test_rate_limit_honors_retry_after_and_ceiling(self, reporter, sleep) -> None:
        session = FakeSession(
            [
                FakeResponse(429, headers={"Retry-After": "3"}),
                FakeResponse(429),
                FakeResponse(429, headers={"Retry-After": "1"}),
            ]
        )

        with pytest.raises(RateLimitedError):
            _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert len(session.calls) == 3
        assert sleep.delays == [3.0, 3.0]
        assert sleep.delays == sorted(sleep.delays)
        assert len(reporter.of_type(MonitoringEventType.RATE_LIMITED)) == 3
        assert reporter.of_type(MonitoringEventType.API_ERROR) == []

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failures_are_configuration_errors(self, reporter, sleep, status_code) -> None:
        session = FakeSession([FakeResponse(status_code)])

        with pytest.raises(ConfigurationError):
            _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert len(session.calls) == 1
        assert reporter.of_type(MonitoringEventType.API_ERROR)[0].metadata["error_class"] == "ConfigurationError"

    def test_other_client_errors_are_rejected_once(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(422)])

        with pytest.raises(RequestRejectedError):
            _specs_client(session, reporter, sleep).fetch_by_query("bad query")

        assert len(session.calls) == 1
        assert sleep.delays == []

    def test_transport_timeout_maps_to_timeout(self, reporter, sleep) -> None:
        session = FakeSession([requests.Timeout("read timed out")] * 3)

        with pytest.raises(SourceTimeoutError):
            _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert len(session.calls) == 3
        assert {event.metadata["error_class"] for event in reporter.events} == {"Timeout"}

    def test_connection_error_maps_to_unreachable(self, reporter, sleep) -> None:
        session = FakeSession([requests.ConnectionError("refused")])

        with pytest.raises(SourceUnreachableError):
            _specs_client(session, reporter, sleep, max_attempts=1).fetch_by_id("p-1")

    def test_non_json_body_is_malformed_and_not_retried(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse.invalid_json()])

        with pytest.raises(MalformedResponseError):
            _specs_client(session, reporter, sleep).fetch_by_id("p-1")

        assert len(session.calls) == 1
        assert reporter.types() == ["validation_error"]

    def test_missing_required_fields_are_malformed(self, reporter, sleep) -> None:
        broken = phone_payload("p-1", "Samsung", "Galaxy S24")
        del broken["brand"]
        session = FakeSession([FakeResponse(200, {"phones": [broken]})])

        with pytest.raises(MalformedResponseError):
            _specs_client(session, reporter, sleep).fetch_by_query("galaxy")

        assert len(session.calls) == 1


# ---------------------------------------------------------------------------
# Price tracking
# ---------------------------------------------------------------------------


class TestPriceTrackingClient:
    def test_get_phone_prices_filters_retailers_and_recomputes_stats(self, reporter, sleep) -> None:
        offers = [
            retailer_offer("Amazon", 74999, "https://www.amazon.in/dp/1"),
            retailer_offer("Flipkart", 72999, "https://www.flipkart.com/p/1"),
            retailer_offer("Croma", 69999, "https://www.croma.com/p/1", availability="out_of_stock"),
            retailer_offer("Grey Market Deals", 50000, "https://deals.example.com/1"),
        ]
        session = FakeSession(
            routes={"/prices/search": [FakeResponse(200, price_payload("pp-1", "Samsung", "Galaxy S24", offers))]}
        )

        record = _price_client(session, reporter, sleep).get_phone_prices("Samsung", "Galaxy S24")

        assert record is not None
        assert record.source == "pricing"
        assert record.external_id == "pp-1"
        assert [offer.retailer for offer in record.offers] == ["Amazon", "Flipkart", "Croma"]
        assert record.lowest_price == 72999
        assert record.highest_price == 74999
        assert record.average_price == 73999
        assert session.calls[0]["params"] == {"q": "Samsung Galaxy S24", "country": "IN"}

    def test_missing_price_data_is_not_found(self, reporter, sleep) -> None:
        session = FakeSession([FakeResponse(200, {"priceData": None})])

        assert _price_client(session, reporter, sleep).get_phone_prices("Nokia", "3310") is None

    def test_price_history(self, reporter, sleep) -> None:
        history = {
            "history": [
                {"date": "2024-05-01", "price": 79999, "retailer": "Amazon"},
                {"date": "2024-05-15", "price": 74999, "retailer": "Amazon"},
            ]
        }
        session = FakeSession(routes={"/prices/pp-1/history": [FakeResponse(200, history)]})

        points = _price_client(session, reporter, sleep).get_price_history("pp-1", days=14)

        assert [point.price for point in points] == [79999, 74999]
        assert session.calls[0]["params"] == {"days": 14, "country": "IN"}

    def test_offer_missing_fields_is_malformed(self, reporter, sleep) -> None:
        payload = price_payload("pp-1", "Samsung", "Galaxy S24")
        del payload["priceData"]["prices"][0]["url"]
        session = FakeSession([FakeResponse(200, payload)])

        with pytest.raises(MalformedResponseError):
            _price_client(session, reporter, sleep).fetch_by_id("pp-1")

    def test_track_price_changes_batches_and_skips_failures(self, reporter, sleep) -> None:
        session = FakeSession(
            routes={
                "/prices/pp-1": [FakeResponse(200, price_payload("pp-1", "Samsung", "Galaxy S24"))],
                "/prices/pp-2": [requests.ConnectionError("connection reset")],
                "/prices/pp-3": [FakeResponse(404)],
                "/prices/pp-4": [FakeResponse(200, price_payload("pp-4", "Apple", "iPhone 15"))],
            }
        )
        client = _price_client(session, reporter, sleep, max_attempts=1)

        tracked = client.track_price_changes(
            ["pp-1", "pp-2", "pp-3", "pp-1", "pp-4"],
            batch_size=2,
            batch_delay_seconds=1.5,
        )

        assert list(tracked) == ["pp-1", "pp-4"]
        assert tracked["pp-4"].model == "iPhone 15"
        assert session.paths() == ["/v1/prices/pp-1", "/v1/prices/pp-2", "/v1/prices/pp-3", "/v1/prices/pp-4"]
        assert sleep.delays == [1.5]

    def test_track_price_changes_raises_on_rejected_credentials(self, reporter, sleep) -> None:
        session = FakeSession(routes={"/prices/pp-1": [FakeResponse(401)]})

        with pytest.raises(ConfigurationError):
            _price_client(session, reporter, sleep).track_price_changes(["pp-1", "pp-2"])
        assert len(session.calls) == 1

    def test_track_price_changes_rejects_empty_batches(self, reporter, sleep) -> None:
        with pytest.raises(ValueError):
            _price_client(FakeSession(), reporter, sleep).track_price_changes(["pp-1"], batch_size=0)

    def test_best_deals_with_filters(self, reporter, sleep) -> None:
        deals = {
            "deals": [
                price_payload("pp-7", "OnePlus", "11R", [retailer_offer("Amazon", 35000, "https://www.amazon.in/dp/7")])["priceData"],
                price_payload("pp-8", "Xiaomi", "13", [retailer_offer("Flipkart", 40000, "https://www.flipkart.com/p/8")])["priceData"],
            ]
        }
        session = FakeSession(routes={"/deals": [FakeResponse(200, deals)]})

        records = _price_client(session, reporter, sleep).get_best_deals(max_price=50000, category="flagship")

        assert [record.external_id for record in records] == ["pp-7", "pp-8"]
        assert records[0].lowest_price == 35000
        assert session.calls[0]["params"] == {
            "country": "IN",
            "sortBy": "discount",
            "maxPrice": 50000,
            "category": "flagship",
        }

    def test_best_deals_without_filters(self, reporter, sleep) -> None:
        session = FakeSession(routes={"/deals": [FakeResponse(200, {"deals": []})]})

        assert _price_client(session, reporter, sleep).get_best_deals() == []
        assert session.calls[0]["params"] == {"country": "IN", "sortBy": "discount"}

    def test_price_alerts(self, reporter, sleep) -> None:
        alerts = {
            "alerts": [
                {"phoneId": "pp-1", "oldPrice": 80000, "newPrice": 70000, "discount": 12.5},
                {"phoneId": "pp-2", "oldPrice": 60000, "newPrice": 50000, "discount": 16.7},
            ]
        }
        session = FakeSession(routes={"/alerts": [FakeResponse(200, alerts)]})

        result = _price_client(session, reporter, sleep).get_price_alerts(threshold=15)

        assert [alert.phone_id for alert in result] == ["pp-1", "pp-2"]
        assert result[0].old_price == 80000
        assert result[0].new_price == 70000
        assert result[1].discount == 16.7
        assert session.calls[0]["params"] == {"threshold": 15, "country": "IN"}

    def test_price_alert_missing_fields_is_malformed(self, reporter, sleep) -> None:
        session = FakeSession(routes={"/alerts": [FakeResponse(200, {"alerts": [{"phoneId": "pp-1"}]})]})

        with pytest.raises(MalformedResponseError):
            _price_client(session, reporter, sleep).get_price_alerts()
        assert len(session.calls) == 1


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestParsingHelpers:
    @pytest.mark.parametrize(
        ("value", "megapixels", "aperture"),
        [
            ("50MP f/1.8", 50, "f/1.8"),
            ("200 MP, f/1.7, OIS", 200, "f/1.7"),
            ("12 megapixel", 12, None),
            ("", 0, None),
            ("periscope", 0, None),
        ],
    )
    def test_parse_camera_spec(self, value, megapixels, aperture) -> None:
        lens = parse_camera_spec(value)

        assert lens.megapixels == megapixels
        assert lens.aperture == aperture

    def test_price_stats_ignore_unavailable_offers(self) -> None:
        offers = [
            WireRetailerPrice.model_validate(retailer_offer("Amazon", 100, "https://amazon.in/1")),
            WireRetailerPrice.model_validate(retailer_offer("Flipkart", 151, "https://flipkart.com/1")),
            WireRetailerPrice.model_validate(
                retailer_offer("Croma", 10, "https://croma.com/1", availability="pre_order")
            ),
        ]

        stats = calculate_price_stats(offers)

        assert stats.lowest_price == 100
        assert stats.highest_price == 151
        assert stats.average_price == 126
        assert stats.price_range == 51
        assert stats.best_deal is not None and stats.best_deal.retailer == "Amazon"

    def test_price_stats_without_stock(self) -> None:
        stats = calculate_price_stats([])

        assert (stats.lowest_price, stats.average_price, stats.highest_price) == (0.0, 0.0, 0.0)
        assert stats.best_deal is None
