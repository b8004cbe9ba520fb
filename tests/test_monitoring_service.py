"""
tests/test_monitoring_service.py

Pytest unit tests for MonitoringService.

Coverage
--------
- Health verdicts: healthy, degraded (80% of a threshold), unhealthy
- Window rollover resets counters and re-arms alerts
- Error-rate arithmetic
- Edge-triggered alerts and notifier isolation
- Event queries, lifetime metrics, error summary and retention
- API performance metrics over a trailing window
- Concurrent log_event calls keep exact counts
- Webhook and logging notifiers
"""

from __future__ import annotations

import json
import logging
import threading

import pytest

from catalog_sync.config import MonitoringSettings
from catalog_sync.domain.monitoring import HealthStatus, MonitoringEventType
from catalog_sync.services.monitoring_service import (
    LoggingAlertNotifier,
    MonitoringService,
    WebhookAlertNotifier,
    build_alert_notifiers,
)
from conftest import FakeResponse, FakeSession


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts = []

    def send(self, alert) -> None:
        self.alerts.append(alert)


class ExplodingNotifier:
    def send(self, alert) -> None:
        raise RuntimeError("smtp down")


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def service(clock, notifier) -> MonitoringService:
    return MonitoringService(MonitoringSettings(window_seconds=3600), notifiers=[notifier], clock=clock)


def _log(service: MonitoringService, event_type: MonitoringEventType, count: int = 1, source: str = "specs") -> None:
    for _ in range(count):
        service.log_event(event_type, source, error_message="boom" if "error" in event_type.value else None)


# ---------------------------------------------------------------------------
# Health verdicts
# ---------------------------------------------------------------------------


class TestHealthReport:
    def test_fresh_service_is_healthy(self, service) -> None:
        report = service.generate_health_report()

        assert report.status is HealthStatus.HEALTHY
        assert report.error_rate == 0.0
        assert report.issues == ()

    def test_degraded_at_eighty_percent_of_threshold(self, service) -> None:
        _log(service, MonitoringEventType.API_ERROR, 8)

        report = service.generate_health_report()

        assert report.status is HealthStatus.DEGRADED
        assert report.error_count == 8

    def test_unhealthy_at_threshold(self, service) -> None:
        _log(service, MonitoringEventType.API_ERROR, 10)

        assert service.generate_health_report().status is HealthStatus.UNHEALTHY

    def test_validation_errors_and_sync_failures_count_as_errors(self, service) -> None:
        _log(service, MonitoringEventType.VALIDATION_ERROR, 5)
        _log(service, MonitoringEventType.SYNC_FAILED, 3)

        report = service.generate_health_report()

        assert report.error_count == 8
        assert report.sync_failure_count == 3
        assert report.status is HealthStatus.UNHEALTHY

    def test_rate_limit_hits_have_their_own_threshold(self, service) -> None:
        _log(service, MonitoringEventType.RATE_LIMITED, 5)

        report = service.generate_health_report()

        assert report.rate_limit_hit_count == 5
        assert report.error_count == 0
        assert report.status is HealthStatus.UNHEALTHY

    def test_error_rate_is_errors_over_attempts(self, service) -> None:
        _log(service, MonitoringEventType.API_REQUEST, 3)
        _log(service, MonitoringEventType.API_ERROR, 1)

        assert service.generate_health_report().error_rate == 0.25

    def test_window_rollover_returns_to_healthy(self, service, clock) -> None:
        _log(service, MonitoringEventType.API_ERROR, 12)
        assert service.generate_health_report().status is HealthStatus.UNHEALTHY

        clock.advance(seconds=3600)
        report = service.generate_health_report()

        assert report.status is HealthStatus.HEALTHY
        assert report.error_count == 0
        assert report.window_started_at == clock.now

    def test_last_sync_time_tracks_finished_syncs(self, service, clock) -> None:
        _log(service, MonitoringEventType.SYNC_STARTED)
        assert service.generate_health_report().last_sync_at is None

        clock.advance(minutes=5)
        _log(service, MonitoringEventType.SYNC_COMPLETED)

        assert service.generate_health_report().last_sync_at == clock.now


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class TestAlerts:
    def test_alert_fires_once_per_window(self, service, notifier) -> None:
        _log(service, MonitoringEventType.API_ERROR, 15)

        assert len(notifier.alerts) == 1
        alert = notifier.alerts[0]
        assert alert.counter == "errors"
        assert alert.value == 10
        assert alert.threshold == 10
        assert alert.event.type is MonitoringEventType.API_ERROR

    def test_alert_rearms_after_rollover(self, service, notifier, clock) -> None:
        _log(service, MonitoringEventType.API_ERROR, 10)
        clock.advance(hours=1)
        _log(service, MonitoringEventType.API_ERROR, 10)

        assert len(notifier.alerts) == 2
        assert len(service.get_alerts()) == 2

    def test_each_counter_alerts_independently(self, service, notifier) -> None:
        _log(service, MonitoringEventType.RATE_LIMITED, 5)
        _log(service, MonitoringEventType.SYNC_FAILED, 3)

        assert sorted(alert.counter for alert in notifier.alerts) == ["rate_limit_hits", "sync_failures"]

    def test_notifier_failure_is_swallowed(self, clock, notifier) -> None:
        service = MonitoringService(
            MonitoringSettings(error_threshold=1),
            notifiers=[ExplodingNotifier(), notifier],
            clock=clock,
        )

        event = service.log_event(MonitoringEventType.API_ERROR, "specs", error_message="boom")

        assert event.type is MonitoringEventType.API_ERROR
        assert len(notifier.alerts) == 1

    def test_alerts_can_be_disabled(self, clock, notifier) -> None:
        service = MonitoringService(
            MonitoringSettings(alerts_enabled=False, error_threshold=1),
            notifiers=[notifier],
            clock=clock,
        )

        _log(service, MonitoringEventType.API_ERROR, 3)

        assert notifier.alerts == []
        assert service.generate_health_report().status is HealthStatus.UNHEALTHY


# ---------------------------------------------------------------------------
# Queries and retention
# ---------------------------------------------------------------------------


class TestQueries:
    def test_get_events_filters_and_orders_newest_first(self, service, clock) -> None:
        service.log_event(MonitoringEventType.API_REQUEST, "specs")
        clock.advance(minutes=1)
        service.log_event(MonitoringEventType.API_ERROR, "pricing", error_message="down")
        clock.advance(minutes=1)
        service.log_event(MonitoringEventType.API_REQUEST, "pricing")

        events = service.get_events()
        assert [event.source for event in events] == ["pricing", "pricing", "specs"]

        assert [event.type for event in service.get_events(source="pricing")] == [
            MonitoringEventType.API_REQUEST,
            MonitoringEventType.API_ERROR,
        ]
        assert len(service.get_events(event_type=MonitoringEventType.API_REQUEST)) == 2
        assert len(service.get_events(since=clock.now)) == 1

    def test_metrics_are_lifetime_totals(self, service, clock) -> None:
        service.log_event(MonitoringEventType.SYNC_STARTED, "specs")
        service.log_event(MonitoringEventType.SYNC_COMPLETED, "specs", duration_ms=100.0)
        service.log_event(MonitoringEventType.SYNC_STARTED, "pricing")
        service.log_event(MonitoringEventType.SYNC_FAILED, "pricing", error_message="lost", duration_ms=50.0)
        _log(service, MonitoringEventType.API_REQUEST, 4)
        _log(service, MonitoringEventType.API_ERROR, 2)
        _log(service, MonitoringEventType.FALLBACK_ACTIVATED, 1, source="fallback_resolver")
        clock.advance(hours=3)

        metrics = service.get_metrics()

        assert metrics.total_syncs == 2
        assert metrics.successful_syncs == 1
        assert metrics.failed_syncs == 1
        assert metrics.average_duration_ms == 100.0
        assert metrics.api_requests_count == 4
        assert metrics.api_errors_count == 2
        assert metrics.fallback_activations == 1
        assert metrics.last_sync_time is not None

    def test_error_summary_groups_recent_errors(self, service) -> None:
        _log(service, MonitoringEventType.API_ERROR, 2, source="specs")
        _log(service, MonitoringEventType.VALIDATION_ERROR, 1, source="pricing")
        _log(service, MonitoringEventType.API_REQUEST, 3)

        summary = service.get_error_summary(hours=1)

        assert summary["total_errors"] == 3
        assert summary["errors_by_source"] == {"specs": 2, "pricing": 1}
        assert summary["errors_by_type"] == {"api_error": 2, "validation_error": 1}

    def test_clear_old_data_drops_old_events(self, service, clock) -> None:
        _log(service, MonitoringEventType.API_REQUEST, 3)
        clock.advance(hours=10)
        _log(service, MonitoringEventType.API_REQUEST, 2)

        removed = service.clear_old_data(older_than_hours=5)

        assert removed == 3
        assert len(service.get_events()) == 2
        assert service.get_metrics().api_requests_count == 2

    def test_event_log_is_bounded(self, clock, notifier) -> None:
        service = MonitoringService(MonitoringSettings(event_capacity=10), notifiers=[notifier], clock=clock)

        _log(service, MonitoringEventType.API_REQUEST, 25)

        assert len(service.get_events()) == 10
        assert service.get_metrics().api_requests_count == 25


# ---------------------------------------------------------------------------
# API performance
# ---------------------------------------------------------------------------


class TestApiPerformanceMetrics:
    def test_latency_error_rate_and_slowest_requests(self, service, clock) -> None:
        service.log_event(MonitoringEventType.API_REQUEST, "specs", duration_ms=5000.0)
        clock.advance(hours=30)
        service.log_event(MonitoringEventType.API_REQUEST, "specs", duration_ms=500.0)
        service.log_event(MonitoringEventType.API_REQUEST, "specs", duration_ms=300.0)
        service.log_event(MonitoringEventType.API_REQUEST, "pricing", duration_ms=800.0)
        service.log_event(MonitoringEventType.API_ERROR, "specs", error_message="timeout")

        metrics = service.get_api_performance_metrics(hours=24)

        assert metrics.total_requests == 3
        assert metrics.average_response_time_ms == 533.0
        assert metrics.error_rate == 33.33
        assert metrics.requests_by_source == {"specs": 2, "pricing": 1}
        assert [event.duration_ms for event in metrics.slowest_requests] == [800.0, 500.0, 300.0]

    def test_untimed_requests_count_but_are_not_ranked(self, service) -> None:
        service.log_event(MonitoringEventType.API_REQUEST, "specs", duration_ms=200.0)
        service.log_event(MonitoringEventType.API_REQUEST, "specs")

        metrics = service.get_api_performance_metrics()

        assert metrics.total_requests == 2
        assert metrics.average_response_time_ms == 200.0
        assert len(metrics.slowest_requests) == 1

    def test_slowest_requests_are_capped(self, service) -> None:
        for duration in range(15):
            service.log_event(MonitoringEventType.API_REQUEST, "pricing", duration_ms=float(duration))

        slowest = service.get_api_performance_metrics().slowest_requests

        assert [event.duration_ms for event in slowest] == [float(value) for value in range(14, 4, -1)]

    def test_no_traffic(self, service) -> None:
        metrics = service.get_api_performance_metrics()

        assert metrics.total_requests == 0
        assert metrics.average_response_time_ms == 0.0
        assert metrics.error_rate == 0.0
        assert metrics.requests_by_source == {}
        assert metrics.slowest_requests == ()


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentLogging:
    def test_parallel_writers_keep_exact_counts(self, clock, notifier) -> None:
        service = MonitoringService(
            MonitoringSettings(window_seconds=3600, error_threshold=10_000, event_capacity=1000),
            notifiers=[notifier],
            clock=clock,
        )
        writers = 8
        requests_per_writer = 50
        errors_per_writer = 5
        start = threading.Barrier(writers)

        def write(index: int) -> None:
            source = f"source-{index % 2}"
            start.wait()
            for _ in range(requests_per_writer):
                service.log_event(MonitoringEventType.API_REQUEST, source, duration_ms=10.0)
            for _ in range(errors_per_writer):
                service.log_event(MonitoringEventType.API_ERROR, source, error_message="reset")

        threads = [threading.Thread(target=write, args=(index,)) for index in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        metrics = service.get_metrics()
        report = service.generate_health_report()
        assert metrics.api_requests_count == 400
        assert metrics.api_errors_count == 40
        assert len(service.get_events()) == 440
        assert report.error_count == 40
        assert report.error_rate == round(40 / 440, 4)
        assert service.get_api_performance_metrics().requests_by_source == {"source-0": 200, "source-1": 200}
        assert notifier.alerts == []


# ---------------------------------------------------------------------------
# Notifiers
# ---------------------------------------------------------------------------


class TestNotifiers:
    def test_webhook_posts_alert_json(self, clock) -> None:
        session = FakeSession()
        service = MonitoringService(
            MonitoringSettings(error_threshold=1),
            notifiers=[WebhookAlertNotifier("https://hooks.example.com/alerts", session=session)],
            clock=clock,
        )

        service.log_event(MonitoringEventType.API_ERROR, "specs", error_message="down")

        [post] = session.posts
        assert post["url"] == "https://hooks.example.com/alerts"
        assert post["json"]["counter"] == "errors"
        assert post["json"]["event"]["source"] == "specs"

    def test_webhook_http_failure_is_isolated(self, clock) -> None:
        session = FakeSession(post_response=FakeResponse(500))
        service = MonitoringService(
            MonitoringSettings(error_threshold=1),
            notifiers=[WebhookAlertNotifier("https://hooks.example.com/alerts", session=session)],
            clock=clock,
        )

        service.log_event(MonitoringEventType.API_ERROR, "specs")

        assert len(service.get_alerts()) == 1

    def test_logging_notifier_writes_structured_line(self, clock, caplog) -> None:
        service = MonitoringService(
            MonitoringSettings(error_threshold=1),
            notifiers=[LoggingAlertNotifier(["ops@example.com"])],
            clock=clock,
        )

        with caplog.at_level(logging.WARNING, logger="catalog_sync.services.monitoring_service"):
            service.log_event(MonitoringEventType.API_ERROR, "specs")

        payloads = [json.loads(record.getMessage()) for record in caplog.records if "sync_alert" in record.getMessage()]
        assert payloads and payloads[0]["recipients"] == ["ops@example.com"]

    def test_default_notifiers_include_webhook_when_configured(self) -> None:
        notifiers = build_alert_notifiers(MonitoringSettings(webhook_url="https://hooks.example.com/a"))

        assert [type(notifier) for notifier in notifiers] == [WebhookAlertNotifier, LoggingAlertNotifier]
