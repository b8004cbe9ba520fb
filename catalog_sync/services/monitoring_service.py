"""
catalog_sync/services/monitoring_service.py

Append-only operational event log, rolling window counters, health verdicts
and edge-triggered alerting.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import requests

from catalog_sync.config import MonitoringSettings
from catalog_sync.domain.monitoring import (
    Alert,
    ApiPerformanceMetrics,
    HealthReport,
    HealthStatus,
    MonitoringEvent,
    MonitoringEventType,
    SyncMetrics,
)
from catalog_sync.logging_utils import log_event

logger = logging.getLogger(__name__)

DEGRADED_RATIO = 0.8
SLOWEST_REQUESTS_LIMIT = 10

COUNTER_ERRORS = "errors"
COUNTER_RATE_LIMIT_HITS = "rate_limit_hits"
COUNTER_SYNC_FAILURES = "sync_failures"

ERROR_EVENT_TYPES = frozenset(
    {
        MonitoringEventType.API_ERROR,
        MonitoringEventType.SYNC_FAILED,
        MonitoringEventType.VALIDATION_ERROR,
    }
)

_LOG_LEVELS = {
    MonitoringEventType.API_ERROR: logging.WARNING,
    MonitoringEventType.VALIDATION_ERROR: logging.WARNING,
    MonitoringEventType.RATE_LIMITED: logging.WARNING,
    MonitoringEventType.FALLBACK_ACTIVATED: logging.WARNING,
    MonitoringEventType.SYNC_FAILED: logging.ERROR,
    MonitoringEventType.API_REQUEST: logging.DEBUG,
    MonitoringEventType.LOOKUP_SERVED: logging.DEBUG,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertNotifier(Protocol):
    def send(self, alert: Alert) -> None:
        ...


class LoggingAlertNotifier:
    """
    Stand-in for e-mail delivery: writes the alert to the log.
    """

    def __init__(self, recipients: Sequence[str] = ()) -> None:
        self._recipients = tuple(recipients)

    def send(self, alert: Alert) -> None:
        log_event(
            logger,
            logging.WARNING,
            "sync_alert",
            counter=alert.counter,
            value=alert.value,
            threshold=alert.threshold,
            message=alert.message,
            recipients=list(self._recipients) or None,
        )


class WebhookAlertNotifier:
    """
    POSTs the alert as JSON to an operator webhook.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def send(self, alert: Alert) -> None:
        payload: dict[str, Any] = {
            "type": "sync_alert",
            "counter": alert.counter,
            "value": alert.value,
            "threshold": alert.threshold,
            "message": alert.message,
            "triggered_at": alert.triggered_at.isoformat(),
        }
        if alert.event is not None:
            payload["event"] = {
                "type": alert.event.type.value,
                "source": alert.event.source,
                "error_message": alert.event.error_message,
            }
        response = self._session.post(self._url, json=payload, timeout=self._timeout_seconds)
        response.raise_for_status()


def build_alert_notifiers(settings: MonitoringSettings) -> list[AlertNotifier]:
    notifiers: list[AlertNotifier] = []
    if settings.webhook_url:
        notifiers.append(
            WebhookAlertNotifier(settings.webhook_url, timeout_seconds=settings.webhook_timeout_seconds)
        )
    notifiers.append(LoggingAlertNotifier(settings.email_recipients))
    return notifiers


@dataclass
class _WindowCounters:
    errors: int = 0
    rate_limit_hits: int = 0
    sync_failures: int = 0
    api_requests: int = 0
    api_errors: int = 0

    def value_of(self, counter: str) -> int:
        return int(getattr(self, counter))


@dataclass
class _LifetimeTotals:
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    total_duration_ms: float = 0.0
    timed_syncs: int = 0
    last_sync_time: datetime | None = None
    api_requests_count: int = 0
    api_errors_count: int = 0
    rate_limit_hits: int = 0
    fallback_activations: int = 0


class MonitoringService:
    """
    Collects events from every component and derives health from them.

    All mutation happens under a single lock so concurrent source clients and
    sync workers can report safely. Alert delivery runs outside the lock and
    its failures are logged, never raised.
    """

    def __init__(
        self,
        settings: MonitoringSettings,
        *,
        notifiers: Sequence[AlertNotifier] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._notifiers = list(notifiers) if notifiers is not None else build_alert_notifiers(settings)
        self._clock = clock
        self._lock = threading.Lock()
        self._events: deque[MonitoringEvent] = deque(maxlen=max(1, settings.event_capacity))
        self._alerts: deque[Alert] = deque(maxlen=100)
        self._window_started_at = clock()
        self._window = _WindowCounters()
        self._alerted: set[str] = set()
        self._totals = _LifetimeTotals()
        self._last_sync_at: datetime | None = None
        self._thresholds = {
            COUNTER_ERRORS: settings.error_threshold,
            COUNTER_RATE_LIMIT_HITS: settings.rate_limit_threshold,
            COUNTER_SYNC_FAILURES: settings.sync_failure_threshold,
        }

    def log_event(
        self,
        event_type: MonitoringEventType,
        source: str,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> MonitoringEvent:
        """
        Record one event, update counters and fire any newly crossed alert.
        """

        event_type = MonitoringEventType(event_type)
        event = MonitoringEvent(
            type=event_type,
            source=source,
            timestamp=self._clock(),
            metadata=dict(metadata) if metadata else None,
            error_message=error_message,
            duration_ms=duration_ms,
        )

        with self._lock:
            self._roll_window_locked(event.timestamp)
            self._events.append(event)
            self._update_totals_locked(event)
            self._update_window_locked(event)
            alerts = self._collect_alerts_locked(event)
            self._alerts.extend(alerts)

        log_event(
            logger,
            _LOG_LEVELS.get(event_type, logging.INFO),
            f"monitoring_{event_type.value}",
            source=source,
            error=error_message,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            metadata=event.metadata,
        )

        for alert in alerts:
            self._deliver(alert)
        return event

    def generate_health_report(self) -> HealthReport:
        with self._lock:
            self._roll_window_locked(self._clock())
            counters = self._window
            issues: list[str] = []
            status = HealthStatus.HEALTHY

            for counter, threshold in self._thresholds.items():
                value = counters.value_of(counter)
                if value >= threshold:
                    status = HealthStatus.UNHEALTHY
                    issues.append(f"{counter} at {value} reached threshold {threshold}")
                elif value >= threshold * DEGRADED_RATIO:
                    if status is HealthStatus.HEALTHY:
                        status = HealthStatus.DEGRADED
                    issues.append(f"{counter} at {value} is close to threshold {threshold}")

            attempts = counters.api_requests + counters.api_errors
            error_rate = counters.api_errors / attempts if attempts else 0.0

            return HealthReport(
                status=status,
                error_rate=round(error_rate, 4),
                error_count=counters.errors,
                rate_limit_hit_count=counters.rate_limit_hits,
                sync_failure_count=counters.sync_failures,
                last_sync_at=self._last_sync_at,
                window_started_at=self._window_started_at,
                issues=tuple(issues),
            )

    def now(self) -> datetime:
        return self._clock()

    def get_events(
        self,
        event_type: MonitoringEventType | None = None,
        source: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[MonitoringEvent]:
        """
        Return matching events, newest first.
        """

        with self._lock:
            events = list(self._events)

        if event_type is not None:
            wanted = MonitoringEventType(event_type)
            events = [event for event in events if event.type is wanted]
        if source is not None:
            events = [event for event in events if event.source == source]
        if since is not None:
            events = [event for event in events if event.timestamp >= since]
        if until is not None:
            events = [event for event in events if event.timestamp <= until]
        events.sort(key=lambda event: event.timestamp, reverse=True)
        return events

    def get_metrics(self) -> SyncMetrics:
        with self._lock:
            totals = self._totals
            average = totals.total_duration_ms / totals.timed_syncs if totals.timed_syncs else 0.0
            return SyncMetrics(
                total_syncs=totals.total_syncs,
                successful_syncs=totals.successful_syncs,
                failed_syncs=totals.failed_syncs,
                average_duration_ms=round(average, 2),
                last_sync_time=totals.last_sync_time,
                api_requests_count=totals.api_requests_count,
                api_errors_count=totals.api_errors_count,
                rate_limit_hits=totals.rate_limit_hits,
                fallback_activations=totals.fallback_activations,
            )

    def get_error_summary(self, hours: float = 24) -> dict[str, Any]:
        since = self._clock() - timedelta(hours=hours)
        errors = [event for event in self.get_events(since=since) if event.type in ERROR_EVENT_TYPES]
        return {
            "total_errors": len(errors),
            "errors_by_source": dict(Counter(event.source for event in errors)),
            "errors_by_type": dict(Counter(event.type.value for event in errors)),
            "recent_errors": errors[:10],
        }

    def get_api_performance_metrics(self, hours: float = 24) -> ApiPerformanceMetrics:
        """
        Summarize ``api_request`` latency by source over the last ``hours``.

        Requests without a recorded duration count towards totals but not
        towards the average or the slowest list.
        """

        since = self._clock() - timedelta(hours=hours)
        api_requests = self.get_events(MonitoringEventType.API_REQUEST, since=since)
        errors = self.get_events(MonitoringEventType.API_ERROR, since=since)

        timed = [event for event in api_requests if event.duration_ms is not None]
        total_ms = sum(event.duration_ms for event in timed)
        average = total_ms / len(timed) if timed else 0.0
        error_rate = len(errors) / len(api_requests) * 100 if api_requests else 0.0
        slowest = sorted(timed, key=lambda event: event.duration_ms, reverse=True)[:SLOWEST_REQUESTS_LIMIT]

        return ApiPerformanceMetrics(
            total_requests=len(api_requests),
            average_response_time_ms=float(round(average)),
            error_rate=round(error_rate, 2),
            requests_by_source=dict(Counter(event.source for event in api_requests)),
            slowest_requests=tuple(slowest),
        )

    def get_alerts(self) -> list[Alert]:
        with self._lock:
            return list(reversed(self._alerts))

    def clear_old_data(self, older_than_hours: float = 168) -> int:
        """
        Drop events older than the cutoff and rebuild lifetime totals from the rest.

        Returns the number of events removed.
        """

        cutoff = self._clock() - timedelta(hours=older_than_hours)
        with self._lock:
            kept = [event for event in self._events if event.timestamp > cutoff]
            removed = len(self._events) - len(kept)
            self._events.clear()
            self._events.extend(kept)
            self._totals = _LifetimeTotals()
            for event in kept:
                self._update_totals_locked(event)
        if removed:
            logger.info("Cleared monitoring events removed=%s cutoff=%s", removed, cutoff.isoformat())
        return removed

    def _roll_window_locked(self, now: datetime) -> None:
        if now - self._window_started_at < timedelta(seconds=self._settings.window_seconds):
            return
        self._window = _WindowCounters()
        self._alerted.clear()
        self._window_started_at = now
        logger.debug("Monitoring window rolled started_at=%s", now.isoformat())

    def _update_totals_locked(self, event: MonitoringEvent) -> None:
        totals = self._totals
        if event.type is MonitoringEventType.SYNC_STARTED:
            totals.total_syncs += 1
        elif event.type is MonitoringEventType.SYNC_COMPLETED:
            totals.successful_syncs += 1
            totals.last_sync_time = event.timestamp
            if event.duration_ms is not None:
                totals.total_duration_ms += event.duration_ms
                totals.timed_syncs += 1
        elif event.type is MonitoringEventType.SYNC_FAILED:
            totals.failed_syncs += 1
        elif event.type is MonitoringEventType.API_REQUEST:
            totals.api_requests_count += 1
        elif event.type is MonitoringEventType.API_ERROR:
            totals.api_errors_count += 1
        elif event.type is MonitoringEventType.RATE_LIMITED:
            totals.rate_limit_hits += 1
        elif event.type is MonitoringEventType.FALLBACK_ACTIVATED:
            totals.fallback_activations += 1

    def _update_window_locked(self, event: MonitoringEvent) -> None:
        window = self._window
        if event.type in ERROR_EVENT_TYPES:
            window.errors += 1
        if event.type is MonitoringEventType.RATE_LIMITED:
            window.rate_limit_hits += 1
        if event.type is MonitoringEventType.SYNC_FAILED:
            window.sync_failures += 1
        if event.type is MonitoringEventType.API_REQUEST:
            window.api_requests += 1
        if event.type in (MonitoringEventType.API_ERROR, MonitoringEventType.VALIDATION_ERROR):
            window.api_errors += 1
        if event.type in (MonitoringEventType.SYNC_COMPLETED, MonitoringEventType.SYNC_FAILED):
            self._last_sync_at = event.timestamp

    def _collect_alerts_locked(self, event: MonitoringEvent) -> list[Alert]:
        if not self._settings.alerts_enabled:
            return []

        alerts: list[Alert] = []
        for counter, threshold in self._thresholds.items():
            value = self._window.value_of(counter)
            if value < threshold or counter in self._alerted:
                continue
            self._alerted.add(counter)
            alerts.append(
                Alert(
                    counter=counter,
                    value=value,
                    threshold=threshold,
                    message=(
                        f"{counter} reached {value} (threshold {threshold}) within "
                        f"{self._settings.window_seconds}s window; last event {event.type.value} "
                        f"from {event.source}"
                    ),
                    triggered_at=event.timestamp,
                    event=event,
                )
            )
        return alerts

    def _deliver(self, alert: Alert) -> None:
        for notifier in self._notifiers:
            try:
                notifier.send(alert)
            except Exception as exc:
                logger.error(
                    "Alert delivery failed notifier=%s counter=%s error=%s",
                    type(notifier).__name__,
                    alert.counter,
                    exc,
                )
