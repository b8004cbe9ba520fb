"""
catalog_sync/connectors/base.py

Source client abstraction and shared HTTP mechanics.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from catalog_sync.config import SourceClientSettings
from catalog_sync.domain.monitoring import EventReporter, MonitoringEventType
from catalog_sync.errors import (
    ConfigurationError,
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    SourceError,
    SourceTimeoutError,
    SourceUnreachableError,
    error_class_of,
)
from catalog_sync.rate_limiter import RequestPacer
from catalog_sync.retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")
WireT = TypeVar("WireT", bound=BaseModel)
ParsedT = TypeVar("ParsedT")

AUTH_STATUS_CODES = {401, 403}


class BaseSourceClient(ABC, Generic[RecordT]):
    """
    Interface every provider adapter implements.

    Subclasses only describe endpoints and normalization; pacing, retries,
    status mapping and monitoring reports live here so the fallback resolver
    and sync orchestrator can treat every provider the same way.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        settings: SourceClientSettings,
        monitoring: EventReporter | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not settings.api_key:
            raise ConfigurationError(f"{source}: API key is not configured.", source=source)
        if not settings.base_url:
            raise ConfigurationError(f"{source}: base URL is not configured.", source=source)

        self.source = source
        self._settings = settings
        self._monitoring = monitoring
        self._session = session or requests.Session()
        self._sleep = sleep
        self._base_url = settings.base_url.rstrip("/")
        self._retry_policy = RetryPolicy(
            max_attempts=settings.max_attempts,
            backoff_initial_seconds=settings.backoff_initial_seconds,
            backoff_multiplier=settings.backoff_multiplier,
        )
        self._pacer = RequestPacer(
            min_interval_seconds=settings.min_request_interval_seconds,
            sleep=sleep,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @abstractmethod
    def fetch_by_query(self, query: str) -> list[RecordT]:
        """
        Search the provider and return normalized records.
        """

    @abstractmethod
    def fetch_by_id(self, external_id: str) -> RecordT | None:
        """
        Fetch one record by provider id. ``None`` means the provider has no such record.
        """

    @abstractmethod
    def list_categories(self) -> list[str]:
        """
        Return the provider's top-level categories (brands, retailers).
        """

    def check_connectivity(self) -> None:
        """
        One-shot connectivity check used at startup.
        """

        self.list_categories()

    def close(self) -> None:
        self._session.close()

    def _request_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        parse: Callable[[Any], ParsedT],
    ) -> ParsedT | None:
        """
        GET ``path`` with pacing and retry, returning ``parse(json)``.

        Returns ``None`` for HTTP 404. Raises a ``SourceError`` subclass once
        the failure is non-retryable or the attempt ceiling is reached.
        """

        url = f"{self._base_url}{path}"

        def attempt() -> ParsedT | None:
            self._pacer.wait()
            started = time.perf_counter()
            response = self._send(url, params)
            duration_ms = (time.perf_counter() - started) * 1000.0
            if response.status_code == 404:
                return None
            self._raise_for_status(response, url)
            try:
                payload = response.json()
            except ValueError as exc:
                raise MalformedResponseError(
                    f"{self.source}: response was not valid JSON.",
                    source=self.source,
                ) from exc
            parsed = parse(payload)
            self._report(
                MonitoringEventType.API_REQUEST,
                metadata={"path": path, "status_code": response.status_code},
                duration_ms=duration_ms,
            )
            return parsed

        return retry_with_backoff(
            attempt,
            policy=self._retry_policy,
            is_retryable=_is_retryable,
            on_failure=lambda attempt_number, exc: self._report_failure(path, attempt_number, exc),
            retry_after=_retry_after,
            sleep=self._sleep,
            description=f"{self.source} GET {path}",
        )

    def _send(self, url: str, params: dict[str, Any] | None) -> requests.Response:
        try:
            return self._session.request(
                method="GET",
                url=url,
                params=params,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise SourceTimeoutError(f"{self.source}: request timed out.", source=self.source) from exc
        except requests.ConnectionError as exc:
            raise SourceUnreachableError(f"{self.source}: connection failed.", source=self.source) from exc
        except requests.RequestException as exc:
            raise SourceUnreachableError(f"{self.source}: request failed: {exc}", source=self.source) from exc

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
            "User-Agent": self._settings.user_agent,
        }

    def _raise_for_status(self, response: requests.Response, url: str) -> None:
        status_code = response.status_code
        if 200 <= status_code < 300:
            return
        if status_code == 429:
            raise RateLimitedError(
                f"{self.source}: rate limited.",
                source=self.source,
                retry_after_seconds=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status_code in AUTH_STATUS_CODES:
            raise ConfigurationError(
                f"{self.source}: credentials rejected with HTTP {status_code}.",
                source=self.source,
            )
        if status_code >= 500:
            raise SourceUnreachableError(f"{self.source}: HTTP {status_code}.", source=self.source)
        logger.error(
            "Source request rejected source=%s status=%s url=%s",
            self.source,
            status_code,
            url,
        )
        raise RequestRejectedError(f"{self.source}: HTTP {status_code}.", source=self.source)

    def _validate(self, model: type[WireT], payload: Any) -> WireT:
        """
        Validate a payload against a wire model, mapping failures to ``MalformedResponseError``.
        """

        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"{self.source}: response failed {model.__name__} validation "
                f"({exc.error_count()} errors).",
                source=self.source,
            ) from exc

    def _report_failure(self, path: str, attempt: int, exc: Exception) -> None:
        if isinstance(exc, NotFoundError):
            return
        metadata = {"path": path, "attempt": attempt, "error_class": error_class_of(exc)}
        if isinstance(exc, RateLimitedError):
            self._report(MonitoringEventType.RATE_LIMITED, metadata=metadata, error_message=str(exc))
            return
        event_type = (
            MonitoringEventType.VALIDATION_ERROR
            if isinstance(exc, MalformedResponseError)
            else MonitoringEventType.API_ERROR
        )
        self._report(event_type, metadata=metadata, error_message=str(exc))

    def _report(
        self,
        event_type: MonitoringEventType,
        *,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self._monitoring is None:
            return
        self._monitoring.log_event(
            event_type,
            self.source,
            metadata=metadata,
            error_message=error_message,
            duration_ms=duration_ms,
        )

    @staticmethod
    def quote_segment(value: str) -> str:
        """
        Percent-encode a value used as a URL path segment.
        """

        return quote(value, safe="")


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, SourceError) and exc.retryable


def _retry_after(exc: Exception) -> float | None:
    if isinstance(exc, RateLimitedError):
        return exc.retry_after_seconds
    return None


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None
