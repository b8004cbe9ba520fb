"""
catalog_sync/errors.py

Typed error taxonomy for provider access and sync orchestration.
"""

from __future__ import annotations


class SourceError(RuntimeError):
    """
    Base class for failures talking to an external provider.

    ``error_class`` is the stable label reported to monitoring so upstream
    components and operators can branch on the failure kind.
    """

    error_class = "SourceError"
    retryable = False

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class SourceUnreachableError(SourceError):
    """Raised on connection-level failures and provider 5xx responses."""

    error_class = "Unreachable"
    retryable = True


class SourceTimeoutError(SourceError):
    """Raised when a provider call does not complete within its deadline."""

    error_class = "Timeout"
    retryable = True


class RateLimitedError(SourceError):
    """Raised when a provider answers HTTP 429."""

    error_class = "RateLimited"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(message, source=source)
        self.retry_after_seconds = retry_after_seconds


class MalformedResponseError(SourceError):
    """Raised when a response is not JSON or fails schema validation."""

    error_class = "MalformedResponse"


class NotFoundError(SourceError):
    """
    Valid negative result: the provider has no record for the lookup.
    """

    error_class = "NotFound"


class RequestRejectedError(SourceError):
    """Raised for 4xx responses that are neither auth, 404 nor 429."""

    error_class = "RequestRejected"


class ConfigurationError(SourceError):
    """
    Raised for missing or invalid credentials and configuration.

    Fatal only at startup; at runtime it is reported like any other failure.
    """

    error_class = "ConfigurationError"


class LiveLookupSuppressedError(SourceError):
    """Raised when a key has exhausted its live-failure budget and is cooling down."""

    error_class = "Suppressed"


class SyncAlreadyRunningError(RuntimeError):
    """Raised when a full sync is requested while another one is in flight."""


class SyncRunError(RuntimeError):
    """Raised when a full sync run cannot produce a meaningful job list."""


def error_class_of(exc: BaseException) -> str:
    """
    Return the monitoring label for an exception.
    """

    if isinstance(exc, SourceError):
        return exc.error_class
    return type(exc).__name__
