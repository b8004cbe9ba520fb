"""
catalog_sync/retry.py

Shared retry-with-backoff utility.

Every provider client and the SQL catalog store go through ``retry_with_backoff``
so the backoff policy is defined once. Callers supply an ``is_retryable``
classifier; non-retryable errors are raised immediately, retryable ones are
retried until ``max_attempts`` total attempts have been made.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ceiling and exponential backoff parameters.

    ``max_attempts`` counts the initial attempt, so ``max_attempts=3`` means
    one call plus two retries.
    """

    max_attempts: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """
        Return the wait after failed attempt number ``attempt`` (1-based).
        """

        multiplier = max(1.0, self.backoff_multiplier)
        delay = max(0.0, self.backoff_initial_seconds) * (multiplier ** max(0, attempt - 1))
        return min(delay, self.max_backoff_seconds)


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool],
    on_failure: Callable[[int, Exception], None] | None = None,
    retry_after: Callable[[Exception], float | None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` with bounded retries and non-decreasing backoff.

    Args:
        operation: Zero-argument callable performing one attempt.
        policy: Attempt ceiling and backoff parameters.
        is_retryable: Classifier deciding whether a failure is worth retrying.
        on_failure: Optional hook called with ``(attempt, exc)`` for every
            failed attempt, retryable or not.
        retry_after: Optional hook extracting a server-requested wait from an
            exception (e.g. a ``Retry-After`` header).
        sleep: Sleep function, injectable for tests.
        description: Label used in log lines.

    Returns:
        The first successful result of ``operation``.

    Raises:
        The last exception raised by ``operation`` once it is non-retryable or
        the attempt ceiling is reached.
    """

    max_attempts = max(1, policy.max_attempts)
    previous_delay = 0.0

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if on_failure is not None:
                on_failure(attempt, exc)

            if not is_retryable(exc) or attempt >= max_attempts:
                if attempt >= max_attempts and is_retryable(exc):
                    logger.error(
                        "Retry exhausted description=%s attempts=%s error=%s",
                        description,
                        attempt,
                        exc,
                    )
                raise

            delay = policy.delay_for(attempt)
            if retry_after is not None:
                requested = retry_after(exc)
                if requested is not None:
                    delay = max(delay, min(requested, policy.max_backoff_seconds))
            # Delays never shrink between consecutive attempts.
            delay = max(delay, previous_delay)
            previous_delay = delay

            logger.warning(
                "Retrying description=%s attempt=%s/%s wait_seconds=%.2f error=%s",
                description,
                attempt,
                max_attempts,
                delay,
                exc,
            )
            if delay > 0:
                sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
