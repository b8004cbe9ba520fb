"""
Minimum-interval request pacing for provider clients.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class RequestPacer:
    """
    Enforces a minimum interval between outbound requests to one provider.

    Safe to share between worker threads: callers are serialized on the
    pacing decision so concurrent batches cannot burst past the interval.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval_seconds = max(0.0, min_interval_seconds)
        self._sleep = sleep
        self._monotonic = monotonic
        self._last_request_monotonic: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval_seconds

    def wait(self) -> float:
        """
        Sleep as needed before the next request. Returns the seconds waited.
        """

        if self._min_interval_seconds <= 0:
            return 0.0

        with self._lock:
            waited = 0.0
            if self._last_request_monotonic is not None:
                elapsed = self._monotonic() - self._last_request_monotonic
                remaining = self._min_interval_seconds - elapsed
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
            self._last_request_monotonic = self._monotonic()
            return waited
