"""
catalog_sync/logging_utils.py

JSON log lines for sync lifecycle, alert and monitoring events.
"""

from __future__ import annotations

import json
import logging
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Write ``event`` and its non-empty ``fields`` as one sorted JSON object.

    Fields that are ``None`` are dropped so optional context (error text,
    durations) only appears when present. Encoding is skipped entirely when
    ``level`` is disabled for ``logger``.
    """

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    payload.update((name, value) for name, value in fields.items() if value is not None)
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
