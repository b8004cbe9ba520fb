"""
catalog_sync/scheduler/jobs.py

APScheduler-based timer for periodic full catalog syncs.

Lifecycle
----------
``build_sync_scheduler()`` returns a configured but *not yet started*
``BackgroundScheduler`` with a single interval job. The integration facade
owns it: ``start_automatic_sync`` starts it and ``stop_automatic_sync``
shuts it down.

Overlap
--------
``max_instances=1`` and ``coalesce=True`` keep APScheduler from stacking
ticks; the tick itself also checks the orchestrator's in-flight flag and
skips (never queues) while a run is still going.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

PERIODIC_SYNC_JOB_ID = "periodic_full_sync"


def build_sync_scheduler(
    tick: Callable[[], object],
    interval_seconds: int,
) -> BackgroundScheduler:
    """
    Build the scheduler that calls ``tick`` every ``interval_seconds``.

    The caller must call ``.start()`` and ``.shutdown()`` at the appropriate
    lifecycle points.
    """

    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive.")

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        tick,
        trigger="interval",
        seconds=interval_seconds,
        id=PERIODIC_SYNC_JOB_ID,
        name="Periodic full catalog sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=max(60, interval_seconds // 10),
    )
    logger.info("Sync scheduler configured interval_seconds=%s", interval_seconds)
    return scheduler
