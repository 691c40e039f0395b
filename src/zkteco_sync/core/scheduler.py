"""APScheduler BackgroundScheduler with the periodic sync job."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from zkteco_sync.config import get_settings
from zkteco_sync.zk.pool import get_pool

logger = logging.getLogger(__name__)


# -- Job functions (run in thread-pool) --


def _job_sync_device(device_key: str) -> None:
    """Extract users and attendance from one device and upsert them."""
    from zkteco_sync.core.pipeline import run_sync

    try:
        result = run_sync(device_key)
        logger.info("Scheduled sync complete for %s: %s", device_key, result["sync"])
        if result["failed_steps"]:
            logger.warning("Scheduled sync for %s had failed steps: %s", device_key, result["failed_steps"])
    except Exception as exc:
        logger.error("Scheduled sync failed for %s: %s", device_key, exc)


# -- Scheduler lifecycle --


_scheduler: Optional[BackgroundScheduler] = None


def start_scheduler() -> BackgroundScheduler:
    """Create, configure, and start the background scheduler.

    Registers one interval sync job per enabled device, staggered by a
    minute so terminals are not all polled at once.
    """
    global _scheduler

    settings = get_settings()
    pool = get_pool()

    scheduler = BackgroundScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
    )

    for i, key in enumerate(pool.device_keys()):
        scheduler.add_job(
            _job_sync_device,
            "interval",
            args=[key],
            minutes=settings.SYNC_INTERVAL_MINUTES,
            id=f"sync_{key}",
            name=f"Sync: {key}",
            next_run_time=_staggered_start(seconds=i * 60),
        )
        logger.info(
            "Scheduled sync for %s every %d min (offset %ds)",
            key,
            settings.SYNC_INTERVAL_MINUTES,
            i * 60,
        )

    scheduler.start()
    _scheduler = scheduler
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    return scheduler


def stop_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None


def get_scheduler() -> Optional[BackgroundScheduler]:
    """Return the current scheduler instance (may be None)."""
    return _scheduler


def _staggered_start(seconds: int) -> datetime:
    return datetime.now() + timedelta(seconds=seconds)
