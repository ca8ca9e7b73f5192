# brezcode/scheduler.py
from __future__ import annotations

from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

from .config import settings
from .debug_utils import log

# ──────────────────────────────────────────────────────────────────────────────
# APScheduler setup
# ──────────────────────────────────────────────────────────────────────────────

CLEANUP_JOB_ID = "training_cleanup_abandoned"

executors = {"default": ThreadPoolExecutor(2)}
scheduler = BackgroundScheduler(executors=executors, timezone="UTC")


def start_scheduler():
    if not scheduler.running:
        scheduler.start()


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)


def run_cleanup(get_service: Callable[[], object], hours: float | None = None) -> list[str]:
    """One sweep; errors are logged so a failing run never kills the job."""
    threshold = settings.CLEANUP_ABANDONED_HOURS if hours is None else hours
    try:
        return get_service().cleanup_abandoned_sessions(threshold)
    except Exception as e:
        log("scheduler", f"cleanup failed: {e!r}")
        return []


def schedule_cleanup(
    get_service: Callable[[], object],
    interval_minutes: int | None = None,
    hours: float | None = None,
) -> bool:
    """
    Register the recurring abandoned-session sweep. Returns False (nothing
    scheduled) when the interval is 0, which leaves the startup sweep only.
    """
    minutes = settings.CLEANUP_INTERVAL_MINUTES if interval_minutes is None else interval_minutes
    if not minutes or minutes <= 0:
        return False
    scheduler.add_job(
        run_cleanup,
        "interval",
        minutes=minutes,
        args=[get_service, hours],
        id=CLEANUP_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    start_scheduler()
    log("scheduler", f"abandoned-session sweep every {minutes} min")
    return True
