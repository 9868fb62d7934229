"""APScheduler configuration for periodic boost weight tracking.

Runs the boost tracker at a configured interval so the boost CSV stays
fresh without manual runs.
"""

from datetime import datetime, timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sts_helper.core.config import get_settings

logger = structlog.get_logger()

BOOST_JOB_ID = "boost_tracking"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None

# Track run state for observability
_last_run_result: dict = {
    "success": None,
    "timestamp": None,
    "error": None,
    "consecutive_failures": 0,
}


async def _run_boost_tracking() -> None:
    """Run the scheduled boost tracking job."""
    from sts_helper.services.boost import BoostTracker

    logger.info("Scheduled boost tracking starting")
    try:
        result = await BoostTracker().run()
    except Exception as e:
        _last_run_result["consecutive_failures"] += 1
        _last_run_result["error"] = str(e)
        _last_run_result["success"] = False
        _last_run_result["timestamp"] = datetime.now(timezone.utc).isoformat()
        logger.error(
            "Scheduled boost tracking failed",
            error=str(e),
            consecutive_failures=_last_run_result["consecutive_failures"],
        )
        return

    _last_run_result["consecutive_failures"] = 0
    _last_run_result["error"] = None
    _last_run_result["success"] = True
    _last_run_result["timestamp"] = datetime.now(timezone.utc).isoformat()
    logger.info(
        "Scheduled boost tracking completed",
        validators=result.validator_count,
        written=result.written,
    )


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler singleton."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone="UTC")
    return _scheduler


def start_scheduler() -> None:
    """Start the background scheduler if boost tracking is enabled."""
    settings = get_settings()
    if not settings.enable_boost_tracking:
        logger.info("Boost tracking disabled, scheduler not started")
        return

    scheduler = get_scheduler()

    # Don't start twice
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    scheduler.add_job(
        _run_boost_tracking,
        trigger=IntervalTrigger(minutes=settings.boost_refresh_minutes),
        id=BOOST_JOB_ID,
        name="Boost Weight Tracking",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started",
        boost_interval=f"{settings.boost_refresh_minutes}m",
    )


def stop_scheduler() -> None:
    """Stop the background scheduler."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Get current scheduler status for health checks."""
    scheduler = get_scheduler()
    job = scheduler.get_job(BOOST_JOB_ID) if scheduler.running else None

    return {
        "running": scheduler.running,
        "next_run": job.next_run_time.isoformat() if job and job.next_run_time else None,
        "job_count": len(scheduler.get_jobs()) if scheduler.running else 0,
        "last_run": _last_run_result.copy(),
    }
