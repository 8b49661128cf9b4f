"""
Background Scheduler Service

Runs survey lifecycle housekeeping with APScheduler:
- close ACTIVE surveys whose end date has passed
- activate SCHEDULED surveys whose start date has arrived

This runs in-process with the FastAPI application. Submission and upvote
checks never depend on it having run.
"""

from datetime import timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from db.session import async_session_maker

logger = structlog.get_logger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None

LIFECYCLE_JOB_ID = "survey_lifecycle"


async def trigger_lifecycle_cycle() -> dict[str, int]:
    """
    Run one lifecycle cycle in a fresh session.

    Useful for testing or manual intervention.
    """
    from services.survey_lifecycle import SurveyLifecycleManager

    async with async_session_maker() as db:
        manager = SurveyLifecycleManager(db)
        return await manager.run_lifecycle_cycle()


async def survey_lifecycle_job() -> None:
    """Scheduled wrapper around trigger_lifecycle_cycle that logs instead of raising."""
    logger.info("lifecycle_job_started")

    try:
        result = await trigger_lifecycle_cycle()
        logger.info(
            "lifecycle_job_completed",
            closed=result.get("closed_count", 0),
            activated=result.get("activated_count", 0),
        )
    except Exception as e:
        # The next tick retries; the scheduler must keep running
        logger.error("lifecycle_job_failed", error=str(e), exc_info=True)


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _scheduler


async def start_scheduler() -> None:
    """Start the background scheduler with the lifecycle job."""
    scheduler = get_scheduler()

    if scheduler.running:
        logger.info("scheduler_already_running")
        return

    scheduler.add_job(
        survey_lifecycle_job,
        trigger=IntervalTrigger(minutes=settings.LIFECYCLE_INTERVAL_MINUTES),
        id=LIFECYCLE_JOB_ID,
        name="Survey Lifecycle",
        replace_existing=True,
        max_instances=1,
    )
    logger.info("lifecycle_job_added", interval_minutes=settings.LIFECYCLE_INTERVAL_MINUTES)

    scheduler.start()
    logger.info("scheduler_started")

    # Catch up on anything that fell due while the app was down
    await survey_lifecycle_job()


async def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.info("scheduler_stopping")
        _scheduler.shutdown(wait=True)
        logger.info("scheduler_stopped")

    _scheduler = None
