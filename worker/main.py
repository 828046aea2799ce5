"""
Maintenance worker with scheduled jobs.
Runs the date-based due check for all users.
"""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from rideway.utils.notification_tracker import NotificationDebouncer

from worker.config import settings
from worker.jobs.due_check_job import run_due_check

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_scheduler(debouncer: NotificationDebouncer) -> AsyncIOScheduler:
    """Scheduler with the due check and debouncer pruning jobs registered."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        run_due_check,
        trigger=CronTrigger.from_crontab(settings.DUE_CHECK_CRON_SCHEDULE),
        args=[debouncer],
        id="maintenance_due_check",
        name="Check date-based maintenance due",
        replace_existing=True,
    )

    scheduler.add_job(
        debouncer.prune,
        trigger=CronTrigger.from_crontab(settings.PRUNE_CRON_SCHEDULE),
        args=[settings.NOTIFICATION_RETENTION_SECONDS],
        id="debouncer_prune",
        name="Prune notification cooldowns",
        replace_existing=True,
    )

    return scheduler


async def main():
    """Initialize and run the worker scheduler."""
    logger.info("Starting maintenance worker...")

    debouncer = NotificationDebouncer(settings.NOTIFICATION_COOLDOWN_SECONDS)
    scheduler = build_scheduler(debouncer)

    # Start scheduler
    scheduler.start()
    logger.info(f"Scheduler started. Jobs: {[job.id for job in scheduler.get_jobs()]}")

    # Keep the worker running
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down worker...")
        scheduler.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
