"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pocket_pause.config import settings
from pocket_pause.worker.tasks import TaskRunner, task_runner

logger = logging.getLogger(__name__)


def setup_scheduler(runner: TaskRunner | None = None) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Returns:
        Configured scheduler instance (not started)
    """
    runner = runner or task_runner
    scheduler = AsyncIOScheduler()
    interval = max(1, int(settings.notification_queue_interval_seconds))

    scheduler.add_job(
        runner.process_notification_queue,
        IntervalTrigger(seconds=interval),
        id="notification_queue",
        name="Send due notifications",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        misfire_grace_time=300,
        replace_existing=True,
    )

    logger.info(f"Scheduler configured: notification queue every {interval}s")
    return scheduler
