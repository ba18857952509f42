"""APScheduler wiring: queue processing, delivery monitoring, daily error-log cleanup."""

import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from order_notify.application.container import Services
from order_notify.config import Settings

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "error_log_cleanup"


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone=pytz.timezone(settings.TIMEZONE))


async def error_log_cleanup_job(services: Services):
    """Daily job: delete error logs older than the retention window."""
    tz = pytz.timezone(services.settings.TIMEZONE)
    logger.info(f"Running error log cleanup at {datetime.now(tz).strftime('%d/%m/%Y %H:%M')}")

    deleted = await services.error_logger.cleanup_old_logs()
    logger.info(f"Error log cleanup removed {deleted} entries")


def start_scheduler(scheduler: AsyncIOScheduler, services: Services):
    """Register the jobs enabled in settings and start the scheduler."""
    settings = services.settings
    tz = pytz.timezone(settings.TIMEZONE)

    if settings.QUEUE_AUTO_START:
        services.queue.start_auto_processing()

    if settings.MONITOR_AUTO_START:
        services.monitor.start_monitoring()

    # Error log retention: daily at 03:00
    scheduler.add_job(
        error_log_cleanup_job,
        trigger=CronTrigger(hour=3, minute=0, timezone=tz),
        args=[services],
        id=CLEANUP_JOB_ID,
        name="Error Log Cleanup (Daily 03:00)",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        f"Scheduler started: queue every {settings.QUEUE_PROCESSING_INTERVAL_SECONDS}s, "
        f"monitoring every {settings.MONITOR_CHECK_INTERVAL_SECONDS}s, cleanup daily at 03:00 {settings.TIMEZONE}"
    )


def stop_scheduler(scheduler: AsyncIOScheduler, services: Services):
    """Remove the service jobs and stop the scheduler without waiting for running jobs."""
    services.queue.stop_auto_processing()
    services.monitor.stop_monitoring()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def scheduler_status(scheduler: AsyncIOScheduler) -> dict:
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }
