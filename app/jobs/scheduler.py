"""
APScheduler Configuration

Background job scheduler for order housekeeping. The scheduler is built
from the application settings at startup and kept on app.state.

Jobs:
- auto_deliver_shipped_orders: daily, AUTO_DELIVERY_CRON_HOUR:AUTO_DELIVERY_CRON_MINUTE
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.jobs.order_jobs import auto_deliver_shipped_orders

logger = logging.getLogger(__name__)

AUTO_DELIVERY_JOB_ID = "auto_deliver_shipped_orders"

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 300,
}


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    return AsyncIOScheduler(
        jobstores={'default': MemoryJobStore()},
        executors={'default': AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone=settings.SCHEDULER_TIMEZONE,
    )


async def run_job(
    job_name: str,
    job: Callable[..., Awaitable[Dict[str, Any]]],
    *args,
) -> None:
    """
    Wrapper called by APScheduler.

    Logs the job summary; a failing run is logged and left for the next tick.
    """
    try:
        result = await job(*args)
        logger.info(f"Job '{job_name}' completed: {result}")
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")


def register_jobs(
    scheduler: AsyncIOScheduler,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    # Auto-deliver stale shipped orders once a day
    scheduler.add_job(
        run_job,
        'cron',
        hour=settings.AUTO_DELIVERY_CRON_HOUR,
        minute=settings.AUTO_DELIVERY_CRON_MINUTE,
        args=[AUTO_DELIVERY_JOB_ID, auto_deliver_shipped_orders, session_factory, settings],
        id=AUTO_DELIVERY_JOB_ID,
        name='Auto-Deliver Shipped Orders',
        replace_existing=True,
    )


def start_scheduler(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIOScheduler:
    """Build, register and start the background job scheduler."""
    scheduler = create_scheduler(settings)
    register_jobs(scheduler, settings, session_factory)
    scheduler.start()
    logger.info("Background job scheduler started")

    for job in scheduler.get_jobs():
        logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")

    return scheduler


def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status(scheduler: AsyncIOScheduler) -> List[Dict[str, Any]]:
    """Get status of all scheduled jobs."""
    status = []
    for job in scheduler.get_jobs():
        # Jobs added before start() have no next_run_time yet
        next_run_time = getattr(job, 'next_run_time', None)
        status.append({
            'id': job.id,
            'name': job.name,
            'next_run_time': str(next_run_time) if next_run_time else None,
            'trigger': str(job.trigger),
        })
    return status
