from __future__ import annotations
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger
from pytz import utc
from loguru import logger

from ..config import settings

executors = {
    'default': AsyncIOExecutor()
}

job_defaults = {
    'coalesce': True,  # Combine missed runs
    'max_instances': 1,  # One instance per job
    'misfire_grace_time': 300,  # 5 min grace for missed jobs
}

scheduler = AsyncIOScheduler(
    executors=executors,
    job_defaults=job_defaults,
    timezone=utc,
)


def register_jobs():
    scheduler.add_job(
        func="summit_sms.scheduler.jobs:followup_sweep_job",
        trigger=IntervalTrigger(minutes=settings.FOLLOWUP_SWEEP_MINUTES, timezone=utc),
        id="followup_sweep",
        replace_existing=True,
    )
    logger.info("Scheduled followup_sweep_job every {} minutes", settings.FOLLOWUP_SWEEP_MINUTES)

    scheduler.add_job(
        func="summit_sms.scheduler.jobs:purge_expired_clarifications_job",
        trigger=IntervalTrigger(hours=1, timezone=utc),
        id="purge_expired_clarifications",
        replace_existing=True,
    )
    logger.info("Scheduled purge_expired_clarifications_job hourly")


def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        try:
            register_jobs()
        except Exception:
            logger.exception("Failed to schedule jobs")
        logger.info("APScheduler started")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler shut down")
