"""Queue processing tasks."""

import asyncio

import structlog
from celery import current_app, shared_task
from sqlalchemy.exc import SQLAlchemyError

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.scheduling import CeleryTickScheduler
from catalog_sync.runtime import open_runtime

logger = structlog.get_logger()


async def _tick() -> dict:
    settings = get_settings()
    async with open_runtime(settings, CeleryTickScheduler(current_app)) as runtime:
        result = await runtime.scheduler.tick()
    return {
        "outcome": result.outcome,
        "job_id": result.job_id,
        "job_status": result.job_status,
        "error": result.error,
    }


async def _cleanup() -> dict:
    settings = get_settings()
    async with open_runtime(settings, CeleryTickScheduler(current_app)) as runtime:
        return await runtime.queue.cleanup(
            job_days=settings.queue_job_retention_days,
            stat_days=settings.queue_stats_retention_days,
        )


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def process_queue(self) -> dict:
    """
    Run one scheduler tick.

    The tick claims at most one due job and schedules the next tick itself
    after processing it. Job failures are handled by the queue's own retry;
    database and connection errors are retried by Celery.

    Returns:
        dict: Outcome of the tick
    """
    try:
        result = asyncio.run(_tick())
    except (SQLAlchemyError, OSError) as e:
        logger.error("Queue tick failed", error=str(e))
        raise self.retry(exc=e)

    logger.info("Queue tick finished", **result)
    return result


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def cleanup_queue(self) -> dict:
    """
    Delete finished jobs older than 7 days and stats older than 30 days.

    Returns:
        dict: Number of deleted jobs and stats
    """
    try:
        return asyncio.run(_cleanup())
    except (SQLAlchemyError, OSError) as e:
        logger.error("Queue cleanup failed", error=str(e))
        raise self.retry(exc=e)
