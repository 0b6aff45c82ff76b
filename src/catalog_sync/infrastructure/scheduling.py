"""Celery implementation of the tick scheduling port."""

from functools import lru_cache

import structlog
from celery import Celery

from catalog_sync.config import Settings

logger = structlog.get_logger()

PROCESS_QUEUE_TASK = "sync_worker.tasks.queue.process_queue"


@lru_cache
def get_celery_client(broker: str, backend: str) -> Celery:
    """Producer-side Celery app used to send tasks to the sync worker."""
    return Celery("sync_worker", broker=broker, backend=backend)


class CeleryTickScheduler:
    """Schedules the next ``tick()`` as a delayed ``process_queue`` task."""

    def __init__(self, app: Celery, task_name: str = PROCESS_QUEUE_TASK, queue: str = "sync"):
        self.app = app
        self.task_name = task_name
        self.queue = queue

    @classmethod
    def from_settings(cls, settings: Settings) -> "CeleryTickScheduler":
        return cls(get_celery_client(settings.celery_broker, settings.celery_backend))

    def schedule_tick(self, delay_seconds: int) -> None:
        self.app.send_task(self.task_name, countdown=max(0, delay_seconds), queue=self.queue)
        logger.debug("Scheduled queue tick", delay_seconds=delay_seconds)
