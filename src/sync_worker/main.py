"""Celery application for sync worker."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from catalog_sync.config import get_settings
from catalog_sync.logging_config import configure_logging

settings = get_settings()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.queue",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,  # 9 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Safety net tick; jobs also reschedule ticks themselves
    "process-queue": {
        "task": "sync_worker.tasks.queue.process_queue",
        "schedule": float(settings.queue_tick_interval_seconds),
    },
    # Drop old jobs and stats every hour
    "cleanup-queue": {
        "task": "sync_worker.tasks.queue.cleanup_queue",
        "schedule": crontab(minute=15),
    },
}


@worker_process_init.connect
def init_worker_logging(**kwargs) -> None:
    configure_logging(settings)


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
