"""Queue scheduler: one job per tick under a load-aware concurrency cap."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from catalog_sync.config import Settings
from catalog_sync.infrastructure.database.models import JobStatus, QueueJob
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.system_load import (
    ResourceMeter,
    current_load,
    max_concurrent_jobs,
    optimal_batch_size,
)
from shared.constants import (
    BASE_BATCH_SIZE,
    BATCH_SIZE_LOAD_THRESHOLDS,
    CLAIM_RETRIES,
    CONCURRENCY_LOAD_THRESHOLDS,
    DEFAULT_JOB_PRIORITY,
    DEFAULT_MAX_ATTEMPTS,
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    RECORD_MAX_ATTEMPTS,
    STATS_WINDOW_HOURS,
    TICK_RESCHEDULE_SECONDS,
)

logger = structlog.get_logger()


class UnknownJobTypeError(Exception):
    """No handler is registered for a job's type."""

    def __init__(self, job_type: str):
        super().__init__(f"Unknown job type: {job_type}")
        self.job_type = job_type


class TickScheduler(Protocol):
    """Requests another ``tick()`` after a delay."""

    def schedule_tick(self, delay_seconds: int) -> None:
        ...


@dataclass(frozen=True)
class JobOutcome:
    """What a handler reports back for telemetry."""

    batch_size: int = 0
    success_count: int = 0
    error_count: int = 0
    details: dict[str, Any] = field(default_factory=dict)


JobHandler = Callable[[QueueJob], Awaitable[JobOutcome]]


@dataclass(frozen=True)
class QueuePolicy:
    """Sizing, throttling and retry settings for the scheduler and handlers."""

    base_batch_size: int = BASE_BATCH_SIZE
    min_batch_size: int = MIN_BATCH_SIZE
    max_batch_size: int = MAX_BATCH_SIZE
    concurrency_thresholds: tuple[float, float] = CONCURRENCY_LOAD_THRESHOLDS
    batch_thresholds: tuple[float, float] = BATCH_SIZE_LOAD_THRESHOLDS
    default_priority: int = DEFAULT_JOB_PRIORITY
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    reschedule_delay: int = TICK_RESCHEDULE_SECONDS
    record_max_attempts: int = RECORD_MAX_ATTEMPTS
    stats_window_hours: int = STATS_WINDOW_HOURS

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueuePolicy":
        return cls(
            base_batch_size=settings.queue_base_batch_size,
            min_batch_size=settings.queue_min_batch_size,
            max_batch_size=settings.queue_max_batch_size,
            concurrency_thresholds=(
                settings.queue_concurrency_low_load,
                settings.queue_concurrency_medium_load,
            ),
            batch_thresholds=(settings.queue_batch_low_load, settings.queue_batch_medium_load),
            default_priority=settings.queue_default_priority,
            max_attempts=settings.queue_max_attempts,
            reschedule_delay=settings.queue_tick_reschedule_seconds,
            record_max_attempts=settings.record_max_attempts,
            stats_window_hours=settings.queue_stats_window_hours,
        )

    def max_concurrent_jobs(self, load: float) -> int:
        return max_concurrent_jobs(load, self.concurrency_thresholds)

    def optimal_batch_size(self, load: float) -> int:
        return optimal_batch_size(
            load,
            base=self.base_batch_size,
            floor=self.min_batch_size,
            ceiling=self.max_batch_size,
            thresholds=self.batch_thresholds,
        )


@dataclass(frozen=True)
class TickResult:
    """What one ``tick()`` did: at_capacity, idle, completed or failed."""

    outcome: str
    job_id: int | None = None
    job_status: str | None = None
    error: str | None = None


class QueueScheduler:
    """Runs at most one queued job per tick."""

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, JobHandler],
        tick_scheduler: TickScheduler,
        load_probe: Callable[[], float] = current_load,
        policy: QueuePolicy | None = None,
    ):
        self.queue = queue
        self.handlers = handlers
        self.tick_scheduler = tick_scheduler
        self.load_probe = load_probe
        self.policy = policy or QueuePolicy()

    async def submit(
        self,
        job_type: str,
        job_data: dict[str, Any] | None = None,
        priority: int | None = None,
        max_attempts: int | None = None,
    ) -> int:
        """Enqueue a job and wake the queue when nothing is running."""
        job_id = await self.queue.enqueue(
            job_type,
            job_data,
            priority=self.policy.default_priority if priority is None else priority,
            max_attempts=max_attempts or self.policy.max_attempts,
        )
        if await self.queue.count_running() == 0:
            self.tick_scheduler.schedule_tick(0)
        return job_id

    async def tick(self) -> TickResult:
        """Claim and run the next due job if the load allows it."""
        load = self.load_probe()
        capacity = self.policy.max_concurrent_jobs(load)
        running = await self.queue.count_running()
        if running >= capacity:
            logger.info("Queue at capacity", running=running, capacity=capacity, load=load)
            return TickResult(outcome="at_capacity")

        job = await self._claim_next()
        if job is None:
            return TickResult(outcome="idle")

        result = await self._run(job)
        self.tick_scheduler.schedule_tick(self.policy.reschedule_delay)
        return result

    async def _claim_next(self) -> QueueJob | None:
        for _ in range(CLAIM_RETRIES):
            job = await self.queue.dequeue_next()
            if job is None:
                return None
            if await self.queue.claim(job):
                return job
            logger.debug("Lost claim race", job_id=job.id)
        return None

    async def _run(self, job: QueueJob) -> TickResult:
        structlog.contextvars.bind_contextvars(job_id=job.id, job_type=job.job_type)
        meter = ResourceMeter()
        try:
            handler = self.handlers.get(job.job_type)
            if handler is None:
                raise UnknownJobTypeError(job.job_type)
            logger.info("Processing job", attempt=job.attempts + 1)
            outcome = await handler(job)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.exception("Job raised", error=message)
            # The job leaves running before the stat is written
            status = await self.queue.fail(job, message)
            await self.queue.record_stat(
                job.job_type,
                batch_size=_requested_batch_size(job.job_data),
                processing_time=meter.elapsed(),
                memory_delta=meter.memory_delta(),
                success_count=0,
                error_count=1,
            )
            return TickResult(outcome="failed", job_id=job.id, job_status=status, error=message)
        finally:
            structlog.contextvars.unbind_contextvars("job_id", "job_type")

        await self.queue.record_stat(
            job.job_type,
            batch_size=outcome.batch_size,
            processing_time=meter.elapsed(),
            memory_delta=meter.memory_delta(),
            success_count=outcome.success_count,
            error_count=outcome.error_count,
        )
        await self.queue.complete(job)
        logger.info(
            "Job completed",
            job_id=job.id,
            job_type=job.job_type,
            success_count=outcome.success_count,
            error_count=outcome.error_count,
        )
        return TickResult(outcome="completed", job_id=job.id, job_status=JobStatus.COMPLETED.value)


def _requested_batch_size(job_data: Any) -> int:
    """Batch size a failed job asked for, or 0 when it is not a number."""
    if not isinstance(job_data, dict):
        return 0
    try:
        return max(0, int(job_data.get("batch_size") or 0))
    except (TypeError, ValueError):
        return 0
