"""Durable priority job queue with retry backoff and performance telemetry."""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.infrastructure.database.models import JobStatus, PerformanceStat, QueueJob
from shared.clock import utcnow
from shared.constants import (
    DEFAULT_JOB_PRIORITY,
    DEFAULT_MAX_ATTEMPTS,
    JOB_RETENTION_DAYS,
    RETRY_BASE_DELAY_SECONDS,
    STATS_RETENTION_DAYS,
    STATS_WINDOW_HOURS,
)

logger = structlog.get_logger()


class JobQueue:
    """
    Queue of background jobs stored in ``queue_jobs``.

    Jobs run highest priority first, then oldest first. A failed job is
    retried after ``retry_base_delay * 2**attempts`` seconds until it has
    used ``max_attempts``, after which it stays ``failed``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
        retry_base_delay: int = RETRY_BASE_DELAY_SECONDS,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.retry_base_delay = retry_base_delay

    def backoff_seconds(self, attempts: int) -> int:
        """Delay before the next try after ``attempts`` failures."""
        return self.retry_base_delay * 2**attempts

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def enqueue(
        self,
        job_type: str,
        job_data: dict[str, Any] | None = None,
        priority: int = DEFAULT_JOB_PRIORITY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay_seconds: int = 0,
    ) -> int:
        """Add a job and return its id."""
        now = self.clock()
        job = QueueJob(
            job_type=job_type,
            job_data=job_data or {},
            priority=priority,
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            scheduled_at=now + timedelta(seconds=delay_seconds),
            created_at=now,
        )
        async with self.session_factory() as session:
            session.add(job)
            await session.commit()
        logger.info("Job enqueued", job_id=job.id, job_type=job_type, priority=priority)
        return job.id

    async def dequeue_next(self) -> QueueJob | None:
        """The next due pending job, without claiming it."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(QueueJob)
                .where(
                    QueueJob.status == JobStatus.PENDING.value,
                    QueueJob.scheduled_at <= self.clock(),
                    QueueJob.attempts < QueueJob.max_attempts,
                )
                .order_by(QueueJob.priority.desc(), QueueJob.id.asc())
                .limit(1)
            )
            return result.scalars().first()

    async def claim(self, job: QueueJob) -> bool:
        """Move a job from pending to running. False if another worker won."""
        now = self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                update(QueueJob)
                .where(QueueJob.id == job.id, QueueJob.status == JobStatus.PENDING.value)
                .values(status=JobStatus.RUNNING.value, started_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount != 1:
            return False
        job.status = JobStatus.RUNNING.value
        job.started_at = now
        return True

    async def complete(self, job: QueueJob) -> None:
        now = self.clock()
        async with self.session_factory() as session:
            await session.execute(
                update(QueueJob)
                .where(QueueJob.id == job.id)
                .values(status=JobStatus.COMPLETED.value, completed_at=now, error_message=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        job.status = JobStatus.COMPLETED.value
        job.completed_at = now

    async def fail(self, job: QueueJob, error_message: str) -> str:
        """Record a failed run; reschedule with backoff or fail permanently.

        Returns the job's new status.
        """
        now = self.clock()
        attempts = job.attempts + 1
        values: dict[str, Any] = {"attempts": attempts, "error_message": error_message[:2000]}
        if attempts >= job.max_attempts:
            values.update(status=JobStatus.FAILED.value, completed_at=now)
        else:
            values.update(
                status=JobStatus.PENDING.value,
                scheduled_at=now + timedelta(seconds=self.backoff_seconds(attempts)),
            )

        async with self.session_factory() as session:
            await session.execute(
                update(QueueJob)
                .where(QueueJob.id == job.id, QueueJob.status == JobStatus.RUNNING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        for key, value in values.items():
            setattr(job, key, value)
        logger.warning(
            "Job failed",
            job_id=job.id,
            job_type=job.job_type,
            attempts=attempts,
            max_attempts=job.max_attempts,
            status=job.status,
            error=error_message,
        )
        return job.status

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def count_running(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(QueueJob.id)).where(QueueJob.status == JobStatus.RUNNING.value)
            )
            return result.scalar() or 0

    async def get(self, job_id: int) -> QueueJob | None:
        async with self.session_factory() as session:
            return await session.get(QueueJob, job_id)

    async def summary(self) -> dict[str, int]:
        """Job counts per status, plus a total."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(QueueJob.status, func.count(QueueJob.id)).group_by(QueueJob.status)
            )
            counts = {row[0]: row[1] for row in result.all()}

        summary = {status.value: counts.get(status.value, 0) for status in JobStatus}
        summary["total"] = sum(counts.values())
        return summary

    # -------------------------------------------------------------------------
    # Telemetry
    # -------------------------------------------------------------------------

    async def record_stat(
        self,
        job_type: str,
        batch_size: int,
        processing_time: float,
        memory_delta: int,
        success_count: int,
        error_count: int,
    ) -> None:
        stat = PerformanceStat(
            job_type=job_type,
            batch_size=batch_size,
            processing_time=processing_time,
            memory_delta=memory_delta,
            success_count=success_count,
            error_count=error_count,
            created_at=self.clock(),
        )
        async with self.session_factory() as session:
            session.add(stat)
            await session.commit()

    async def performance_summary(
        self, window_hours: int = STATS_WINDOW_HOURS
    ) -> dict[str, dict[str, float]]:
        """Per job type aggregates over the last ``window_hours``."""
        since = self.clock() - timedelta(hours=window_hours)
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    PerformanceStat.job_type,
                    func.count(PerformanceStat.id),
                    func.avg(PerformanceStat.processing_time),
                    func.avg(PerformanceStat.memory_delta),
                    func.avg(PerformanceStat.batch_size),
                    func.sum(PerformanceStat.success_count),
                    func.sum(PerformanceStat.error_count),
                )
                .where(PerformanceStat.created_at >= since)
                .group_by(PerformanceStat.job_type)
            )
            rows = result.all()

        summary = {}
        for job_type, count, avg_time, avg_memory, avg_batch, successes, errors in rows:
            successes = int(successes or 0)
            errors = int(errors or 0)
            handled = successes + errors
            summary[job_type] = {
                "job_count": int(count),
                "avg_processing_time": round(float(avg_time or 0.0), 4),
                "avg_memory_delta": round(float(avg_memory or 0.0), 1),
                "avg_batch_size": round(float(avg_batch or 0.0), 1),
                "total_success": successes,
                "total_errors": errors,
                "success_rate": round(successes / handled, 4) if handled else 0.0,
            }
        return summary

    async def cleanup(
        self,
        job_days: int = JOB_RETENTION_DAYS,
        stat_days: int = STATS_RETENTION_DAYS,
    ) -> dict[str, int]:
        """Delete finished jobs and stats older than their retention windows."""
        now = self.clock()
        async with self.session_factory() as session:
            jobs = await session.execute(
                delete(QueueJob)
                .where(
                    QueueJob.status.in_([JobStatus.COMPLETED.value, JobStatus.FAILED.value]),
                    QueueJob.created_at < now - timedelta(days=job_days),
                )
                .execution_options(synchronize_session=False)
            )
            stats = await session.execute(
                delete(PerformanceStat)
                .where(PerformanceStat.created_at < now - timedelta(days=stat_days))
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        removed = {"jobs_deleted": jobs.rowcount, "stats_deleted": stats.rowcount}
        logger.info("Queue cleanup finished", **removed)
        return removed
