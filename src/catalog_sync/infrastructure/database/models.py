"""SQLAlchemy models for the wholesale catalog sync.

These models are stored in the 'wholesale_sync' schema, separate from the
catalog store's own tables.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.clock import utcnow
from shared.constants import DEFAULT_JOB_PRIORITY, DEFAULT_MAX_ATTEMPTS

# Schema for all sync tables
SCHEMA = "wholesale_sync"


class Base(DeclarativeBase):
    """Base class for all models."""

    __table_args__ = {"schema": SCHEMA}


# =============================================================================
# Enums
# =============================================================================


class WholesalerName(str, PyEnum):
    """Wholesaler feeds the importer understands."""

    JS = "JS"
    MADA = "MADA"
    AREN = "AREN"


class RecordStatus(str, PyEnum):
    """Lifecycle of a raw feed record."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class JobStatus(str, PyEnum):
    """Lifecycle of a queue job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, PyEnum):
    """Job types with a registered handler, plus stat-only types."""

    BATCH_IMPORT = "batch_import"
    IMAGE_PROCESSING = "image_processing"
    DIRECT_IMPORT = "direct_import"


# =============================================================================
# Raw Feed Records
# =============================================================================


class RawFeedRecord(Base):
    """One product as delivered by a wholesaler feed.

    Status moves Pending -> Completed/Failed/Skipped; only the explicit
    reset operation moves a record back to Pending.
    """

    __tablename__ = "raw_feed_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wholesaler_name: Mapped[str] = mapped_column(String(20), nullable=False)
    sku: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(255))

    # Feed document, either decoded JSON or the raw JSON string
    raw_payload: Mapped[Any] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=RecordStatus.PENDING.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_raw_feed_records_status_id", "status", "id"),
        Index("ix_raw_feed_records_wholesaler_status", "wholesaler_name", "status"),
        {"schema": SCHEMA},
    )


# =============================================================================
# Queue Jobs
# =============================================================================


class QueueJob(Base):
    """Durable background job with priority, retry and backoff."""

    __tablename__ = "queue_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    job_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=DEFAULT_JOB_PRIORITY, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_ATTEMPTS, nullable=False
    )

    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_queue_jobs_status_scheduled", "status", "scheduled_at"),
        Index("ix_queue_jobs_priority_id", "priority", "id"),
        {"schema": SCHEMA},
    )


# =============================================================================
# Performance Stats
# =============================================================================


class PerformanceStat(Base):
    """Append-only telemetry row written after every processed job."""

    __tablename__ = "performance_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    batch_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processing_time: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    memory_delta: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # bytes
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_performance_stats_type_created", "job_type", "created_at"),
        {"schema": SCHEMA},
    )
