"""Job queue API endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from catalog_sync.api.deps import get_runtime
from catalog_sync.infrastructure.database.models import JobType
from catalog_sync.runtime import SyncRuntime
from shared.constants import MAX_BATCH_SIZE

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class SubmitJobRequest(BaseModel):
    """Request model for submitting a job."""

    job_type: JobType = Field(..., description="Type of job to run")
    job_data: dict[str, Any] = Field(default_factory=dict, description="Handler arguments")
    priority: int | None = Field(None, description="Higher runs first (default 5)")
    max_attempts: int | None = Field(None, ge=1, le=10, description="Attempts before giving up")


class SubmitJobResponse(BaseModel):
    job_id: int
    job_type: str


class JobResponse(BaseModel):
    """A queue job as stored."""

    id: int
    job_type: str
    job_data: dict[str, Any]
    priority: int
    status: str
    attempts: int
    max_attempts: int
    scheduled_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    error_message: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class QueueStatusResponse(BaseModel):
    counts: dict[str, int]
    load: float
    max_concurrent_jobs: int


class PerformanceResponse(BaseModel):
    window_hours: int
    job_types: dict[str, dict[str, float]]
    load: float
    optimal_batch_size: int


class SmartImportRequest(BaseModel):
    """Request model for a load-aware import."""

    batch_size: int | None = Field(None, ge=1, le=MAX_BATCH_SIZE)
    use_queue: bool = True
    total_batches: int = Field(1, ge=1, le=1000)
    priority: int | None = None


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=SubmitJobResponse, status_code=201)
async def submit_job(
    request: SubmitJobRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> SubmitJobResponse:
    """
    Submit a job to the queue.

    An immediate tick is scheduled when no job is currently running.
    """
    if request.job_type == JobType.DIRECT_IMPORT:
        raise HTTPException(status_code=422, detail="direct_import is not a queueable job type")

    job_id = await runtime.scheduler.submit(
        request.job_type.value,
        request.job_data,
        priority=request.priority,
        max_attempts=request.max_attempts,
    )
    return SubmitJobResponse(job_id=job_id, job_type=request.job_type.value)


@router.get("/status", response_model=QueueStatusResponse)
async def queue_status(runtime: SyncRuntime = Depends(get_runtime)) -> QueueStatusResponse:
    """Job counts per status and the current concurrency cap."""
    load = runtime.scheduler.load_probe()
    return QueueStatusResponse(
        counts=await runtime.queue.summary(),
        load=round(load, 3),
        max_concurrent_jobs=runtime.policy.max_concurrent_jobs(load),
    )


@router.get("/performance", response_model=PerformanceResponse)
async def queue_performance(
    window_hours: int | None = Query(None, ge=1, le=24 * 30),
    runtime: SyncRuntime = Depends(get_runtime),
) -> PerformanceResponse:
    """Rolling performance statistics per job type."""
    hours = window_hours or runtime.policy.stats_window_hours
    load = runtime.scheduler.load_probe()
    return PerformanceResponse(
        window_hours=hours,
        job_types=await runtime.queue.performance_summary(hours),
        load=round(load, 3),
        optimal_batch_size=runtime.policy.optimal_batch_size(load),
    )


@router.post("/smart-import")
async def smart_import(
    request: SmartImportRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    """
    Import with a batch size capped by the current server load.

    With ``use_queue`` a ``batch_import`` job is queued; otherwise one
    reconciliation pass runs inline.
    """
    return await runtime.handlers.smart_import(
        runtime.scheduler,
        batch_size=request.batch_size,
        use_queue=request.use_queue,
        total_batches=request.total_batches,
        priority=request.priority,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, runtime: SyncRuntime = Depends(get_runtime)) -> JobResponse:
    """Status of a single job."""
    job = await runtime.queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobResponse.model_validate(job)
