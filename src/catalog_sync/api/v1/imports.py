"""Raw record import API endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from catalog_sync.api.deps import get_runtime
from catalog_sync.runtime import SyncRuntime

router = APIRouter()


class ResetRequest(BaseModel):
    """Records to reset; omit ``ids`` to reset every Failed record."""

    ids: list[int] | None = Field(None, description="Raw record ids")


class ResetResponse(BaseModel):
    reset: int


@router.get("/statistics")
async def import_statistics(runtime: SyncRuntime = Depends(get_runtime)) -> dict[str, int]:
    """Raw record counts per status."""
    return await runtime.records.statistics()


@router.post("/reset", response_model=ResetResponse)
async def reset_records(
    request: ResetRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> ResetResponse:
    """Move records back to Pending so the next import retries them."""
    return ResetResponse(reset=await runtime.records.reset_to_pending(request.ids))
