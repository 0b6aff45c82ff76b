"""FastAPI dependencies."""

from typing import AsyncGenerator

from fastapi import Depends

from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.scheduling import CeleryTickScheduler
from catalog_sync.runtime import SyncRuntime, open_runtime


async def get_runtime(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[SyncRuntime, None]:
    """Sync components for the duration of one request."""
    async with open_runtime(settings, CeleryTickScheduler.from_settings(settings)) as runtime:
        yield runtime
