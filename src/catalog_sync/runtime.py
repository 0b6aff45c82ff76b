"""Wiring of stores, engine, queue and scheduler from settings."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.config import Settings
from catalog_sync.infrastructure.catalog import CatalogStore, WooCommerceClient
from catalog_sync.infrastructure.database.connection import (
    create_session_factory,
    get_async_engine,
)
from catalog_sync.services.import_jobs import ImportJobHandlers
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.normalization import PricingPolicy, ProductNormalizer
from catalog_sync.services.raw_records import RawRecordStore
from catalog_sync.services.reconciliation import ReconciliationEngine, ReconciliationPolicy
from catalog_sync.services.scheduler import QueuePolicy, QueueScheduler, TickScheduler
from catalog_sync.services.system_load import current_load


@dataclass
class SyncRuntime:
    records: RawRecordStore
    queue: JobQueue
    engine: ReconciliationEngine
    handlers: ImportJobHandlers
    scheduler: QueueScheduler
    policy: QueuePolicy


def build_runtime(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    catalog: CatalogStore,
    tick_scheduler: TickScheduler,
    load_probe: Callable[[], float] = current_load,
) -> SyncRuntime:
    """Assemble the sync components around an open catalog store."""
    policy = QueuePolicy.from_settings(settings)
    records = RawRecordStore(session_factory)
    queue = JobQueue(session_factory, retry_base_delay=settings.queue_retry_base_delay_seconds)
    engine = ReconciliationEngine(
        records,
        catalog,
        ProductNormalizer(PricingPolicy.from_settings(settings)),
        ReconciliationPolicy.from_settings(settings),
    )
    handlers = ImportJobHandlers(engine, records, queue, catalog, policy, load_probe)
    scheduler = QueueScheduler(queue, handlers.as_mapping(), tick_scheduler, load_probe, policy)
    return SyncRuntime(records, queue, engine, handlers, scheduler, policy)


@asynccontextmanager
async def open_runtime(
    settings: Settings, tick_scheduler: TickScheduler
) -> AsyncIterator[SyncRuntime]:
    """Runtime with its own engine and catalog client, for one event loop."""
    db_engine = get_async_engine(settings, pooled=False)
    try:
        async with WooCommerceClient.from_settings(settings) as catalog:
            yield build_runtime(
                settings, create_session_factory(db_engine), catalog, tick_scheduler
            )
    finally:
        await db_engine.dispose()
