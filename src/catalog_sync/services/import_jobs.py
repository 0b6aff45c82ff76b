"""Job handlers that drive reconciliation from the queue."""

from collections.abc import Callable
from typing import Any

import structlog

from catalog_sync.infrastructure.catalog.base import CatalogStore, CatalogStoreError
from catalog_sync.infrastructure.database.models import JobType, QueueJob
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.raw_records import RawRecordStore
from catalog_sync.services.reconciliation import ReconcileResult, ReconciliationEngine
from catalog_sync.services.scheduler import JobHandler, JobOutcome, QueuePolicy, QueueScheduler
from catalog_sync.services.system_load import ResourceMeter, current_load

logger = structlog.get_logger()


class ImportJobHandlers:
    """``batch_import`` and ``image_processing`` handlers, plus smart import."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        records: RawRecordStore,
        queue: JobQueue,
        catalog: CatalogStore,
        policy: QueuePolicy | None = None,
        load_probe: Callable[[], float] = current_load,
    ):
        self.engine = engine
        self.records = records
        self.queue = queue
        self.catalog = catalog
        self.policy = policy or QueuePolicy()
        self.load_probe = load_probe

    def as_mapping(self) -> dict[str, JobHandler]:
        return {
            JobType.BATCH_IMPORT.value: self.batch_import,
            JobType.IMAGE_PROCESSING.value: self.image_processing,
        }

    def batch_size_for(self, requested: int | str | None) -> int:
        """Requested batch size capped at what the current load allows.

        Raises ``ValueError`` for a value that is not a whole number.
        """
        optimal = self.policy.optimal_batch_size(self.load_probe())
        size = int(requested or 0)
        if size <= 0:
            return optimal
        return min(size, optimal)

    async def batch_import(self, job: QueueJob) -> JobOutcome:
        """
        Reconcile up to ``total_batches`` batches of Pending records.

        Each batch starts after the highest id the previous one fetched, so
        records that stay Pending after a failure are not refetched by the
        same job and the records behind them still get their turn.
        """
        data = job.job_data or {}
        batch_size = self.batch_size_for(data.get("batch_size"))
        total_batches = max(1, int(data.get("total_batches") or 1))

        totals = ReconcileResult()
        last_id = 0
        for batch_number in range(1, total_batches + 1):
            records = await self.engine.fetch_pending(batch_size, after_id=last_id)
            if not records:
                break
            last_id = records[-1].id
            result = await self.engine.reconcile(records)
            _merge(totals, result)
            logger.info(
                "Import batch finished",
                batch=batch_number,
                total_batches=total_batches,
                batch_size=batch_size,
                seen=len(records),
            )
            if len(records) < batch_size:
                break

        exhausted = await self.records.fail_exhausted(self.policy.record_max_attempts)
        if totals.products_with_images:
            await self.queue.enqueue(
                JobType.IMAGE_PROCESSING.value,
                {"products": totals.products_with_images},
                priority=self.policy.default_priority,
                max_attempts=self.policy.max_attempts,
            )

        return JobOutcome(
            batch_size=batch_size,
            success_count=totals.processed,
            error_count=len(totals.failed_ids),
            details={**_summary(totals), "exhausted": exhausted},
        )

    async def image_processing(self, job: QueueJob) -> JobOutcome:
        """Push deferred image URLs to the catalog store product by product."""
        products = (job.job_data or {}).get("products") or []
        succeeded = 0
        last_error: CatalogStoreError | None = None
        for entry in products:
            product_id = int(entry.get("product_id") or 0)
            images = [src for src in entry.get("images") or [] if src]
            if not product_id or not images:
                continue
            try:
                await self.catalog.update_product_images(product_id, images)
                succeeded += 1
            except CatalogStoreError as e:
                logger.error("Image update failed", product_id=product_id, error=str(e))
                last_error = e

        if last_error is not None and succeeded == 0:
            raise last_error
        return JobOutcome(
            batch_size=len(products),
            success_count=succeeded,
            error_count=len(products) - succeeded,
        )

    async def smart_import(
        self,
        scheduler: QueueScheduler,
        batch_size: int | None = None,
        use_queue: bool = True,
        total_batches: int = 1,
        priority: int | None = None,
    ) -> dict[str, Any]:
        """Queue a batch import, or run one pass inline and record its stats."""
        size = self.batch_size_for(batch_size)
        if use_queue:
            job_id = await scheduler.submit(
                JobType.BATCH_IMPORT.value,
                {"batch_size": size, "total_batches": total_batches},
                priority=priority,
            )
            return {"queued": True, "job_id": job_id, "batch_size": size}

        meter = ResourceMeter()
        result = await self.engine.import_batch(size)
        await self.queue.record_stat(
            JobType.DIRECT_IMPORT.value,
            batch_size=size,
            processing_time=meter.elapsed(),
            memory_delta=meter.memory_delta(),
            success_count=result.processed,
            error_count=len(result.failed_ids),
        )
        return {"queued": False, "batch_size": size, **_summary(result)}


def _merge(totals: ReconcileResult, result: ReconcileResult) -> None:
    totals.created += result.created
    totals.updated += result.updated
    totals.skipped += result.skipped
    totals.errors.extend(result.errors)
    totals.completed_ids.extend(result.completed_ids)
    totals.failed_ids.extend(result.failed_ids)
    totals.products_with_images.extend(result.products_with_images)


def _summary(result: ReconcileResult) -> dict[str, Any]:
    return {
        "created": result.created,
        "updated": result.updated,
        "skipped": result.skipped,
        "failed": len(result.failed_ids),
        "errors": result.errors,
    }
