"""Batch reconciliation of raw feed records against the catalog store.

One pass normalizes a set of Pending records, resolves which SKUs already
exist in the catalog store with a single bulk lookup, pushes creates and
updates in chunks no larger than the store's batch limit, reconciles
variations of every product that made it into the store, and finally
records the outcome on the raw records.
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from catalog_sync.config import Settings
from catalog_sync.infrastructure.catalog.base import CatalogStore, CatalogStoreError
from catalog_sync.infrastructure.catalog.payloads import product_payload, variation_payload
from catalog_sync.infrastructure.database.models import RawFeedRecord, RecordStatus
from catalog_sync.services.normalization import CanonicalProduct, ProductNormalizer
from catalog_sync.services.raw_records import RawRecordStore
from shared.constants import CATALOG_BATCH_LIMIT

logger = structlog.get_logger()


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Batch limit and import filters for one engine."""

    batch_limit: int = CATALOG_BATCH_LIMIT
    excluded_categories: frozenset[str] = frozenset()
    defer_images: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconciliationPolicy":
        return cls(
            batch_limit=settings.catalog_batch_limit,
            excluded_categories=frozenset(name.lower() for name in settings.excluded_categories),
            defer_images=settings.defer_images,
        )

    def is_excluded(self, product: CanonicalProduct) -> bool:
        return any(category.lower() in self.excluded_categories for category in product.categories)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    completed_ids: list[int] = field(default_factory=list)
    failed_ids: list[int] = field(default_factory=list)
    products_with_images: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.updated

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class ReconciliationEngine:
    """Decides create vs update and talks to the catalog store in bulk."""

    def __init__(
        self,
        records: RawRecordStore,
        catalog: CatalogStore,
        normalizer: ProductNormalizer,
        policy: ReconciliationPolicy | None = None,
    ):
        self.records = records
        self.catalog = catalog
        self.normalizer = normalizer
        self.policy = policy or ReconciliationPolicy()

    async def fetch_pending(self, limit: int, after_id: int = 0) -> list[RawFeedRecord]:
        return await self.records.fetch_pending(limit, after_id=after_id)

    async def import_batch(self, limit: int) -> ReconcileResult:
        """Fetch up to ``limit`` Pending records and reconcile them."""
        return await self.reconcile(await self.fetch_pending(limit))

    async def reconcile(self, records: Sequence[RawFeedRecord]) -> ReconcileResult:
        """
        Run one reconciliation pass.

        Catalog failures on a batch call only affect the records of that
        call: they stay Pending and their failure is counted. A failed SKU
        lookup or any database error aborts the whole pass.
        """
        result = ReconcileResult()
        skipped_ids: list[int] = []
        candidates: list[tuple[RawFeedRecord, CanonicalProduct]] = []

        for record in records:
            product = self.normalizer.normalize(record)
            if product.is_empty:
                skipped_ids.append(record.id)
            elif self.policy.is_excluded(product):
                logger.info("Skipping product in excluded category", sku=product.sku)
                skipped_ids.append(record.id)
            else:
                candidates.append((record, product))
        result.skipped = len(skipped_ids)

        failures: dict[str, list[int]] = defaultdict(list)
        if candidates:
            existing = await self.catalog.find_products_by_sku([p.sku for _, p in candidates])
            to_create = [(r, p) for r, p in candidates if p.sku not in existing]
            to_update = [(r, p) for r, p in candidates if p.sku in existing]

            for chunk in chunked(to_create, self.policy.batch_limit):
                await self._push_products(chunk, None, result, failures)
            for chunk in chunked(to_update, self.policy.batch_limit):
                await self._push_products(chunk, existing, result, failures)

        await self.records.mark_status(result.completed_ids, RecordStatus.COMPLETED)
        await self.records.mark_status(skipped_ids, RecordStatus.SKIPPED)
        for error, ids in failures.items():
            await self.records.record_failures(ids, error)

        logger.info(
            "Reconciliation pass finished",
            records=len(records),
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            failed=len(result.failed_ids),
            errors=len(result.errors),
        )
        return result

    async def _push_products(
        self,
        chunk: Sequence[tuple[RawFeedRecord, CanonicalProduct]],
        existing: dict[str, int] | None,
        result: ReconcileResult,
        failures: dict[str, list[int]],
    ) -> None:
        """Send one physical batch call and follow up on each product in it."""
        is_update = existing is not None
        include_images = not self.policy.defer_images
        payloads = [
            product_payload(product, existing[product.sku] if is_update else None, include_images)
            for _, product in chunk
        ]

        try:
            if is_update:
                response = await self.catalog.batch_products(create=[], update=payloads)
            else:
                response = await self.catalog.batch_products(create=payloads, update=[])
        except CatalogStoreError as e:
            logger.error("Catalog batch call failed", size=len(chunk), update=is_update, error=str(e))
            result.errors.append(f"Batch {'update' if is_update else 'create'} failed: {e}")
            for record, _ in chunk:
                result.failed_ids.append(record.id)
                failures[str(e)].append(record.id)
            return

        items = response.updated if is_update else response.created
        for (record, product), item in zip(chunk, items):
            if not item.ok:
                message = item.error or "Unknown error"
                result.errors.append(f"{product.sku}: {message}")
                result.failed_ids.append(record.id)
                failures[message].append(record.id)
                continue

            if is_update:
                result.updated += 1
            else:
                result.created += 1

            await self._reconcile_variations(item.id, product, result)
            await self._assign_taxonomies(item.id, product, result)
            if self.policy.defer_images and product.images:
                result.products_with_images.append(
                    {"product_id": item.id, "images": [image.src for image in product.images]}
                )
            result.completed_ids.append(record.id)

    async def _reconcile_variations(
        self, product_id: int, product: CanonicalProduct, result: ReconcileResult
    ) -> None:
        if not product.variations:
            return
        try:
            existing = await self.catalog.list_variation_skus(product_id)
            create = [variation_payload(v) for v in product.variations if v.sku not in existing]
            update = [
                variation_payload(v, existing[v.sku])
                for v in product.variations
                if v.sku in existing
            ]
            errors = await self._send_variations(product_id, create, update)
        except CatalogStoreError as e:
            logger.error("Variation sync failed", sku=product.sku, product_id=product_id, error=str(e))
            result.errors.append(f"{product.sku}: variations failed: {e}")
            return

        for error in errors:
            result.errors.append(f"{product.sku}: variation {error}")

    async def _send_variations(
        self,
        product_id: int,
        create: list[dict[str, Any]],
        update: list[dict[str, Any]],
    ) -> list[str]:
        """Send variation batches, splitting oversized ones into half-limit chunks."""
        limit = self.policy.batch_limit
        if len(create) + len(update) <= limit:
            response = await self.catalog.batch_variations(product_id, create, update)
            return [f"{item.sku}: {item.error}" for item in response.errors]

        items = [("create", p) for p in create] + [("update", p) for p in update]
        errors: list[str] = []
        for chunk in chunked(items, max(1, limit // 2)):
            errors.extend(
                await self._send_variations(
                    product_id,
                    [p for kind, p in chunk if kind == "create"],
                    [p for kind, p in chunk if kind == "update"],
                )
            )
        return errors

    async def _assign_taxonomies(
        self, product_id: int, product: CanonicalProduct, result: ReconcileResult
    ) -> None:
        try:
            await self.catalog.assign_taxonomies(product_id, product.categories, (), product.brand)
        except CatalogStoreError as e:
            logger.error("Taxonomy assignment failed", sku=product.sku, product_id=product_id, error=str(e))
            result.errors.append(f"{product.sku}: taxonomies failed: {e}")
