"""Unit tests for batch reconciliation against the catalog store."""

import pytest

from catalog_sync.infrastructure.catalog.base import CatalogUnavailableError
from catalog_sync.infrastructure.database.models import RecordStatus
from catalog_sync.services.normalization import ProductNormalizer
from catalog_sync.services.raw_records import RawRecordStore
from catalog_sync.services.reconciliation import (
    ReconciliationEngine,
    ReconciliationPolicy,
    chunked,
)


def js_payload(name: str, units: int = 0, categories: str = "Men|Shirts") -> dict:
    payload = {
        "name": name,
        "brand": {"name": "Acme"},
        "price": "10.00",
        "category_keys": categories,
        "images": [f"https://cdn.example.com/{name}.jpg"],
    }
    if units:
        payload["units"] = {
            "unit": [
                {"@attributes": {"sku": f"U{index}"}, "size": f"S{index}", "stock": "1"}
                for index in range(units)
            ]
        }
    return payload


async def seed_js(store: RawRecordStore, count: int, units: int = 0, prefix: str = "JS") -> list[int]:
    ids = []
    for index in range(count):
        record = await store.add("JS", f"{prefix}-{index}", js_payload(f"Product {index}", units))
        ids.append(record.id)
    return ids


def make_engine(record_store, catalog, normalizer, **policy) -> ReconciliationEngine:
    return ReconciliationEngine(record_store, catalog, normalizer, ReconciliationPolicy(**policy))


class TestChunked:
    def test_splits_with_remainder(self) -> None:
        assert [len(chunk) for chunk in chunked(list(range(250)), 100)] == [100, 100, 50]
        assert chunked([], 100) == []


class TestCreateAndUpdate:
    @pytest.mark.asyncio
    async def test_creates_are_chunked_by_batch_limit(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 250)

        result = await reconciliation_engine.import_batch(250)

        assert catalog.batch_calls == [
            {"create": 100, "update": 0},
            {"create": 100, "update": 0},
            {"create": 50, "update": 0},
        ]
        assert len(catalog.lookups) == 1
        assert len(catalog.lookups[0]) == 250
        assert result.created == 250
        assert result.updated == 0
        assert (await record_store.statistics())["completed"] == 250

    @pytest.mark.asyncio
    async def test_second_pass_only_updates(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        ids = await seed_js(record_store, 120)
        await reconciliation_engine.import_batch(200)
        await record_store.reset_to_pending(ids)
        catalog.batch_calls.clear()

        result = await reconciliation_engine.import_batch(200)

        assert catalog.batch_calls == [{"create": 0, "update": 100}, {"create": 0, "update": 20}]
        assert result.created == 0
        assert result.updated == 120
        updates = catalog.product_payloads[-120:]
        assert all(payload["id"] == catalog.products[payload["sku"]] for payload in updates)

    @pytest.mark.asyncio
    async def test_existing_and_new_products_are_separated(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 3)
        catalog.products["JS-1"] = 555

        result = await reconciliation_engine.import_batch(10)

        assert catalog.batch_calls == [{"create": 2, "update": 0}, {"create": 0, "update": 1}]
        assert result.created == 2
        assert result.updated == 1

    @pytest.mark.asyncio
    async def test_simple_product_payload(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 1)
        await reconciliation_engine.import_batch(1)

        payload = catalog.product_payloads[0]
        assert payload["type"] == "simple"
        assert payload["regular_price"] == "12.00"
        assert payload["images"] == [{"src": "https://cdn.example.com/Product 0.jpg"}]
        assert {"key": "_wholesale_price", "value": "10.00"} in payload["meta_data"]
        assert "id" not in payload


class TestSkipping:
    @pytest.mark.asyncio
    async def test_unusable_and_unknown_records_are_skipped(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await record_store.add("JS", "JS-EMPTY", "")
        await record_store.add("ACME", "ACME-1", {"name": "Thing"})

        result = await reconciliation_engine.import_batch(10)

        assert result.skipped == 2
        assert catalog.lookups == []
        assert catalog.batch_calls == []
        assert (await record_store.statistics())["skipped"] == 2

    @pytest.mark.asyncio
    async def test_excluded_category_is_skipped(
        self, record_store: RawRecordStore, catalog, normalizer: ProductNormalizer
    ) -> None:
        engine = make_engine(record_store, catalog, normalizer, excluded_categories=frozenset({"outlet"}))
        await record_store.add("JS", "JS-OUT", js_payload("Old", categories="Sale|Outlet"))
        await seed_js(record_store, 1)

        result = await engine.import_batch(10)

        assert result.skipped == 1
        assert result.created == 1
        assert catalog.lookups == [["JS-0"]]


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_chunk_only_affects_its_records(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        ids = await seed_js(record_store, 250)
        catalog.fail_batch_calls = {1}

        result = await reconciliation_engine.import_batch(250)

        assert result.created == 150
        assert sorted(result.failed_ids) == ids[100:200]
        assert any("Internal Server Error" in error for error in result.errors)

        pending = await record_store.fetch_pending(500)
        assert [record.id for record in pending] == ids[100:200]
        assert all(record.attempts == 1 for record in pending)
        assert all(record.error_message == "Internal Server Error" for record in pending)

    @pytest.mark.asyncio
    async def test_item_error_keeps_record_pending(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        ids = await seed_js(record_store, 3)
        catalog.item_errors["JS-2"] = "Invalid or duplicated SKU."

        result = await reconciliation_engine.import_batch(10)

        assert result.created == 2
        assert result.failed_ids == [ids[2]]
        assert result.errors == ["JS-2: Invalid or duplicated SKU."]
        pending = await record_store.fetch_pending(10)
        assert [record.error_message for record in pending] == ["Invalid or duplicated SKU."]

    @pytest.mark.asyncio
    async def test_lookup_failure_aborts_pass(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 5)
        catalog.fail_lookup = True

        with pytest.raises(CatalogUnavailableError):
            await reconciliation_engine.import_batch(10)

        assert catalog.batch_calls == []
        assert (await record_store.statistics())["pending"] == 5


class TestVariations:
    @pytest.mark.asyncio
    async def test_variations_created_then_updated(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        ids = await seed_js(record_store, 1, units=3)
        await reconciliation_engine.import_batch(1)
        product_id = catalog.products["JS-0"]

        assert catalog.variation_calls == [(product_id, 3, 0)]
        assert catalog.product_payloads[0]["type"] == "variable"
        assert "regular_price" not in catalog.product_payloads[0]

        await record_store.reset_to_pending(ids)
        await reconciliation_engine.import_batch(1)

        assert catalog.variation_calls[-1] == (product_id, 0, 3)

    @pytest.mark.asyncio
    async def test_oversized_variation_batches_are_split(
        self, record_store: RawRecordStore, catalog, normalizer: ProductNormalizer
    ) -> None:
        engine = make_engine(record_store, catalog, normalizer, batch_limit=4)
        await seed_js(record_store, 1, units=5)

        await engine.import_batch(1)

        assert [create for _, create, _ in catalog.variation_calls] == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_variation_failure_still_completes_record(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 1, units=2)
        catalog.fail_variations = True

        result = await reconciliation_engine.import_batch(1)

        assert result.created == 1
        assert result.errors == ["JS-0: variations failed: Variation batch rejected"]
        assert (await record_store.statistics())["completed"] == 1


class TestFollowUps:
    @pytest.mark.asyncio
    async def test_taxonomies_are_assigned(
        self, reconciliation_engine: ReconciliationEngine, record_store: RawRecordStore, catalog
    ) -> None:
        await seed_js(record_store, 1)
        await reconciliation_engine.import_batch(1)

        assert catalog.taxonomies[catalog.products["JS-0"]] == {
            "categories": ["Men", "Shirts"],
            "tags": [],
            "brand": "Acme",
        }

    @pytest.mark.asyncio
    async def test_deferred_images_are_collected(
        self, record_store: RawRecordStore, catalog, normalizer: ProductNormalizer
    ) -> None:
        engine = make_engine(record_store, catalog, normalizer, defer_images=True)
        await seed_js(record_store, 2)

        result = await engine.import_batch(10)

        assert all("images" not in payload for payload in catalog.product_payloads)
        assert result.products_with_images == [
            {"product_id": catalog.products["JS-0"], "images": ["https://cdn.example.com/Product 0.jpg"]},
            {"product_id": catalog.products["JS-1"], "images": ["https://cdn.example.com/Product 1.jpg"]},
        ]
