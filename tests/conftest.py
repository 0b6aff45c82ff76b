"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Sequence
from datetime import datetime, timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from catalog_sync.api.deps import get_runtime
from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.catalog.base import (
    BatchItemResult,
    BatchResponse,
    CatalogStoreError,
    CatalogUnavailableError,
)
from catalog_sync.infrastructure.database.connection import create_session_factory, get_session
from catalog_sync.infrastructure.database.models import SCHEMA, Base
from catalog_sync.main import create_app
from catalog_sync.runtime import SyncRuntime, build_runtime
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.normalization import PricingPolicy, ProductNormalizer
from catalog_sync.services.raw_records import RawRecordStore
from catalog_sync.services.reconciliation import ReconciliationEngine, ReconciliationPolicy


# =============================================================================
# Test doubles
# =============================================================================


class FakeCatalogStore:
    """In-memory catalog store that records every call."""

    def __init__(self) -> None:
        self.products: dict[str, int] = {}
        self.variations: dict[int, dict[str, int]] = {}
        self.taxonomies: dict[int, dict[str, Any]] = {}
        self.images: dict[int, list[str]] = {}
        self.product_payloads: list[dict[str, Any]] = []
        self.batch_calls: list[dict[str, int]] = []
        self.variation_calls: list[tuple[int, int, int]] = []
        self.lookups: list[list[str]] = []

        self.fail_lookup = False
        self.fail_batch_calls: set[int] = set()
        self.item_errors: dict[str, str] = {}
        self.fail_variations = False
        self.image_errors: set[int] = set()
        self._next_id = 1000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def find_products_by_sku(self, skus: Sequence[str]) -> dict[str, int]:
        self.lookups.append(list(skus))
        if self.fail_lookup:
            raise CatalogUnavailableError("Catalog store unreachable")
        return {sku: self.products[sku] for sku in skus if sku in self.products}

    async def batch_products(
        self, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        call_index = len(self.batch_calls)
        self.batch_calls.append({"create": len(create), "update": len(update)})
        if call_index in self.fail_batch_calls:
            raise CatalogStoreError("Internal Server Error", status_code=500)

        self.product_payloads.extend(create + update)
        response = BatchResponse()
        for payload in create:
            sku = payload["sku"]
            if sku in self.item_errors:
                response.created.append(BatchItemResult(sku=sku, error=self.item_errors[sku]))
                continue
            self.products[sku] = self._new_id()
            response.created.append(BatchItemResult(sku=sku, id=self.products[sku]))
        for payload in update:
            sku = payload["sku"]
            if sku in self.item_errors:
                response.updated.append(BatchItemResult(sku=sku, error=self.item_errors[sku]))
                continue
            response.updated.append(BatchItemResult(sku=sku, id=payload["id"]))
        return response

    async def list_variation_skus(self, product_id: int) -> dict[str, int]:
        return dict(self.variations.get(product_id, {}))

    async def batch_variations(
        self, product_id: int, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        self.variation_calls.append((product_id, len(create), len(update)))
        if self.fail_variations:
            raise CatalogStoreError("Variation batch rejected", status_code=400)
        existing = self.variations.setdefault(product_id, {})
        response = BatchResponse()
        for payload in create:
            existing[payload["sku"]] = self._new_id()
            response.created.append(BatchItemResult(sku=payload["sku"], id=existing[payload["sku"]]))
        for payload in update:
            response.updated.append(BatchItemResult(sku=payload["sku"], id=payload["id"]))
        return response

    async def assign_taxonomies(
        self, product_id: int, categories: Sequence[str], tags: Sequence[str], brand: str
    ) -> None:
        self.taxonomies[product_id] = {
            "categories": list(categories),
            "tags": list(tags),
            "brand": brand,
        }

    async def update_product_images(self, product_id: int, images: Sequence[str]) -> None:
        if product_id in self.image_errors:
            raise CatalogStoreError("Image sideload failed", status_code=400)
        self.images[product_id] = list(images)


class RecordingTickScheduler:
    """Collects requested tick delays instead of scheduling anything."""

    def __init__(self) -> None:
        self.delays: list[int] = []

    def schedule_tick(self, delay_seconds: int) -> None:
        self.delays.append(delay_seconds)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Settings and database
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        catalog_base_url="https://shop.example.com",
        catalog_consumer_key="ck_test",
        catalog_consumer_secret="cs_test",
        retail_margin_percent=20.0,
        passthrough_brands=["Mediolano"],
    )


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database with the sync tables, schema prefix removed."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}",
        poolclass=NullPool,
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


# =============================================================================
# Components
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def catalog() -> FakeCatalogStore:
    return FakeCatalogStore()


@pytest.fixture
def tick_scheduler() -> RecordingTickScheduler:
    return RecordingTickScheduler()


@pytest.fixture
def pricing() -> PricingPolicy:
    return PricingPolicy(margin_percent=20.0, passthrough_brands=("Mediolano",))


@pytest.fixture
def normalizer(pricing: PricingPolicy) -> ProductNormalizer:
    return ProductNormalizer(pricing)


@pytest.fixture
def record_store(session_factory: async_sessionmaker[AsyncSession]) -> RawRecordStore:
    return RawRecordStore(session_factory)


@pytest.fixture
def job_queue(
    session_factory: async_sessionmaker[AsyncSession], clock: FrozenClock
) -> JobQueue:
    return JobQueue(session_factory, clock=clock)


@pytest.fixture
def reconciliation_engine(
    record_store: RawRecordStore,
    catalog: FakeCatalogStore,
    normalizer: ProductNormalizer,
) -> ReconciliationEngine:
    return ReconciliationEngine(record_store, catalog, normalizer, ReconciliationPolicy())


@pytest.fixture
def runtime(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    catalog: FakeCatalogStore,
    tick_scheduler: RecordingTickScheduler,
) -> SyncRuntime:
    return build_runtime(
        test_settings, session_factory, catalog, tick_scheduler, load_probe=lambda: 0.0
    )


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def app(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    runtime: SyncRuntime,
) -> Any:
    """Create test application wired to the SQLite database and fake catalog."""

    def get_test_settings() -> Settings:
        return test_settings

    async def get_test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def get_test_runtime() -> AsyncGenerator[SyncRuntime, None]:
        yield runtime

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_runtime] = get_test_runtime
    return app


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create asynchronous test client."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
