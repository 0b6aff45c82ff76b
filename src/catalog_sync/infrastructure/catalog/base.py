"""Catalog store port and errors."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


class CatalogStoreError(Exception):
    """The catalog store rejected a request or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CatalogUnavailableError(CatalogStoreError):
    """The catalog store could not be reached or timed out."""


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one item in a batch call."""

    sku: str
    id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.id)


@dataclass
class BatchResponse:
    created: list[BatchItemResult] = field(default_factory=list)
    updated: list[BatchItemResult] = field(default_factory=list)

    @property
    def errors(self) -> list[BatchItemResult]:
        return [item for item in self.created + self.updated if not item.ok]


class CatalogStore(Protocol):
    """Batch API of the external catalog store."""

    async def find_products_by_sku(self, skus: Sequence[str]) -> dict[str, int]:
        """Map each SKU that exists in the store to its product id."""
        ...

    async def batch_products(
        self, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        ...

    async def list_variation_skus(self, product_id: int) -> dict[str, int]:
        """Map each variation SKU under a product to its variation id."""
        ...

    async def batch_variations(
        self, product_id: int, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        ...

    async def assign_taxonomies(
        self,
        product_id: int,
        categories: Sequence[str],
        tags: Sequence[str],
        brand: str,
    ) -> None:
        ...

    async def update_product_images(self, product_id: int, images: Sequence[str]) -> None:
        ...
