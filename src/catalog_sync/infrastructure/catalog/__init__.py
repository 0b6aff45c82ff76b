"""Catalog store port and its WooCommerce implementation."""

from catalog_sync.infrastructure.catalog.base import (
    BatchItemResult,
    BatchResponse,
    CatalogStore,
    CatalogStoreError,
    CatalogUnavailableError,
)
from catalog_sync.infrastructure.catalog.client import WooCommerceClient

__all__ = [
    "BatchItemResult",
    "BatchResponse",
    "CatalogStore",
    "CatalogStoreError",
    "CatalogUnavailableError",
    "WooCommerceClient",
]
