"""Per-wholesaler normalization of raw feed records into canonical products."""

from typing import Any

import structlog

from catalog_sync.infrastructure.database.models import WholesalerName
from catalog_sync.services.normalization.aren import ArenAdapter
from catalog_sync.services.normalization.base import FeedRecord, WholesalerAdapter
from catalog_sync.services.normalization.canonical import (
    CanonicalProduct,
    ProductAttribute,
    ProductImage,
    Variation,
    VariationAttribute,
)
from catalog_sync.services.normalization.js import JsAdapter
from catalog_sync.services.normalization.mada import MadaAdapter
from catalog_sync.services.normalization.pricing import PricingPolicy

logger = structlog.get_logger()


class UnknownWholesalerAdapter(WholesalerAdapter):
    """Fallback for records from a feed without an adapter.

    The record is passed through as an empty product, so reconciliation
    marks it Skipped.
    """

    def map(self, record: FeedRecord) -> CanonicalProduct:
        logger.warning(
            "No adapter for wholesaler, skipping record",
            wholesaler=record.wholesaler_name,
            sku=record.sku,
        )
        return CanonicalProduct.empty()

    def map_payload(self, record: FeedRecord, payload: dict[str, Any]) -> CanonicalProduct:
        return CanonicalProduct.empty()


class ProductNormalizer:
    """Dispatches raw records to the adapter for their wholesaler."""

    def __init__(
        self,
        pricing: PricingPolicy,
        adapters: dict[WholesalerName, WholesalerAdapter] | None = None,
    ):
        self.pricing = pricing
        self.adapters = adapters or {
            WholesalerName.JS: JsAdapter(pricing),
            WholesalerName.MADA: MadaAdapter(pricing),
            WholesalerName.AREN: ArenAdapter(pricing),
        }
        missing = set(WholesalerName) - set(self.adapters)
        if missing:
            raise ValueError(
                f"No adapter registered for: {', '.join(sorted(m.value for m in missing))}"
            )
        self.fallback = UnknownWholesalerAdapter(pricing)

    def adapter_for(self, wholesaler_name: str | None) -> WholesalerAdapter:
        try:
            return self.adapters[WholesalerName((wholesaler_name or "").strip().upper())]
        except ValueError:
            return self.fallback

    def normalize(self, record: FeedRecord) -> CanonicalProduct:
        """Map a raw record to a canonical product; never raises on bad payloads."""
        adapter = self.adapter_for(record.wholesaler_name)
        try:
            return adapter.map(record)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(
                "Failed to normalize record",
                wholesaler=record.wholesaler_name,
                sku=record.sku,
                error=str(e),
            )
            return CanonicalProduct.empty()


__all__ = [
    "ArenAdapter",
    "CanonicalProduct",
    "JsAdapter",
    "MadaAdapter",
    "PricingPolicy",
    "ProductAttribute",
    "ProductImage",
    "ProductNormalizer",
    "UnknownWholesalerAdapter",
    "Variation",
    "VariationAttribute",
    "WholesalerAdapter",
]
