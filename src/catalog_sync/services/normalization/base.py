"""Base class for wholesaler adapters."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, Protocol

from catalog_sync.services.normalization.canonical import (
    CanonicalProduct,
    ProductAttribute,
    Variation,
    VariationAttribute,
)
from catalog_sync.services.normalization.payload import load_payload
from catalog_sync.services.normalization.pricing import PricingPolicy


class FeedRecord(Protocol):
    """The raw record columns an adapter reads."""

    sku: str
    brand: str | None
    wholesaler_name: str
    raw_payload: Any


class WholesalerAdapter(ABC):
    """Maps one wholesaler's raw feed document to a CanonicalProduct.

    Adapters are pure: no I/O, and any unusable document yields an empty
    product instead of an exception.
    """

    def __init__(self, pricing: PricingPolicy):
        self.pricing = pricing

    def map(self, record: FeedRecord) -> CanonicalProduct:
        payload = load_payload(record.raw_payload)
        if payload is None or not (record.sku or "").strip():
            return CanonicalProduct.empty()
        return self.map_payload(record, payload)

    @abstractmethod
    def map_payload(self, record: FeedRecord, payload: dict[str, Any]) -> CanonicalProduct:
        """Map a decoded feed document."""


def collect_attributes(
    variation_attributes: Iterable[Iterable[VariationAttribute]],
) -> tuple[ProductAttribute, ...]:
    """Distinct options per attribute name, both in first-seen order."""
    options: dict[str, list[str]] = {}
    for attributes in variation_attributes:
        for attribute in attributes:
            values = options.setdefault(attribute.name, [])
            if attribute.option and attribute.option not in values:
                values.append(attribute.option)
    return tuple(
        ProductAttribute(name=name, options=tuple(values))
        for name, values in options.items()
        if values
    )


def price_meta(price: float) -> str:
    return f"{price:.2f}"


def distinct_by_sku(variations: Iterable[Variation]) -> tuple[Variation, ...]:
    """Drop later variations whose SKU repeats an earlier one."""
    seen: set[str] = set()
    result = []
    for variation in variations:
        if variation.sku not in seen:
            seen.add(variation.sku)
            result.append(variation)
    return tuple(result)
