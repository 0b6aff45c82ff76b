"""Canonical product shape shared by every wholesaler adapter."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProductImage:
    src: str


@dataclass(frozen=True)
class ProductAttribute:
    """Product-level attribute with its distinct options in first-seen order."""

    name: str
    options: tuple[str, ...]
    variation: bool = True
    visible: bool = True


@dataclass(frozen=True)
class VariationAttribute:
    name: str
    option: str


@dataclass(frozen=True)
class Variation:
    """One purchasable leaf of a variable product."""

    sku: str
    attributes: tuple[VariationAttribute, ...]
    stock_quantity: int
    regular_price: str
    wholesale_price: float
    meta: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CanonicalProduct:
    """Normalized product ready for the catalog store.

    An empty ``sku`` means there is nothing to import for the record.
    """

    sku: str
    name: str = ""
    brand: str = ""
    description: str = ""
    wholesale_price: float = 0.0
    regular_price: str = "0.00"
    images: tuple[ProductImage, ...] = ()
    categories: tuple[str, ...] = ()
    attributes: tuple[ProductAttribute, ...] = ()
    variations: tuple[Variation, ...] = ()
    meta: dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "CanonicalProduct":
        return cls(sku="")

    @property
    def is_empty(self) -> bool:
        return not self.sku

    @property
    def is_variable(self) -> bool:
        return bool(self.variations)
