"""Retail price derivation."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from catalog_sync.config import Settings

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PricingPolicy:
    """Retail margin applied to wholesale prices.

    Brands listed in ``passthrough_brands`` (case-insensitive) keep the
    wholesale price as their retail price.
    """

    margin_percent: float = 0.0
    passthrough_brands: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            margin_percent=settings.retail_margin_percent,
            passthrough_brands=tuple(settings.passthrough_brands),
        )

    def is_passthrough(self, brand: str) -> bool:
        brand = brand.strip().lower()
        return any(brand == name.strip().lower() for name in self.passthrough_brands)

    def regular_price(self, wholesale_price: float, brand: str = "") -> str:
        """Return the retail price as a two-decimal string, rounded half-up."""
        price = Decimal(str(max(wholesale_price, 0.0)))
        if not self.is_passthrough(brand):
            price *= 1 + Decimal(str(self.margin_percent)) / 100
        return str(price.quantize(_CENTS, rounding=ROUND_HALF_UP))
