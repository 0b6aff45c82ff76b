"""AREN wholesaler feed adapter.

Document shape (XML converted to JSON)::

    {"name", "producer", "description",
     "images": {"image": {"url"} | [{"url"}, ...]},
     "categories": {"category": "A/B/C" | ["A/B", ...]},
     "tax": {"value"}, "unit", "weight", "price_netto",
     "attributes": {"attribute": [{"name": "EAN", "values": {"value"}}, ...]},
     "combinations": {"combination": {"id", "code", "quantity", "price_netto",
                                      "price_value", "price_modifier",
                                      "default_price_netto",
                                      "attributes": {"attribute": [{"name", "value"}]}}
                                     | [...]}}
"""

from dataclasses import dataclass
from typing import Any

from catalog_sync.services.normalization.base import (
    FeedRecord,
    WholesalerAdapter,
    collect_attributes,
    distinct_by_sku,
    price_meta,
)
from catalog_sync.services.normalization.canonical import (
    CanonicalProduct,
    ProductImage,
    Variation,
    VariationAttribute,
)
from catalog_sync.services.normalization.payload import (
    as_list,
    generate_variation_sku,
    split_path,
    text_of,
    to_price,
    to_quantity,
    unique,
)


@dataclass(frozen=True)
class ArenCombination:
    id: str
    code: str
    quantity: int
    price_netto: float | None
    price_value: str
    price_modifier: str
    default_price_netto: str
    attributes: tuple[VariationAttribute, ...]


@dataclass(frozen=True)
class ArenDocument:
    name: str
    producer: str
    description: str
    image_urls: tuple[str, ...]
    categories: tuple[str, ...]
    price: float | None
    ean: str
    tax_rate: str
    unit: str
    weight: str
    combinations: tuple[ArenCombination, ...]


def _entries(node: Any, key: str) -> list[dict[str, Any]]:
    """Dict entries of a repeated child element."""
    if not isinstance(node, dict):
        return []
    return [entry for entry in as_list(node.get(key)) if isinstance(entry, dict)]


def _optional_price(value: Any) -> float | None:
    return to_price(value) if text_of(value) else None


def _ean(payload: dict[str, Any]) -> str:
    for attribute in _entries(payload.get("attributes"), "attribute"):
        if text_of(attribute.get("name")).upper() == "EAN":
            values = attribute.get("values")
            return text_of(values.get("value")) if isinstance(values, dict) else text_of(values)
    return ""


def _combination(entry: dict[str, Any]) -> ArenCombination:
    attributes = []
    for attribute in _entries(entry.get("attributes"), "attribute"):
        name = text_of(attribute.get("name"))
        if name:
            attributes.append(VariationAttribute(name=name, option=text_of(attribute.get("value"))))
    return ArenCombination(
        id=text_of(entry.get("id")),
        code=text_of(entry.get("code")),
        quantity=to_quantity(entry.get("quantity")),
        price_netto=_optional_price(entry.get("price_netto")),
        price_value=text_of(entry.get("price_value")),
        price_modifier=text_of(entry.get("price_modifier")),
        default_price_netto=text_of(entry.get("default_price_netto")),
        attributes=tuple(attributes),
    )


def parse_document(payload: dict[str, Any]) -> ArenDocument:
    categories = payload.get("categories")
    tax = payload.get("tax")
    price = payload.get("price_netto", payload.get("price"))

    return ArenDocument(
        name=text_of(payload.get("name")),
        producer=text_of(payload.get("producer")),
        description=text_of(payload.get("description")),
        image_urls=tuple(
            unique(text_of(image.get("url")) for image in _entries(payload.get("images"), "image"))
        ),
        categories=tuple(
            unique(
                split_path(categories.get("category") if isinstance(categories, dict) else None, "/")
            )
        ),
        price=_optional_price(price),
        ean=_ean(payload),
        tax_rate=text_of(tax.get("value")) if isinstance(tax, dict) else text_of(tax),
        unit=text_of(payload.get("unit")),
        weight=text_of(payload.get("weight")),
        combinations=tuple(
            _combination(entry) for entry in _entries(payload.get("combinations"), "combination")
        ),
    )


class ArenAdapter(WholesalerAdapter):
    """One variation per combination id."""

    def map_payload(self, record: FeedRecord, payload: dict[str, Any]) -> CanonicalProduct:
        doc = parse_document(payload)
        sku = record.sku.strip()
        brand = doc.producer or (record.brand or "")

        wholesale_price = doc.price
        if wholesale_price is None:
            wholesale_price = next(
                (c.price_netto for c in doc.combinations if c.price_netto is not None), 0.0
            )

        variations = []
        for combination in doc.combinations:
            if not combination.id:
                continue
            attributes = tuple(attr for attr in combination.attributes if attr.option)
            price = (
                combination.price_netto
                if combination.price_netto is not None
                else wholesale_price
            )
            meta = {
                "_price_value": combination.price_value,
                "_price_modifier": combination.price_modifier,
                "_default_price_netto": combination.default_price_netto,
            }
            variations.append(
                Variation(
                    sku=generate_variation_sku(sku, combination.code or combination.id, attributes),
                    attributes=attributes,
                    stock_quantity=combination.quantity,
                    regular_price=self.pricing.regular_price(price, brand),
                    wholesale_price=price,
                    meta={key: value for key, value in meta.items() if value},
                )
            )

        meta = {
            "_wholesale_price": price_meta(wholesale_price),
            "_ean": doc.ean,
            "_aren_tax_rate": doc.tax_rate,
            "_aren_unit": doc.unit,
            "_aren_weight": doc.weight,
        }
        return CanonicalProduct(
            sku=sku,
            name=doc.name or sku,
            brand=brand,
            description=doc.description,
            wholesale_price=wholesale_price,
            regular_price=self.pricing.regular_price(wholesale_price, brand),
            images=tuple(ProductImage(src=url) for url in doc.image_urls),
            categories=doc.categories,
            attributes=collect_attributes(v.attributes for v in variations),
            variations=distinct_by_sku(variations),
            meta={key: value for key, value in meta.items() if value},
        )
