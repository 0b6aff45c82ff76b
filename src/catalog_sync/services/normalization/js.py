"""JS wholesaler feed adapter.

Document shape (XML converted to JSON)::

    {"name": {"en": ..., "pl": ...} | str,
     "brand": {"name": ...},
     "attributes": {"opis": [line, ...]},
     "images": [url, ...] | {"image": {"image_url": ...} | [...]},
     "category_keys": "A|B|C",
     "price": "12.50",
     "units": {"unit": [{"@attributes": {"sku", "ean"}, "size", "color", "stock"}]}}
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
    attributes_of,
    generate_variation_sku,
    split_path,
    text_of,
    to_price,
    to_quantity,
    unique,
)
from shared.constants import COLOR_ATTRIBUTE, SIZE_ATTRIBUTE


@dataclass(frozen=True)
class JsUnit:
    sku: str
    ean: str
    size: str
    color: str
    stock: int


@dataclass(frozen=True)
class JsDocument:
    name: str
    brand: str
    description: str
    image_urls: tuple[str, ...]
    categories: tuple[str, ...]
    price: float
    units: tuple[JsUnit, ...]


def _name_of(value: Any) -> str:
    if isinstance(value, dict):
        return text_of(value.get("en")) or text_of(value.get("pl"))
    return text_of(value)


def _image_urls(value: Any) -> list[str]:
    if isinstance(value, dict):
        entries = as_list(value.get("image"))
        return [text_of(entry.get("image_url")) for entry in entries if isinstance(entry, dict)]
    return [text_of(entry) for entry in as_list(value) if isinstance(entry, str)]


def parse_document(payload: dict[str, Any]) -> JsDocument:
    attributes = payload.get("attributes")
    description_lines = as_list(attributes.get("opis")) if isinstance(attributes, dict) else []
    brand = payload.get("brand")

    units = []
    units_node = payload.get("units")
    if isinstance(units_node, dict):
        for unit in as_list(units_node.get("unit")):
            if not isinstance(unit, dict):
                continue
            unit_attrs = attributes_of(unit)
            units.append(
                JsUnit(
                    sku=text_of(unit_attrs.get("sku")),
                    ean=text_of(unit_attrs.get("ean")),
                    size=text_of(unit.get("size")),
                    color=text_of(unit.get("color")),
                    stock=to_quantity(unit.get("stock")),
                )
            )

    return JsDocument(
        name=_name_of(payload.get("name")),
        brand=text_of(brand.get("name")) if isinstance(brand, dict) else text_of(brand),
        description="\n".join(text for text in map(text_of, description_lines) if text),
        image_urls=tuple(unique(_image_urls(payload.get("images")))),
        categories=tuple(unique(split_path(payload.get("category_keys"), "|"))),
        price=to_price(payload.get("price")),
        units=tuple(units),
    )


class JsAdapter(WholesalerAdapter):
    """One variation per stock unit, keyed by the unit SKU."""

    def map_payload(self, record: FeedRecord, payload: dict[str, Any]) -> CanonicalProduct:
        doc = parse_document(payload)
        sku = record.sku.strip()
        brand = doc.brand or (record.brand or "")
        regular_price = self.pricing.regular_price(doc.price, brand)

        variations = []
        for unit in doc.units:
            attributes = tuple(
                VariationAttribute(name=name, option=option)
                for name, option in ((COLOR_ATTRIBUTE, unit.color), (SIZE_ATTRIBUTE, unit.size))
                if option
            )
            if not unit.sku and not attributes:
                continue
            variations.append(
                Variation(
                    sku=generate_variation_sku(sku, unit.sku, attributes),
                    attributes=attributes,
                    stock_quantity=unit.stock,
                    regular_price=regular_price,
                    wholesale_price=doc.price,
                    meta={"_ean": unit.ean} if unit.ean else {},
                )
            )

        return CanonicalProduct(
            sku=sku,
            name=doc.name or sku,
            brand=brand,
            description=doc.description,
            wholesale_price=doc.price,
            regular_price=regular_price,
            images=tuple(ProductImage(src=url) for url in doc.image_urls),
            categories=doc.categories,
            attributes=collect_attributes(v.attributes for v in variations),
            variations=distinct_by_sku(variations),
            meta={"_wholesale_price": price_meta(doc.price)},
        )
