"""MADA wholesaler feed adapter.

Document shape (XML converted to JSON, upper-case element names)::

    {"NAME": [..] | str, "PRODUCER": str, "DESC": [..] | str,
     "PRODUCER_SECURITY_INFO": str, "IMAGES": {"IMG": url | [url, ...]},
     "CATEGORIES": {"CATEGORY": {"@attributes": {"c1", "c2"}} | [...]},
     "PRICE": "10.00", "VAT": "23", "PRODUCER_ADDRESS": str,
     "SIMILAR_PRODUCTS": {"SIMILAR": code | [code, ...]},
     "MODELS": {"MODEL": {"@attributes": {"code"}, "SIZE": ..., "COLOR": ...} | [...]}}

Any element may be a single object or a list.
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
    text_of,
    to_price,
    to_quantity,
    unique,
)
from shared.constants import COLOR_ATTRIBUTE, SIZE_ATTRIBUTE


@dataclass(frozen=True)
class MadaSize:
    name: str
    stock: int | None


@dataclass(frozen=True)
class MadaModel:
    code: str
    sizes: tuple[MadaSize, ...]
    colors: tuple[str, ...]
    stock: int


@dataclass(frozen=True)
class MadaDocument:
    name: str
    producer: str
    description: str
    image_urls: tuple[str, ...]
    categories: tuple[str, ...]
    price: float
    vat_rate: str
    producer_address: str
    similar_products: tuple[str, ...]
    models: tuple[MadaModel, ...]


def _child(node: Any, key: str) -> Any:
    return node.get(key) if isinstance(node, dict) else None


def _categories(node: Any) -> list[str]:
    names = []
    for category in as_list(_child(node, "CATEGORY")):
        attrs = attributes_of(category)
        if attrs:
            names.extend(
                f"Category {text_of(attrs[key])}"
                for key in ("c1", "c2")
                if text_of(attrs.get(key))
            )
        else:
            names.append(text_of(category))
    return names


def _size(entry: Any) -> MadaSize:
    attrs = attributes_of(entry)
    if attrs:
        stock = attrs.get("stock")
        return MadaSize(
            name=text_of(attrs.get("name")) or text_of(entry),
            stock=to_quantity(stock) if stock is not None else None,
        )
    return MadaSize(name=text_of(entry), stock=None)


def _model(entry: dict[str, Any]) -> MadaModel:
    sizes = {}
    for size in map(_size, as_list(entry.get("SIZE"))):
        if size.name and size.name not in sizes:
            sizes[size.name] = size
    return MadaModel(
        code=text_of(attributes_of(entry).get("code")) or text_of(entry.get("CODE")),
        sizes=tuple(sizes.values()),
        colors=tuple(unique(text_of(color) for color in as_list(entry.get("COLOR")))),
        stock=to_quantity(entry.get("STOCK")),
    )


def parse_document(payload: dict[str, Any]) -> MadaDocument:
    descriptions = [text_of(part) for part in as_list(payload.get("DESC"))]
    security_info = text_of(payload.get("PRODUCER_SECURITY_INFO"))
    if security_info:
        descriptions.append(f"\n{security_info}")

    return MadaDocument(
        name=text_of(payload.get("NAME")),
        producer=text_of(payload.get("PRODUCER")),
        description="\n".join(part for part in descriptions if part),
        image_urls=tuple(
            unique(text_of(img) for img in as_list(_child(payload.get("IMAGES"), "IMG")))
        ),
        categories=tuple(unique(_categories(payload.get("CATEGORIES")))),
        price=to_price(payload.get("PRICE")),
        vat_rate=text_of(payload.get("VAT")),
        producer_address=text_of(payload.get("PRODUCER_ADDRESS")),
        similar_products=tuple(
            unique(
                text_of(code)
                for code in as_list(_child(payload.get("SIMILAR_PRODUCTS"), "SIMILAR"))
            )
        ),
        models=tuple(
            _model(model)
            for model in as_list(_child(payload.get("MODELS"), "MODEL"))
            if isinstance(model, dict)
        ),
    )


class MadaAdapter(WholesalerAdapter):
    """One variation per model x color x size."""

    def map_payload(self, record: FeedRecord, payload: dict[str, Any]) -> CanonicalProduct:
        doc = parse_document(payload)
        sku = record.sku.strip()
        brand = doc.producer or (record.brand or "")
        regular_price = self.pricing.regular_price(doc.price, brand)

        variations = []
        for model in doc.models:
            for color in model.colors or ("",):
                for size in model.sizes or (MadaSize(name="", stock=None),):
                    attributes = tuple(
                        VariationAttribute(name=name, option=option)
                        for name, option in ((COLOR_ATTRIBUTE, color), (SIZE_ATTRIBUTE, size.name))
                        if option
                    )
                    if not model.code and not attributes:
                        continue
                    variations.append(
                        Variation(
                            sku=generate_variation_sku(sku, model.code, attributes),
                            attributes=attributes,
                            stock_quantity=size.stock if size.stock is not None else model.stock,
                            regular_price=regular_price,
                            wholesale_price=doc.price,
                            meta={"_mada_model_code": model.code} if model.code else {},
                        )
                    )

        meta = {
            "_wholesale_price": price_meta(doc.price),
            "_mada_vat_rate": doc.vat_rate,
            "_mada_producer_address": doc.producer_address,
            "_mada_similar_products": ",".join(doc.similar_products),
        }
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
            meta={key: value for key, value in meta.items() if value},
        )
