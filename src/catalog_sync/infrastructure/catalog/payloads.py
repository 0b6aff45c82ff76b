"""Build catalog store request bodies from canonical products."""

from typing import Any

from catalog_sync.services.normalization.canonical import CanonicalProduct, Variation


def _meta_data(meta: dict[str, str]) -> list[dict[str, str]]:
    return [{"key": key, "value": value} for key, value in meta.items()]


def product_payload(
    product: CanonicalProduct,
    product_id: int | None = None,
    include_images: bool = True,
) -> dict[str, Any]:
    """Body for one item of a products batch call.

    Passing ``product_id`` builds an update item.
    """
    payload: dict[str, Any] = {
        "name": product.name,
        "sku": product.sku,
        "type": "variable" if product.is_variable else "simple",
        "description": product.description,
        "attributes": [
            {
                "name": attribute.name,
                "position": position,
                "visible": attribute.visible,
                "variation": attribute.variation,
                "options": list(attribute.options),
            }
            for position, attribute in enumerate(product.attributes)
        ],
        "meta_data": _meta_data(product.meta),
    }
    if not product.is_variable:
        payload["regular_price"] = product.regular_price
    if include_images:
        payload["images"] = [{"src": image.src} for image in product.images]
    if product_id is not None:
        payload["id"] = product_id
    return payload


def variation_payload(variation: Variation, variation_id: int | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "sku": variation.sku,
        "regular_price": variation.regular_price,
        "manage_stock": True,
        "stock_quantity": variation.stock_quantity,
        "attributes": [
            {"name": attribute.name, "option": attribute.option}
            for attribute in variation.attributes
        ],
        "meta_data": _meta_data(
            {"_wholesale_price": f"{variation.wholesale_price:.2f}", **variation.meta}
        ),
    }
    if variation_id is not None:
        payload["id"] = variation_id
    return payload
