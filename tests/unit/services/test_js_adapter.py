"""Unit tests for the JS feed adapter."""

import orjson
import pytest

from catalog_sync.infrastructure.database.models import RawFeedRecord
from catalog_sync.services.normalization import CanonicalProduct, JsAdapter, PricingPolicy


def js_record(payload: object, sku: str = "JS-100", brand: str | None = None) -> RawFeedRecord:
    return RawFeedRecord(wholesaler_name="JS", sku=sku, brand=brand, raw_payload=payload)


@pytest.fixture
def adapter(pricing: PricingPolicy) -> JsAdapter:
    return JsAdapter(pricing)


@pytest.fixture
def document() -> dict:
    return {
        "name": {"en": "Linen Shirt", "pl": "Koszula lniana"},
        "brand": {"name": "Acme"},
        "attributes": {"opis": ["100% linen", "Machine wash"]},
        "images": ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"],
        "category_keys": "Men|Shirts",
        "price": "50,00",
        "units": {
            "unit": [
                {"@attributes": {"sku": "U1", "ean": "5901234"}, "size": "M", "color": "White", "stock": "4"},
                {"@attributes": {"sku": "U2", "ean": ""}, "size": "L", "color": "White", "stock": "0"},
                {"@attributes": {"sku": "U3"}, "size": "M", "color": "Blue", "stock": "-1"},
            ]
        },
    }


class TestJsAdapter:
    def test_maps_product_fields(self, adapter: JsAdapter, document: dict) -> None:
        product = adapter.map(js_record(document))

        assert product.sku == "JS-100"
        assert product.name == "Linen Shirt"
        assert product.brand == "Acme"
        assert product.description == "100% linen\nMachine wash"
        assert [image.src for image in product.images] == [
            "https://cdn.example.com/1.jpg",
            "https://cdn.example.com/2.jpg",
        ]
        assert product.categories == ("Men", "Shirts")
        assert product.wholesale_price == 50.0
        assert product.regular_price == "60.00"
        assert product.meta == {"_wholesale_price": "50.00"}

    def test_one_variation_per_unit(self, adapter: JsAdapter, document: dict) -> None:
        product = adapter.map(js_record(document))

        assert product.is_variable
        assert [v.sku for v in product.variations] == [
            "JS-100-U1-white-m",
            "JS-100-U2-white-l",
            "JS-100-U3-blue-m",
        ]
        first = product.variations[0]
        assert first.stock_quantity == 4
        assert first.regular_price == "60.00"
        assert first.meta == {"_ean": "5901234"}
        assert product.variations[1].meta == {}
        assert product.variations[2].stock_quantity == 0

    def test_product_attributes_collect_distinct_options(self, adapter: JsAdapter, document: dict) -> None:
        product = adapter.map(js_record(document))

        options = {attribute.name: attribute.options for attribute in product.attributes}
        assert options == {"Color": ("White", "Blue"), "Size": ("M", "L")}

    def test_single_unit_object_equals_list(self, adapter: JsAdapter, document: dict) -> None:
        single = dict(document, units={"unit": document["units"]["unit"][0]})
        listed = dict(document, units={"unit": [document["units"]["unit"][0]]})

        assert adapter.map(js_record(single)) == adapter.map(js_record(listed))

    def test_string_name_brand_and_nested_images(self, adapter: JsAdapter) -> None:
        payload = {
            "name": "Plain Tee",
            "brand": "Mediolano",
            "images": {"image": {"image_url": "https://cdn.example.com/t.jpg"}},
            "price": "10.00",
        }
        product = adapter.map(js_record(payload))

        assert product.name == "Plain Tee"
        assert product.brand == "Mediolano"
        assert product.regular_price == "10.00"
        assert [image.src for image in product.images] == ["https://cdn.example.com/t.jpg"]
        assert not product.is_variable

    def test_accepts_json_string_payload(self, adapter: JsAdapter, document: dict) -> None:
        assert adapter.map(js_record(orjson.dumps(document).decode())) == adapter.map(js_record(document))

    def test_unit_without_sku_or_attributes_is_skipped(self, adapter: JsAdapter, document: dict) -> None:
        document["units"]["unit"].append({"@attributes": {}, "stock": "9"})
        product = adapter.map(js_record(document))
        assert len(product.variations) == 3

    @pytest.mark.parametrize("payload", ["", "{not json", None])
    def test_unusable_payload_gives_empty_product(self, adapter: JsAdapter, payload: object) -> None:
        assert adapter.map(js_record(payload)) == CanonicalProduct.empty()

    def test_blank_sku_gives_empty_product(self, adapter: JsAdapter, document: dict) -> None:
        assert adapter.map(js_record(document, sku="  ")).is_empty
