"""Unit tests for feed payload helpers and variation SKUs."""

import pytest

from catalog_sync.services.normalization.canonical import VariationAttribute
from catalog_sync.services.normalization.payload import (
    as_list,
    generate_variation_sku,
    load_payload,
    slugify,
    split_path,
    text_of,
    to_price,
    to_quantity,
)


class TestTraversal:
    """Elements may arrive as a single object or a list."""

    def test_as_list_wraps_single_object(self) -> None:
        assert as_list({"a": 1}) == [{"a": 1}]
        assert as_list(None) == []
        assert as_list([1, 2]) == [1, 2]

    def test_text_of_reads_text_nodes(self) -> None:
        assert text_of({"#text": " Red "}) == "Red"
        assert text_of({"@value": 5}) == "5"
        assert text_of(["", "second"]) == "second"
        assert text_of(None, default="n/a") == "n/a"

    def test_split_path_drops_empty_segments(self) -> None:
        assert split_path("A | B ||C", "|") == ["A", "B", "C"]
        assert split_path(["A/B", "C"], "/") == ["A", "B", "C"]


class TestNumbers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("12.50", 12.5), ("12,50", 12.5), (7, 7.0), ("abc", 0.0), ("-3", 0.0), ("", 0.0), ("nan", 0.0)],
    )
    def test_to_price(self, raw: object, expected: float) -> None:
        assert to_price(raw) == expected

    def test_to_quantity_clamps_to_zero(self) -> None:
        assert to_quantity("4") == 4
        assert to_quantity("-2") == 0
        assert to_quantity("many") == 0
        assert to_quantity(None) == 0


class TestLoadPayload:
    def test_decodes_json_object(self) -> None:
        assert load_payload('{"name": "Shirt"}') == {"name": "Shirt"}

    def test_passes_dict_through(self) -> None:
        payload = {"name": "Shirt"}
        assert load_payload(payload) is payload

    @pytest.mark.parametrize("raw", ["", "   ", "{broken", "[1, 2]", None, 42])
    def test_unusable_payloads_give_none(self, raw: object) -> None:
        assert load_payload(raw) is None


class TestVariationSku:
    """Variation SKUs are deterministic and collision-resistant."""

    def test_slugify_transliterates(self) -> None:
        assert slugify("Żółty Łoś") == "zolty-los"
        assert slugify("  XL / 42 ") == "xl-42"

    def test_parts_are_ordered_by_attribute_name(self) -> None:
        attributes = [
            VariationAttribute(name="Size", option="XL"),
            VariationAttribute(name="Color", option="Dark Blue"),
        ]
        sku = generate_variation_sku("SHIRT-1", "U100", attributes)
        assert sku == "SHIRT-1-U100-dark-blue-xl"

    def test_same_input_gives_same_sku(self) -> None:
        attributes = [VariationAttribute(name="Color", option="Red")]
        first = generate_variation_sku("P1", "C1", attributes)
        second = generate_variation_sku("P1", "C1", list(reversed(attributes)))
        assert first == second

    def test_repeated_parts_and_dash_runs_collapse(self) -> None:
        attributes = [VariationAttribute(name="Size", option="P1")]
        assert generate_variation_sku("P1", "P1", attributes) == "P1-p1"
        assert generate_variation_sku("P1-", "", [VariationAttribute(name="Size", option="-S-")]) == "P1-s"

    def test_empty_parts_fall_back_to_random_token(self) -> None:
        sku = generate_variation_sku("", "", [])
        assert sku.startswith("var-")
        assert len(sku) == len("var-") + 13
        assert generate_variation_sku("", "", []) != sku
