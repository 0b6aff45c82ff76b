"""Helpers for traversing loosely shaped feed documents.

Feed documents are XML converted to JSON, so any element may arrive as a
single object or as a list, and numbers frequently arrive as strings.
"""

import re
import unicodedata
import uuid
from collections.abc import Iterable
from typing import Any

import orjson

from catalog_sync.services.normalization.canonical import VariationAttribute

_SLUG_TRANSLATION = str.maketrans({"ł": "l", "Ł": "L", "ø": "o", "Ø": "O", "ß": "ss"})
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DASH_RUNS = re.compile(r"-{2,}")


def as_list(value: Any) -> list[Any]:
    """Return ``value`` as a list; a single object becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def text_of(value: Any, default: str = "") -> str:
    """Extract a trimmed string from a scalar, a list, or a text node."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        for key in ("#text", "@value", "value"):
            if key in value:
                return text_of(value[key], default)
        return default
    if isinstance(value, list):
        for item in value:
            text = text_of(item)
            if text:
                return text
    return default


def attributes_of(value: Any) -> dict[str, Any]:
    """Return the ``@attributes`` mapping of an XML element, if any."""
    if isinstance(value, dict):
        attrs = value.get("@attributes")
        if isinstance(attrs, dict):
            return attrs
    return {}


def to_price(value: Any) -> float:
    """Parse a price, accepting decimal commas. Invalid or negative gives 0.0."""
    text = text_of(value)
    if not text:
        return 0.0
    text = text.replace(" ", "").replace(",", ".")
    try:
        price = float(text)
    except ValueError:
        return 0.0
    if price != price or price < 0:  # NaN or negative
        return 0.0
    return price


def to_quantity(value: Any) -> int:
    """Parse a stock quantity, clamping to zero."""
    try:
        quantity = int(float(text_of(value) or 0))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(quantity, 0)


def split_path(value: Any, separator: str) -> list[str]:
    """Split one or more delimited paths into trimmed non-empty segments."""
    segments: list[str] = []
    for item in as_list(value):
        text = text_of(item)
        if not text:
            continue
        segments.extend(part.strip() for part in text.split(separator) if part.strip())
    return segments


def unique(values: Iterable[str]) -> list[str]:
    """Distinct non-empty values in first-seen order."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def load_payload(raw: Any) -> dict[str, Any] | None:
    """Decode a stored feed payload into a dict, or None when unusable."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return None
        try:
            decoded = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def slugify(value: str) -> str:
    """Lowercase ASCII slug with dash separators."""
    text = unicodedata.normalize("NFKD", value.translate(_SLUG_TRANSLATION))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_ALNUM.sub("-", text).strip("-")


def generate_variation_sku(
    base_sku: str,
    supplier_code: str,
    attributes: Iterable[VariationAttribute] = (),
) -> str:
    """Build a deterministic variation SKU.

    Parts are the base SKU, the supplier code and the slugified option of
    each attribute ordered by attribute name. Repeated parts are dropped and
    dash runs collapsed. A random ``var-`` token is used only when every
    part is empty.
    """
    parts = [base_sku.strip(), supplier_code.strip()]
    for attribute in sorted(attributes, key=lambda attr: attr.name.lower()):
        parts.append(slugify(attribute.option))

    sku = "-".join(unique(parts))
    sku = _DASH_RUNS.sub("-", sku).strip("-")
    if not sku:
        return f"var-{uuid.uuid4().hex[:13]}"
    return sku
