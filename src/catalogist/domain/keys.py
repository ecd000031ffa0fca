"""Attribute key normalization and identity-key detection."""

from __future__ import annotations

import re
import unicodedata
from typing import Final

MAX_KEY_LENGTH: Final[int] = 63

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_UNIT_SYMBOLS: Final[dict[str, str]] = {
    "µ": "u",
    "μ": "u",
    "Ω": "ohm",
    "°": "deg",
    "%": "pct",
}

BRAND_KEYS: Final[frozenset[str]] = frozenset(
    {"brand", "manufacturer", "maker", "mfr", "mfg", "vendor", "brand_name"}
)
IDENTIFIER_KEYS: Final[frozenset[str]] = frozenset(
    {
        "code",
        "part_number",
        "part_no",
        "partnumber",
        "pn",
        "p_n",
        "mpn",
        "type_no",
        "type_number",
        "catalog_number",
        "catalog_no",
        "ordering_code",
        "order_code",
        "order_number",
        "model",
        "model_number",
    }
)
SERIES_KEYS: Final[frozenset[str]] = frozenset({"series", "series_code", "series_name"})
DISPLAY_NAME_KEYS: Final[frozenset[str]] = frozenset(
    {"display_name", "product_name", "title", "name"}
)


def normalize_key(raw: str) -> str:
    """Return the snake-case form of an attribute name.

    ``"Coil Voltage (VDC)"`` becomes ``coil_voltage_vdc`` and ``"contactForm"``
    becomes ``contact_form``. Keys starting with a digit get an ``attr_`` prefix so
    they remain valid column names.
    """

    text = unicodedata.normalize("NFKC", str(raw)).strip()
    for symbol, replacement in _UNIT_SYMBOLS.items():
        text = text.replace(symbol, f" {replacement} ")
    text = _CAMEL_BOUNDARY.sub("_", text).lower()
    key = _NON_ALNUM.sub("_", text).strip("_")
    if not key:
        return ""
    if key[0].isdigit():
        key = f"attr_{key}"
    return key[:MAX_KEY_LENGTH].rstrip("_")


def identity_role(key: str) -> str | None:
    """Return which identity field a normalized key names, if any."""

    if key in BRAND_KEYS:
        return "brand"
    if key in IDENTIFIER_KEYS:
        return "identifier"
    if key in SERIES_KEYS:
        return "series"
    if key in DISPLAY_NAME_KEYS:
        return "display_name"
    return None


def normalize_attributes(raw: dict[str, object]) -> dict[str, object]:
    """Snake-case every key, keeping the first value seen for colliding keys."""

    normalized: dict[str, object] = {}
    for raw_key, value in raw.items():
        key = normalize_key(raw_key)
        if not key or key in normalized:
            continue
        normalized[key] = value
    return normalized
