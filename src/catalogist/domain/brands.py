"""Brand normalization against the brand-alias directory."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

SENTINELS: Final[frozenset[str]] = frozenset(
    {"", "unknown", "n/a", "na", "none", "null", "-", "tbd", "generic", "unbranded"}
)
_SPACES = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class BrandAlias:
    """One directory entry: ``alias`` resolves to the canonical ``brand``."""

    brand: str
    alias: str


def fold(value: str) -> str:
    text = unicodedata.normalize("NFKC", value)
    return _SPACES.sub(" ", text).strip().casefold()


def is_sentinel(value: str | None) -> bool:
    return value is None or fold(value) in SENTINELS


def _contains(haystack: str, needle: str) -> bool:
    if not needle:
        return False
    return re.search(rf"(?<![0-9a-z]){re.escape(needle)}(?![0-9a-z])", haystack) is not None


def normalize_brand(
    raw: str | None,
    directory: Iterable[BrandAlias],
    *,
    document_text: str = "",
) -> str | None:
    """Resolve ``raw`` to a canonical brand name.

    Order: exact alias or canonical name, then a directory entry contained in the raw
    string, then (for a missing raw brand) a directory entry contained in the document
    text. An unresolved brand keeps its trimmed literal form. Returns ``None`` only when
    nothing usable exists.
    """

    entries = sorted(directory, key=lambda entry: len(entry.alias), reverse=True)
    if raw is not None and not is_sentinel(raw):
        folded = fold(raw)
        for entry in entries:
            if folded in {fold(entry.alias), fold(entry.brand)}:
                return entry.brand
        for entry in entries:
            if _contains(folded, fold(entry.alias)):
                return entry.brand
        return _SPACES.sub(" ", raw).strip()

    if document_text:
        folded_text = fold(document_text)
        for entry in entries:
            if _contains(folded_text, fold(entry.alias)):
                return entry.brand
    return None
