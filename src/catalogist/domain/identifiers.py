"""Identifier shape validation, normalization and textual corroboration."""

from __future__ import annotations

import re
import unicodedata
from typing import Final

MIN_IDENTIFIER_LENGTH: Final[int] = 3
MAX_IDENTIFIER_LENGTH: Final[int] = 64

_DASHES = re.compile(r"[‐-―−﹘﹣－]")
_WHITESPACE = re.compile(r"\s+")

_NOISE_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "ISO",
        "ROHS",
        "UL",
        "VDC",
        "VAC",
        "A",
        "MA",
        "MM",
        "OHM",
        "PDF",
        "PAGE",
        "NOTE",
        "DATE",
        "LOT",
        "WWW",
        "HTTP",
        "HTTPS",
        "TYP",
        "MAX",
        "MIN",
        "N/A",
    }
)
_FORBIDDEN = re.compile(
    r"(sample|prototype|dummy|\btest\b|\.pdf|font|xref|\bobj\b|endobj|endstream)", re.IGNORECASE
)
_UNIT_TOKEN = re.compile(
    r"^[+-]?\d+(?:[.,]\d+)?\s*"
    r"(?:k|m|u|µ|n|p|g)?(?:v|vdc|vac|a|w|hz|ohm|Ω|f|h|°c|c|mm|cm|m|g|kg|%|s|ms|pcs|db)$",
    re.IGNORECASE,
)
_PURE_NUMBER = re.compile(r"^[+-]?[\d.,\s]+$")
_HEX_HASH = re.compile(r"^[0-9A-F]{12,}$", re.IGNORECASE)
_ALLOWED_SHAPE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z\-_/().+# ]*[0-9A-Za-z)+#]$")
_PLACEHOLDER = re.compile(r"\{[^{}]*\}")

TEXT_TOKEN: Final[re.Pattern[str]] = re.compile(
    r"(?<![0-9A-Za-z\-/])([0-9A-Z][0-9A-Z\-_/.]{1,46}[0-9A-Z])(?![0-9A-Za-z])"
)


def normalize_identifier(value: str) -> str:
    """Return the merge key for an identifier: NFKC, uppercase, unified dashes, no spaces."""

    text = unicodedata.normalize("NFKC", value)
    text = _DASHES.sub("-", text)
    return _WHITESPACE.sub("", text).upper()


def clean_identifier(value: str) -> str:
    text = unicodedata.normalize("NFKC", value)
    text = _DASHES.sub("-", text)
    return _WHITESPACE.sub(" ", text).strip().strip(",;:")


def has_placeholder(value: str) -> bool:
    return bool(_PLACEHOLDER.search(value)) or "{" in value or "}" in value


def is_noise_token(value: str) -> bool:
    token = value.strip().upper()
    if token in _NOISE_TOKENS:
        return True
    if _PURE_NUMBER.match(token):
        return True
    return bool(_UNIT_TOKEN.match(value.strip()))


def is_identifier_shaped(value: str | None, *, require_letter_and_digit: bool = False) -> bool:
    """Return whether ``value`` looks like a catalog identifier.

    Bounded length, alphanumeric-containing, and not a unit, noise, URL, hash or
    placeholder token. Free-text harvesting additionally asks for at least one
    letter and one digit.
    """

    if value is None:
        return False
    text = clean_identifier(value)
    if not MIN_IDENTIFIER_LENGTH <= len(text) <= MAX_IDENTIFIER_LENGTH:
        return False
    if has_placeholder(text):
        return False
    lowered = text.lower()
    if "http" in lowered or "www." in lowered or ":" in text or "@" in text:
        return False
    if not any(ch.isalnum() for ch in text):
        return False
    if is_noise_token(text):
        return False
    if _FORBIDDEN.search(text) or _HEX_HASH.match(text):
        return False
    if not _ALLOWED_SHAPE.match(text):
        return False
    if require_letter_and_digit:
        return any(ch.isalpha() for ch in text) and any(ch.isdigit() for ch in text)
    return True


def _normalize_text(value: str) -> str:
    text = unicodedata.normalize("NFKC", value)
    text = _DASHES.sub("-", text)
    return _WHITESPACE.sub(" ", text).upper()


def _corroboration_pattern(identifier: str) -> re.Pattern[str] | None:
    chars = [ch for ch in normalize_identifier(identifier) if ch.isalnum()]
    if not chars:
        return None
    separator = r"[\s\-_/.]?"
    body = separator.join(re.escape(ch) for ch in chars)
    return re.compile(rf"(?<![0-9A-Z]){body}(?![0-9A-Z])")


def appears_verbatim(identifier: str, text: str) -> bool:
    """Return whether ``identifier`` occurs in ``text`` after whitespace/punctuation normalization.

    Separators between characters may differ (``X1-24`` matches ``X1 24`` and
    ``X124``) but the match must be bounded by non-alphanumerics on both sides so
    a code never matches inside a longer one.
    """

    if not identifier or not text:
        return False
    pattern = _corroboration_pattern(identifier)
    if pattern is None:
        return False
    return bool(pattern.search(_normalize_text(text)))


def text_tokens(text: str, *, prefix: str | None = None) -> list[str]:
    """Identifier-shaped tokens in ``text`` in order of first appearance."""

    normalized_prefix = normalize_identifier(prefix) if prefix else None
    seen: dict[str, str] = {}
    for match in TEXT_TOKEN.finditer(unicodedata.normalize("NFKC", text)):
        token = match.group(1).rstrip(".")
        if not is_identifier_shaped(token, require_letter_and_digit=True):
            continue
        key = normalize_identifier(token)
        if normalized_prefix and not key.startswith(normalized_prefix):
            continue
        seen.setdefault(key, token)
    return list(seen.values())
