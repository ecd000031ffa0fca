"""Value coercion from raw extracted text to column types."""

from __future__ import annotations

import json
import re
import unicodedata
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from catalogist.domain.model import AttributeType

if TYPE_CHECKING:
    from collections.abc import Mapping

SCALE: Final[dict[str, float]] = {
    "p": 1e-12,
    "n": 1e-9,
    "u": 1e-6,
    "µ": 1e-6,
    "μ": 1e-6,
    "m": 1e-3,
    "k": 1e3,
    "K": 1e3,
    "M": 1e6,
    "G": 1e9,
}
TRUE_WORDS: Final[frozenset[str]] = frozenset({"true", "t", "yes", "y", "1", "on"})
FALSE_WORDS: Final[frozenset[str]] = frozenset({"false", "f", "no", "n", "0", "off"})
UNIT_SUFFIXES: Final[tuple[str, ...]] = (
    "_vdc",
    "_vac",
    "_v",
    "_ma",
    "_a",
    "_ua",
    "_w",
    "_mw",
    "_hz",
    "_khz",
    "_ohm",
    "_c",
    "_ms",
    "_s",
    "_mm",
)

_NUMBER = r"[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|[+-]?\.\d+"
_SCALED = re.compile(
    rf"^\s*(?P<num>{_NUMBER})\s*(?P<scale>[pnuµμmkKMG])?(?P<rest>(?:\s*[^\d\s].*)?)$"
)
_RANGE = re.compile(
    rf"^\s*(?P<low>{_NUMBER})\s*(?P<lowunit>[^\d\s~–—.+-]*)\s*"
    r"(?:to|~|–|—|\.\.|-)\s*"
    rf"(?P<high>{_NUMBER})\s*(?P<highunit>.*)$",
    re.IGNORECASE,
)
_OHMS = re.compile(r"^(?:Ω|ohms?\b)", re.IGNORECASE)


@dataclass(slots=True)
class Coerced:
    """Outcome of coercing one raw value against one column."""

    values: dict[str, object] = field(default_factory=dict[str, object])
    overflow: dict[str, object] = field(default_factory=dict[str, object])
    warnings: list[str] = field(default_factory=list[str])


def _to_float(number: str) -> float:
    return float(number.replace(",", ""))


def parse_number(raw: object) -> float | None:
    """Parse ``"5V"``, ``"4.7k"``, ``"1,000"`` or ``"2.2 µ"`` into a float.

    A scale suffix, spaced or not, applies only when it ends the token or precedes
    ``Ω``/``ohm``.
    ``"10mA"`` stays ``10`` because the column is expected to carry the unit.
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = unicodedata.normalize("NFKC", str(raw)).strip()
    if not text:
        return None
    match = _SCALED.match(text)
    if match is None:
        return None
    value = _to_float(match.group("num"))
    scale = match.group("scale")
    if scale is None:
        return value
    rest = (match.group("rest") or "").lstrip()
    if rest[:1].isalpha() and not _OHMS.match(rest):
        return value
    return value * SCALE[scale]


def parse_range(raw: object) -> tuple[float, float] | None:
    if raw is None or isinstance(raw, (bool, int, float)):
        return None
    text = unicodedata.normalize("NFKC", str(raw)).strip()
    match = _RANGE.match(text)
    if match is None:
        return None
    low = parse_number(match.group("low") + match.group("lowunit"))
    high = parse_number(match.group("high") + match.group("highunit"))
    if low is None or high is None:
        return None
    return (low, high) if low <= high else (high, low)


def parse_bool(raw: object) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return bool(raw) if raw in (0, 1) else None
    if raw is None:
        return None
    word = str(raw).strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return None


def to_text(raw: object) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        items = [str(item).strip() for item in raw if item is not None and str(item).strip()]
        return ", ".join(items) or None
    if isinstance(raw, dict):
        return json.dumps(raw, sort_keys=True, default=str)
    text = str(raw).strip()
    return text or None


def find_range_columns(key: str, columns: Mapping[str, AttributeType]) -> tuple[str, str] | None:
    """Locate ``<key>_min`` / ``<key>_max`` siblings, also after dropping a unit suffix."""

    bases = [key]
    for suffix in UNIT_SUFFIXES:
        if key.endswith(suffix):
            bases.append(key[: -len(suffix)])
            break
    for base in bases:
        low, high = f"{base}_min", f"{base}_max"
        if low in columns and high in columns:
            return low, high
    return None


def _is_missing(raw: object) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip() or raw.strip().lower() in {"-", "—", "n/a", "na", "none", "null"}
    if isinstance(raw, (list, tuple, dict)):
        return not raw
    return False


def _coerce_numeric(
    key: str,
    raw: object,
    column_type: AttributeType,
    columns: Mapping[str, AttributeType],
) -> Coerced:
    outcome = Coerced()
    bounds = parse_range(raw)
    if bounds is not None:
        siblings = find_range_columns(key, columns)
        if siblings is not None:
            outcome.values[siblings[0]] = bounds[0]
            outcome.values[siblings[1]] = bounds[1]
        else:
            outcome.overflow[key] = raw
            outcome.warnings.append(f"numeric_range_string:{key}")
        return outcome

    number = parse_number(raw)
    if number is None:
        outcome.overflow[key] = raw
        outcome.warnings.append(f"unparsed_numeric:{key}")
        return outcome
    if column_type is AttributeType.INTEGER:
        if not number.is_integer():
            outcome.overflow[key] = raw
            outcome.warnings.append(f"non_integer_value:{key}")
            return outcome
        outcome.values[key] = int(number)
        return outcome
    outcome.values[key] = number
    return outcome


def coerce_value(
    key: str,
    raw: object,
    column_type: AttributeType | None,
    columns: Mapping[str, AttributeType],
) -> Coerced:
    """Coerce ``raw`` for column ``key``; anything that does not fit lands in overflow."""

    if _is_missing(raw):
        return Coerced()
    if column_type is None:
        return Coerced(overflow={key: raw})

    match column_type:
        case AttributeType.NUMERIC | AttributeType.INTEGER:
            return _coerce_numeric(key, raw, column_type, columns)
        case AttributeType.BOOLEAN:
            flag = parse_bool(raw)
            if flag is None:
                return Coerced(overflow={key: raw}, warnings=[f"unparsed_boolean:{key}"])
            return Coerced(values={key: flag})
        case AttributeType.JSON:
            return Coerced(values={key: raw})
        case _:
            return Coerced(values={key: to_text(raw)})
