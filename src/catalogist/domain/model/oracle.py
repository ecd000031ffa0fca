"""Value objects returned by the extraction oracle port."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class FamilyGuess:
    slug: str
    confidence: float = 0.0


@dataclass(slots=True)
class OracleExtraction:
    """Best-effort field map and item codes for one document."""

    fields: dict[str, object] = field(default_factory=dict[str, object])
    codes: list[str] = field(default_factory=list[str])
    rows: list[dict[str, object]] = field(default_factory=list[dict[str, object]])
    brand: str | None = None
    series: str | None = None


@dataclass(slots=True)
class OrderingGuess:
    """Ranked guess of the keys that parameterize an ordering-code table."""

    variant_keys: list[str] = field(default_factory=list[str])
    domains: dict[str, list[str]] = field(default_factory=dict[str, list[str]])
    template: str | None = None
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class KeyCanonicalization:
    key: str
    canonical: str
    confidence: float


@dataclass(frozen=True, slots=True)
class TemplateGuess:
    template: str
    confidence: float
