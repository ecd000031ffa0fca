"""In-memory candidate records and the rows admitted for persistence."""

from __future__ import annotations

from dataclasses import dataclass, field

from catalogist.domain.model.enums import (
    DocType,
    HarvestStrategy,
    IdentifierSource,
    SkipReason,
)


@dataclass(slots=True)
class CandidateRecord:
    """Unvalidated extraction result for one item. Exists only during a run."""

    attributes: dict[str, object] = field(default_factory=dict[str, object])
    brand: str | None = None
    identifier: str | None = None
    series: str | None = None
    display_name: str | None = None
    identifier_source: IdentifierSource | None = None
    verified_in_doc: bool = False
    doc_type: DocType = DocType.SINGLE
    sources: set[HarvestStrategy] = field(default_factory=set[HarvestStrategy])
    variant: dict[str, str] = field(default_factory=dict[str, str])
    overflow: dict[str, object] = field(default_factory=dict[str, object])
    warnings: list[str] = field(default_factory=list[str])
    rejection: SkipReason | None = None
    rejection_detail: str | None = None

    @property
    def rejected(self) -> bool:
        return self.rejection is not None

    def reject(self, reason: SkipReason, detail: str | None = None) -> None:
        if self.rejection is None:
            self.rejection = reason
            self.rejection_detail = detail

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)


@dataclass(frozen=True, slots=True)
class NaturalKey:
    brand_norm: str
    identifier_norm: str

    @classmethod
    def of(cls, brand: str, identifier: str) -> NaturalKey:
        return cls(brand.strip().casefold(), identifier.strip().casefold())


@dataclass(slots=True)
class AdmittedRecord:
    """A record that passed the admission gate, with values coerced to column types."""

    key: NaturalKey
    brand: str
    identifier: str
    values: dict[str, object]
    overflow: dict[str, object]
    series: str | None = None
    display_name: str | None = None
    identifier_source: IdentifierSource = IdentifierSource.LITERAL
    verified_in_doc: bool = False
    doc_type: DocType = DocType.SINGLE
    warnings: list[str] = field(default_factory=list[str])
