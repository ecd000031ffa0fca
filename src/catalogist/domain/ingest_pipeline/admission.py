"""Record normalization and the admission gate.

Every candidate leaves this phase either as an :class:`AdmittedRecord` with values
coerced to the live column types, or as a typed skip. The phase never raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogist.domain.brands import is_sentinel, normalize_brand
from catalogist.domain.errors import StoreError
from catalogist.domain.identifiers import appears_verbatim, has_placeholder, is_identifier_shaped
from catalogist.domain.model import (
    AdmittedRecord,
    IdentifierSource,
    NaturalKey,
    RunStatus,
    SkipReason,
)
from catalogist.domain.templates import has_unresolved
from catalogist.domain.values import coerce_value

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from catalogist.domain.brands import BrandAlias
    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext
    from catalogist.domain.model import AttributeType, CandidateRecord

log = getLogger(__name__)

DIRECTORY_CACHE_KEY: Final[str] = "directory"


def _unresolved_text(record: CandidateRecord, values: Mapping[str, object]) -> str | None:
    for name, value in (
        ("identifier", record.identifier),
        ("display_name", record.display_name),
        ("series", record.series),
    ):
        if isinstance(value, str) and (has_placeholder(value) or has_unresolved(value)):
            return name
    for key, value in values.items():
        if isinstance(value, str) and has_unresolved(value):
            return key
    return None


@dataclass(slots=True)
class AdmissionGate:
    """Validates candidates of one run against the live schema and the brand directory."""

    columns: Mapping[str, AttributeType]
    directory: Sequence[BrandAlias]
    corpus: str
    min_attributes: int = 1
    schema_ready: bool = True
    seen: set[NaturalKey] = field(default_factory=set[NaturalKey])

    def admit(self, record: CandidateRecord) -> AdmittedRecord | None:
        """Return the admitted record, or ``None`` after setting ``record.rejection``."""

        if record.rejected:
            return None
        if not self.schema_ready:
            record.reject(SkipReason.SCHEMA_NOT_READY)
            return None

        brand = normalize_brand(record.brand, self.directory, document_text=self.corpus)
        if brand is None or is_sentinel(brand):
            record.reject(SkipReason.MISSING_BRAND)
            return None

        identifier = record.identifier
        if identifier is not None and has_placeholder(identifier):
            record.reject(SkipReason.TEMPLATE_UNRESOLVED, identifier)
            return None
        if identifier is None or not is_identifier_shaped(identifier):
            record.reject(SkipReason.INVALID_IDENTIFIER, identifier)
            return None
        trusted = record.identifier_source is IdentifierSource.HINT
        if not (trusted or record.verified_in_doc or appears_verbatim(identifier, self.corpus)):
            record.reject(SkipReason.UNVERIFIED_IDENTIFIER)
            return None

        values, overflow = self._coerce(record)
        populated = {k for k, v in values.items() if v is not None} | set(overflow)
        if len(populated) < self.min_attributes:
            record.reject(
                SkipReason.MISSING_CORE_SPEC, f"{len(populated)} < {self.min_attributes}"
            )
            return None

        unresolved = _unresolved_text(record, values)
        if unresolved is not None:
            record.reject(SkipReason.TEMPLATE_UNRESOLVED, unresolved)
            return None

        key = NaturalKey.of(brand, identifier)
        if key in self.seen:
            record.reject(SkipReason.DUPLICATE_WITHIN_BATCH)
            return None
        self.seen.add(key)

        return AdmittedRecord(
            key=key,
            brand=brand,
            identifier=identifier,
            values=values,
            overflow=overflow,
            series=record.series,
            display_name=record.display_name,
            identifier_source=record.identifier_source or IdentifierSource.LITERAL,
            verified_in_doc=record.verified_in_doc or appears_verbatim(identifier, self.corpus),
            doc_type=record.doc_type,
            warnings=list(record.warnings),
        )

    def _coerce(self, record: CandidateRecord) -> tuple[dict[str, object], dict[str, object]]:
        values: dict[str, object] = {}
        overflow: dict[str, object] = dict(record.overflow)
        for key, raw in record.attributes.items():
            coerced = coerce_value(key, raw, self.columns.get(key), self.columns)
            for column, value in coerced.values.items():
                values.setdefault(column, value)
            overflow.update(coerced.overflow)
            for warning in coerced.warnings:
                record.warn(warning)
        return values, overflow


@dataclass(slots=True)
class AdmissionPhase:
    name: str = "admission"
    status: RunStatus = RunStatus.NORMALIZING

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        gate = AdmissionGate(
            columns=run.columns,
            directory=brand_directory(context),
            corpus=run.bundle.corpus(),
            min_attributes=context.config.min_attribute_count,
            schema_ready=run.schema_ready,
        )
        for record in run.records:
            run.processed += 1
            admitted = gate.admit(record)
            for warning in record.warnings:
                run.warn(warning)
            if admitted is None:
                reason = record.rejection or SkipReason.INVALID_IDENTIFIER
                run.skip(reason, record.identifier, record.rejection_detail)
                continue
            run.admitted.append(admitted)
        log.info(
            "Run %s admitted %d of %d record(s)",
            run.run_id,
            len(run.admitted),
            len(run.records),
        )


def brand_directory(context: PipelineContext) -> list[BrandAlias]:
    def load() -> list[BrandAlias]:
        with context.uow() as uow:
            return uow.repositories.brands.entries()

    try:
        return context.caches.brands.get_or_load(DIRECTORY_CACHE_KEY, load)
    except StoreError as exc:
        log.warning("Brand directory unavailable, using literal brands: %s", exc)
        return []
