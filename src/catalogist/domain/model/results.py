"""Structured results returned to ingestion callers."""

from __future__ import annotations

from dataclasses import dataclass, field

from catalogist.domain.model.enums import DocType, RunStatus, SkipReason


@dataclass(frozen=True, slots=True)
class SkippedRecord:
    reason: SkipReason
    identifier: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"reason": str(self.reason), "identifier": self.identifier, "detail": self.detail}


@dataclass(slots=True)
class IngestResult:
    """Outcome of one ingestion run.

    ``processed`` counts every candidate record the run disposed of, including the ones
    merged into another record. A complete run has ``processed == written + len(skipped)``.
    """

    run_id: str
    family: str
    table: str
    status: RunStatus = RunStatus.DONE
    brand: str | None = None
    doc_type: DocType = DocType.SINGLE
    identifiers: list[str] = field(default_factory=list[str])
    skipped: list[SkippedRecord] = field(default_factory=list[SkippedRecord])
    warnings: list[str] = field(default_factory=list[str])
    processed: int = 0

    @property
    def written(self) -> int:
        return len(self.identifiers)

    @property
    def complete(self) -> bool:
        return self.processed == self.written + len(self.skipped)

    @property
    def ok(self) -> bool:
        return self.status in {RunStatus.DONE, RunStatus.PARTIAL}

    @property
    def skip_reasons(self) -> list[str]:
        return sorted({str(item.reason) for item in self.skipped})

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "run_id": self.run_id,
            "status": str(self.status),
            "family": self.family,
            "table": self.table,
            "brand": self.brand,
            "doc_type": str(self.doc_type),
            "identifiers": list(self.identifiers),
            "written": self.written,
            "processed": self.processed,
            "skipped": [item.to_dict() for item in self.skipped],
            "skip_reasons": self.skip_reasons,
            "warnings": list(self.warnings),
        }
