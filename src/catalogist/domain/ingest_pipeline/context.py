"""Shared context structures for the ingest pipeline (run state + collaborators)."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from catalogist.config.ingest import IngestConfig
from catalogist.domain.caching import TtlCache
from catalogist.domain.errors import RunTimeoutError, StoreError
from catalogist.domain.ingest_pipeline.external import call_with_timeout
from catalogist.domain.model import (
    AdmittedRecord,
    AttributeType,
    CandidateRecord,
    DocType,
    ExtractionBundle,
    Family,
    FamilySource,
    HarvestStrategy,
    RunStatus,
    SkippedRecord,
    SkipReason,
    SourceDocument,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from catalogist.domain.brands import BrandAlias
    from catalogist.domain.ports import (
        DocumentParser,
        DocumentStore,
        ExtractionOracle,
        IngestUnitOfWork,
        PostCommitScheduler,
        StoredTemplate,
        ViewRefresher,
    )
    from catalogist.domain.templates import IdentifierTemplate

log = getLogger(__name__)

type ScopeKey = tuple[str, str, str]


@dataclass(slots=True)
class RunDeadline:
    """Watchdog for the run's hard wall-clock budget."""

    budget_seconds: float
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.started_at = self.clock()

    def remaining(self) -> float:
        return self.budget_seconds - (self.clock() - self.started_at)

    def bound(self, timeout: float) -> float:
        return max(0.0, min(timeout, self.remaining()))

    def check(self, run_id: str) -> None:
        if self.remaining() <= 0:
            raise RunTimeoutError(
                f"Run {run_id} exceeded its {self.budget_seconds:.0f}s budget", run_id=run_id
            )


@dataclass(slots=True)
class LearnedStateCache:
    """Read-through caches over learned state persisted in the store."""

    families: TtlCache[str, tuple[Family, ...]]
    aliases: TtlCache[ScopeKey, dict[str, str]]
    templates: TtlCache[ScopeKey, StoredTemplate | None]
    brands: TtlCache[str, list[BrandAlias]]

    @classmethod
    def with_ttl(cls, ttl_seconds: float) -> LearnedStateCache:
        return cls(
            families=TtlCache(ttl_seconds=ttl_seconds),
            aliases=TtlCache(ttl_seconds=ttl_seconds),
            templates=TtlCache(ttl_seconds=ttl_seconds),
            brands=TtlCache(ttl_seconds=ttl_seconds),
        )


@dataclass(slots=True)
class IngestServices:
    """Collaborators wired in by the application layer."""

    uow_factory: Callable[[], IngestUnitOfWork]
    oracle: ExtractionOracle
    config: IngestConfig = field(default_factory=IngestConfig)
    caches: LearnedStateCache = field(default_factory=lambda: LearnedStateCache.with_ttl(60.0))
    scheduler: PostCommitScheduler | None = None
    view_refresher: ViewRefresher | None = None
    documents: DocumentStore | None = None
    parser: DocumentParser | None = None


@dataclass(slots=True)
class IdentifierCandidate:
    """A literal identifier harvested from the document."""

    identifier: str
    key: str
    sources: set[HarvestStrategy] = field(default_factory=set[HarvestStrategy])
    verified_in_doc: bool = False


@dataclass(slots=True)
class IngestRun:
    """Everything a single run knows about its document. Mutated phase by phase."""

    run_id: str
    document: SourceDocument
    bundle: ExtractionBundle
    family: Family | None = None
    family_source: FamilySource | None = None
    brand: str | None = None
    series: str | None = None
    display_name: str | None = None
    doc_type: DocType = DocType.SINGLE
    doc_attributes: dict[str, object] = field(default_factory=dict[str, object])
    candidates: list[IdentifierCandidate] = field(default_factory=list[IdentifierCandidate])
    records: list[CandidateRecord] = field(default_factory=list[CandidateRecord])
    variant_domains: dict[str, list[str]] = field(default_factory=dict[str, list[str]])
    ordering_template: str | None = None
    columns: dict[str, AttributeType] = field(default_factory=dict[str, AttributeType])
    key_map: dict[str, str] = field(default_factory=dict[str, str])
    schema_ready: bool = True
    new_variant_keys: list[str] = field(default_factory=list[str])
    template: IdentifierTemplate | None = None
    admitted: list[AdmittedRecord] = field(default_factory=list[AdmittedRecord])
    skipped: list[SkippedRecord] = field(default_factory=list[SkippedRecord])
    written: list[str] = field(default_factory=list[str])
    processed: int = 0
    warnings: list[str] = field(default_factory=list[str])
    post_commit: list[tuple[str, Callable[[], None]]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.bundle.text

    @property
    def table(self) -> str:
        return self.family.table_name if self.family is not None else ""

    def require_family(self) -> Family:
        if self.family is None:
            raise RuntimeError("Family not resolved yet")
        return self.family

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def skip(self, reason: SkipReason, identifier: str | None, detail: str | None = None) -> None:
        self.skipped.append(SkippedRecord(reason=reason, identifier=identifier, detail=detail))
        log.info("Skipping %s: %s%s", identifier or "<no identifier>", reason, _suffix(detail))

    def merge(self, record: CandidateRecord, detail: str) -> None:
        """Account for a record folded into another one; it is processed but not written."""

        self.processed += 1
        self.skip(SkipReason.MERGED, record.identifier, detail)

    @property
    def incomplete(self) -> bool:
        return any(item.reason is not SkipReason.MERGED for item in self.skipped)


def _suffix(detail: str | None) -> str:
    return f" ({detail})" if detail else ""


@dataclass(slots=True)
class PipelineContext:
    """Mutable context shared across pipeline phases."""

    services: IngestServices
    deadline: RunDeadline
    status: RunStatus = RunStatus.STARTED
    transitions: list[RunStatus] = field(default_factory=list[RunStatus])

    @property
    def config(self) -> IngestConfig:
        return self.services.config

    @property
    def caches(self) -> LearnedStateCache:
        return self.services.caches

    def uow(self) -> IngestUnitOfWork:
        return self.services.uow_factory()

    def transition(self, status: RunStatus, run: IngestRun) -> None:
        if status is not RunStatus.FAILED:
            self.deadline.check(run.run_id)
        self.status = status
        self.transitions.append(status)
        log.info("Run %s: %s", run.run_id, status)
        self.record_status(run, status)

    def record_status(
        self,
        run: IngestRun,
        status: RunStatus,
        detail: Mapping[str, object] | None = None,
    ) -> None:
        """Append to the run log. Failures are logged, never raised."""

        payload: dict[str, object] = {"family": run.family.slug if run.family else None}
        if detail:
            payload.update(detail)
        try:
            with self.uow() as uow:
                uow.repositories.run_log.append(run.run_id, str(status), payload)
                uow.commit()
        except StoreError as exc:
            log.warning("Run log write failed for %s (%s): %s", run.run_id, status, exc)

    def external[T](self, label: str, func: Callable[[], T], *, timeout: float) -> T | None:
        return call_with_timeout(label, func, timeout=self.deadline.bound(timeout))

    def oracle_call[T](self, label: str, func: Callable[[], T]) -> T | None:
        return self.external(f"oracle.{label}", func, timeout=self.config.oracle_timeout_seconds)
