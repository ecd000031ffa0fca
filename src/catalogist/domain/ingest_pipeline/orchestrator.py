"""Phase-based orchestrator for the catalogist ingest pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from catalogist.domain.model import RunStatus


class PipelinePhase(Protocol):
    """Contract implemented by each ingestion phase."""

    name: str
    status: RunStatus

    def run(self, run: IngestRun, *, context: PipelineContext) -> None: ...


@dataclass(slots=True)
class IngestionPipeline:
    """Compose and execute the ordered pipeline phases.

    Before each phase the run moves to that phase's status, which also checks the
    run deadline and appends to the run log.
    """

    phases: Sequence[PipelinePhase] = field(default_factory=tuple)

    def with_phase(self, phase: PipelinePhase) -> IngestionPipeline:
        """Return a new pipeline appending ``phase`` at the end."""

        return IngestionPipeline(phases=(*self.phases, phase))

    def extend(self, phases: Iterable[PipelinePhase]) -> IngestionPipeline:
        """Return a new pipeline with the provided ``phases`` concatenated."""

        return IngestionPipeline(phases=(*self.phases, *tuple(phases)))

    def run(self, run: IngestRun, *, context: PipelineContext) -> IngestRun:
        """Execute the configured phases in-order against ``run``."""

        for phase in self.phases:
            context.transition(phase.status, run)
            phase.run(run, context=context)
        return run
