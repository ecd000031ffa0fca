from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest

from catalogist.domain.errors import RunTimeoutError, StoreError
from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext, RunDeadline
from catalogist.domain.ingest_pipeline.orchestrator import IngestionPipeline, PipelinePhase
from catalogist.domain.model import ExtractionBundle, RunStatus
from tests.support.catalog import document

if TYPE_CHECKING:
    from catalogist.domain.ingest_pipeline import IngestServices
    from catalogist.domain.ports import IngestUnitOfWork


@dataclass(slots=True)
class _RecordingPhase(PipelinePhase):
    name: str
    status: RunStatus
    calls: list[str]

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        _ = (run, context)
        self.calls.append(self.name)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _run() -> IngestRun:
    return IngestRun(run_id="run-1", document=document(), bundle=ExtractionBundle())


def test_pipeline_runs_phases_in_order(services: IngestServices) -> None:
    calls: list[str] = []
    first = _RecordingPhase(name="first", status=RunStatus.HARVESTING, calls=calls)
    second = _RecordingPhase(name="second", status=RunStatus.PERSISTING, calls=calls)
    pipeline = IngestionPipeline(phases=(first, second))
    context = PipelineContext(services, RunDeadline(60.0))

    pipeline.run(_run(), context=context)

    assert calls == ["first", "second"]
    assert context.transitions == [RunStatus.HARVESTING, RunStatus.PERSISTING]
    with services.uow_factory() as uow:
        assert uow.repositories.run_log.statuses("run-1") == ["harvesting", "persisting"]


def test_with_phase_and_extend_return_new_pipelines() -> None:
    calls: list[str] = []
    first = _RecordingPhase(name="first", status=RunStatus.HARVESTING, calls=calls)
    second = _RecordingPhase(name="second", status=RunStatus.PERSISTING, calls=calls)
    base = IngestionPipeline()

    assert base.with_phase(first).phases == (first,)
    assert base.extend([first, second]).phases == (first, second)
    assert base.phases == ()


def test_expired_deadline_stops_before_next_phase(services: IngestServices) -> None:
    calls: list[str] = []
    clock = _Clock()

    @dataclass(slots=True)
    class _SlowPhase:
        name: str = "slow"
        status: RunStatus = RunStatus.HARVESTING

        def run(self, run: IngestRun, *, context: PipelineContext) -> None:
            _ = (run, context)
            calls.append(self.name)
            clock.now = 11.0

    never = _RecordingPhase(name="never", status=RunStatus.PERSISTING, calls=calls)
    pipeline = IngestionPipeline(phases=(_SlowPhase(), never))
    context = PipelineContext(services, RunDeadline(10.0, clock=clock))

    with pytest.raises(RunTimeoutError):
        pipeline.run(_run(), context=context)

    assert calls == ["slow"]


def test_run_log_failures_do_not_fail_the_run(services: IngestServices) -> None:
    def broken_uow() -> IngestUnitOfWork:
        raise StoreError("database is down")

    services.uow_factory = broken_uow
    calls: list[str] = []
    pipeline = IngestionPipeline(
        phases=(_RecordingPhase(name="only", status=RunStatus.HARVESTING, calls=calls),)
    )

    pipeline.run(_run(), context=PipelineContext(services, RunDeadline(60.0)))

    assert calls == ["only"]
