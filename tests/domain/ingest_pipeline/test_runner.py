from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from catalogist.adapters.documents import (
    DocumentFetchError,
    LocalDocumentStore,
    PlainTextDocumentParser,
)
from catalogist.adapters.sqlalchemy.repositories import SqlAlchemyCatalogRepository
from catalogist.config import IngestConfig
from catalogist.domain.errors import LockContentionError, RunTimeoutError, StoreError
from catalogist.domain.ingest_pipeline import default_pipeline, run_ingest
from catalogist.domain.ingest_pipeline.runner import default_owner
from catalogist.domain.model import (
    AttributeType,
    DocType,
    ExtractionBundle,
    Family,
    NaturalKey,
    OracleExtraction,
    RunStatus,
    SkipReason,
)
from tests.support.catalog import (
    RELAY_TEMPLATE,
    RecordingRefresher,
    document,
    relay_bundle,
    relay_ordering,
    sensor_bundle,
    table,
)

if TYPE_CHECKING:
    from pathlib import Path

    from catalogist.domain.ingest_pipeline import (
        IngestRun,
        IngestServices,
        InlineScheduler,
        PipelineContext,
    )
    from catalogist.domain.model import AdmittedRecord
    from catalogist.domain.ports import UpsertOutcome
    from tests.support.catalog import FakeOracle

SENSOR_HINTS = {"family": "proximity_sensor", "brand": "Acme"}


def _row(services: IngestServices, table_name: str, identifier: str) -> dict[str, object]:
    with services.uow_factory() as uow:
        row = uow.repositories.catalog.get(table_name, NaturalKey.of("Acme", identifier))
    assert row is not None
    return row


def _count(services: IngestServices, table_name: str) -> int:
    with services.uow_factory() as uow:
        return uow.repositories.catalog.count(table_name)


def test_single_item_datasheet(services: IngestServices) -> None:
    result = run_ingest(
        document(**SENSOR_HINTS), run_id="run-a", services=services, bundle=sensor_bundle()
    )

    assert result.status is RunStatus.DONE
    assert result.identifiers == ["X1-24"]
    assert (result.written, result.processed) == (1, 1)
    assert result.family == "proximity_sensor"
    assert result.table == "proximity_sensor_specs"
    assert result.doc_type is DocType.SINGLE
    row = _row(services, "proximity_sensor_specs", "X1-24")
    assert row["identifier_source"] == "literal"
    assert row["verified_in_doc"] is True
    assert row["sensing_range"] == "8 mm"
    assert row["supply_voltage"] == "10 to 30 V"
    assert row["source_ref"] == "mem://datasheet.pdf"


def test_ordering_document_synthesizes_every_variant(
    services: IngestServices,
    oracle: FakeOracle,
    scheduler: InlineScheduler,
) -> None:
    oracle.extraction = OracleExtraction(fields={"Contact rating": "1 A"})
    oracle.ordering = relay_ordering()

    result = run_ingest(
        document(family="relay", brand="Acme", series="G5V"),
        run_id="run-b",
        services=services,
        bundle=relay_bundle(),
    )

    assert result.status is RunStatus.DONE
    assert result.doc_type is DocType.ORDERING
    assert sorted(result.identifiers) == ["G5V112", "G5V124", "G5V312", "G5V324"]
    row = _row(services, "relay_specs", "G5V112")
    assert (row["voltage"], row["form"]) == ("12", "1A")
    assert row["contact_rating"] == "1 A"
    assert row["identifier_source"] == "synthesized"
    with services.uow_factory() as uow:
        stored = uow.repositories.templates.find("relay", "Acme", "G5V")
        family = uow.repositories.families.get("relay")
    assert stored is not None
    assert (stored.template, stored.source) == (RELAY_TEMPLATE, "oracle")
    assert family is not None
    assert family.variant_keys == ("voltage", "form")
    assert "variant_backfill" in scheduler.completed


def test_replaying_a_run_is_idempotent(services: IngestServices) -> None:
    first = run_ingest(
        document(**SENSOR_HINTS), run_id="run-c", services=services, bundle=sensor_bundle()
    )
    second = run_ingest(
        document(**SENSOR_HINTS), run_id="run-c", services=services, bundle=sensor_bundle()
    )

    assert first.to_dict() == second.to_dict()
    assert _count(services, "proximity_sensor_specs") == 1


def test_missing_brand_is_a_partial_run(services: IngestServices) -> None:
    result = run_ingest(
        document(family="proximity_sensor"),
        run_id="run-d",
        services=services,
        bundle=sensor_bundle(),
    )

    assert result.status is RunStatus.PARTIAL
    assert result.ok
    assert result.written == 0
    assert result.skip_reasons == ["missing_brand"]
    assert _count(services, "proximity_sensor_specs") == 0


def test_catalog_counts_processed_records(services: IngestServices) -> None:
    bundle = sensor_bundle(
        ("X1-24", "8 mm", "10 to 30 V"),
        ("X1-30", "15 mm", "10 to 30 V"),
        ("X1-40", "", ""),
    )

    result = run_ingest(document(**SENSOR_HINTS), run_id="run-e", services=services, bundle=bundle)

    assert result.doc_type is DocType.CATALOG
    assert result.status is RunStatus.PARTIAL
    assert result.identifiers == ["X1-24", "X1-30"]
    assert [item.reason for item in result.skipped] == ["missing_core_spec"]
    assert result.processed == result.written + len(result.skipped) == 3


def test_learned_aliases_are_reused(services: IngestServices, oracle: FakeOracle) -> None:
    with services.uow_factory() as uow:
        uow.repositories.families.save(
            Family(
                slug="proximity_sensor",
                table_name="proximity_sensor_specs",
                attributes={"sensing_range": AttributeType.TEXT},
            )
        )
        uow.commit()
    oracle.mappings = {"sensing_dist": ("sensing_range", 0.9)}

    for run_id, code in (("run-f1", "X1-24"), ("run-f2", "X1-30")):
        bundle = ExtractionBundle(
            text="Proximity sensor",
            tables=[table(("Part number", "Sensing dist"), (code, "8 mm"))],
        )
        run_ingest(document(**SENSOR_HINTS), run_id=run_id, services=services, bundle=bundle)

    assert oracle.calls.count("canonicalize_keys") == 1
    assert _row(services, "proximity_sensor_specs", "X1-30")["sensing_range"] == "8 mm"
    with services.uow_factory() as uow:
        assert uow.repositories.aliases.lookup("proximity_sensor", "Acme", None) == {
            "sensing_dist": "sensing_range"
        }


def test_oracle_outage_falls_back_to_heuristics(
    services: IngestServices,
    oracle: FakeOracle,
) -> None:
    oracle.fail = True

    result = run_ingest(
        document(**SENSOR_HINTS), run_id="run-g", services=services, bundle=sensor_bundle()
    )

    assert result.identifiers == ["X1-24"]
    assert "extract_fields" in oracle.calls


def test_unclassified_documents_use_the_default_family(services: IngestServices) -> None:
    result = run_ingest(
        document(brand="Acme"),
        run_id="run-h",
        services=services,
        bundle=sensor_bundle(text="Widget, see table"),
    )

    assert result.family == "generic_component"
    assert result.table == "generic_component_specs"
    assert "classification_uncertain" in result.warnings
    assert result.written == 1


def test_schema_only_grows(services: IngestServices) -> None:
    run_ingest(document(**SENSOR_HINTS), run_id="run-i1", services=services, bundle=sensor_bundle())
    other = ExtractionBundle(
        text="Proximity sensor", tables=[table(("Part number", "Output"), ("X1-50", "PNP"))]
    )
    run_ingest(document(**SENSOR_HINTS), run_id="run-i2", services=services, bundle=other)

    with services.uow_factory() as uow:
        columns = uow.repositories.schema.columns("proximity_sensor_specs")
    assert {"sensing_range", "supply_voltage", "output"} <= set(columns)
    assert _row(services, "proximity_sensor_specs", "X1-24")["output"] is None


def test_view_refresh_runs_after_commit(
    services: IngestServices,
    scheduler: InlineScheduler,
) -> None:
    refresher = RecordingRefresher()
    services.view_refresher = refresher

    run_ingest(document(**SENSOR_HINTS), run_id="run-j", services=services, bundle=sensor_bundle())

    assert refresher.calls == 1
    assert "view_refresh" in scheduler.completed


def test_bundle_is_loaded_through_store_and_parser(
    services: IngestServices,
    tmp_path: Path,
) -> None:
    (tmp_path / "sensor.txt").write_text(
        "Acme X1 inductive proximity sensor\n"
        "\n"
        "Part number | Sensing range\n"
        "--- | ---\n"
        "X1-24 | 8 mm\n"
        "X1-30 | 15 mm\n",
        encoding="utf-8",
    )
    services.documents = LocalDocumentStore(root=tmp_path)
    services.parser = PlainTextDocumentParser()

    result = run_ingest(document("sensor.txt", **SENSOR_HINTS), run_id="run-k", services=services)

    assert result.identifiers == ["X1-24", "X1-30"]
    assert result.doc_type is DocType.CATALOG


def test_unreadable_source_fails_the_run(services: IngestServices, tmp_path: Path) -> None:
    services.documents = LocalDocumentStore(root=tmp_path)

    with pytest.raises(DocumentFetchError) as excinfo:
        run_ingest(document("missing.pdf", **SENSOR_HINTS), run_id="run-l", services=services)

    assert excinfo.value.retryable
    with services.uow_factory() as uow:
        assert uow.repositories.run_log.statuses("run-l")[-1] == "failed"


def test_locked_run_is_rejected(services: IngestServices, scheduler: InlineScheduler) -> None:
    with services.uow_factory() as uow:
        assert uow.repositories.run_locks.acquire("run-m", "other-worker", 600.0)
        uow.commit()

    with pytest.raises(LockContentionError):
        run_ingest(
            document(**SENSOR_HINTS),
            run_id="run-m",
            services=services,
            bundle=sensor_bundle(),
            owner="this-worker",
        )

    assert scheduler.completed == []
    assert _count(services, "proximity_sensor_specs") == 0


def test_exhausted_budget_times_out(services: IngestServices) -> None:
    services.config = IngestConfig(run_budget_seconds=0.0)

    with pytest.raises(RunTimeoutError):
        run_ingest(
            document(**SENSOR_HINTS), run_id="run-n", services=services, bundle=sensor_bundle()
        )

    with services.uow_factory() as uow:
        assert uow.repositories.run_log.statuses("run-n") == ["failed"]


def test_store_error_skips_only_the_failing_record(
    services: IngestServices,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    upsert = SqlAlchemyCatalogRepository.upsert

    def flaky_upsert(
        self: SqlAlchemyCatalogRepository,
        table_name: str,
        record: AdmittedRecord,
        **kwargs: str,
    ) -> UpsertOutcome:
        if record.identifier == "X1-30":
            raise StoreError("disk I/O error")
        return upsert(self, table_name, record, **kwargs)

    monkeypatch.setattr(SqlAlchemyCatalogRepository, "upsert", flaky_upsert)
    bundle = sensor_bundle(
        ("X1-24", "8 mm", "10 to 30 V"),
        ("X1-30", "15 mm", "10 to 30 V"),
        ("X1-40", "20 mm", "10 to 30 V"),
    )

    result = run_ingest(document(**SENSOR_HINTS), run_id="run-p", services=services, bundle=bundle)

    assert result.status is RunStatus.PARTIAL
    assert result.identifiers == ["X1-24", "X1-40"]
    assert [(item.reason, item.identifier) for item in result.skipped] == [
        (SkipReason.STORE_ERROR, "X1-30")
    ]
    assert result.processed == 3
    assert result.complete
    assert _count(services, "proximity_sensor_specs") == 2


def test_numeric_ranges_and_units_reach_the_store(services: IngestServices) -> None:
    with services.uow_factory() as uow:
        schema = uow.repositories.schema
        schema.ensure_table("proximity_sensor_specs")
        for column in (
            "output_current",
            "output_current_min",
            "output_current_max",
            "supply_voltage",
        ):
            schema.add_column("proximity_sensor_specs", column, AttributeType.NUMERIC)
        uow.commit()
    bundle = ExtractionBundle(
        text="Inductive proximity sensor, X1 series.",
        tables=[
            table(
                ("Part number", "Output current", "Supply voltage"),
                ("X1-24", "10 to 20 mA", "5V"),
            )
        ],
    )

    result = run_ingest(document(**SENSOR_HINTS), run_id="run-q", services=services, bundle=bundle)

    assert result.identifiers == ["X1-24"]
    row = _row(services, "proximity_sensor_specs", "X1-24")
    assert (row["output_current_min"], row["output_current_max"]) == (10.0, 20.0)
    assert row["output_current"] is None
    assert row["supply_voltage"] == 5.0


@dataclass(slots=True)
class _OverlappingIngest:
    """Starts a second ingestion of the same run while the first one holds the lease."""

    services: IngestServices
    run_id: str
    errors: list[LockContentionError] = field(default_factory=list[LockContentionError])
    lease_held: list[bool] = field(default_factory=list[bool])
    name: str = "overlapping_ingest"
    status: RunStatus = RunStatus.PERSISTING

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        _ = (run, context)
        try:
            run_ingest(
                document(**SENSOR_HINTS),
                run_id=self.run_id,
                services=self.services,
                bundle=sensor_bundle(),
            )
        except LockContentionError as exc:
            self.errors.append(exc)
        with self.services.uow_factory() as uow:
            self.lease_held.append(not uow.repositories.run_locks.acquire(self.run_id, "x", 60.0))
            uow.commit()


def test_same_process_invocations_of_one_run_are_exclusive(services: IngestServices) -> None:
    overlapping = _OverlappingIngest(services=services, run_id="run-r")

    result = run_ingest(
        document(**SENSOR_HINTS),
        run_id="run-r",
        services=services,
        bundle=sensor_bundle(),
        pipeline=default_pipeline().with_phase(overlapping),
    )

    assert result.identifiers == ["X1-24"]
    assert len(overlapping.errors) == 1
    assert overlapping.lease_held == [True]
    assert _count(services, "proximity_sensor_specs") == 1
    with services.uow_factory() as uow:
        assert "failed" not in uow.repositories.run_log.statuses("run-r")
        assert uow.repositories.run_locks.acquire("run-r", "next-worker", 60.0)


def test_default_owner_differs_per_invocation() -> None:
    first, second = default_owner(), default_owner()

    assert first != second
    assert first.rsplit(":", 1)[0] == second.rsplit(":", 1)[0]
