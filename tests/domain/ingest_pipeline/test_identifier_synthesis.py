from __future__ import annotations

from typing import TYPE_CHECKING

from catalogist.domain.ingest_pipeline import IngestRun, PipelineContext, RunDeadline
from catalogist.domain.ingest_pipeline.identifier_synthesis import (
    IdentifierSynthesisPhase,
    expand_variants,
    field_keys,
    render_identifier,
)
from catalogist.domain.model import (
    CandidateRecord,
    DocType,
    Family,
    IdentifierSource,
    SkippedRecord,
    SkipReason,
    TemplateGuess,
)
from catalogist.domain.templates import IdentifierTemplate
from tests.support.catalog import (
    RELAY_TEMPLATE,
    RELAY_TEXT,
    document,
    relay_bundle,
    relay_ordering,
)

if TYPE_CHECKING:
    from catalogist.domain.ingest_pipeline import IngestServices
    from tests.support.catalog import FakeOracle

TEMPLATE = IdentifierTemplate.parse(RELAY_TEMPLATE)


def test_expand_variants_is_ordered_product() -> None:
    combos, truncated = expand_variants(
        {"form": ["1A", "1C"], "voltage": ["12", "24"]},
        ["series", "form", "voltage", "form"],
        limit=10,
    )

    assert combos == [
        {"form": "1A", "voltage": "12"},
        {"form": "1A", "voltage": "24"},
        {"form": "1C", "voltage": "12"},
        {"form": "1C", "voltage": "24"},
    ]
    assert not truncated


def test_expand_variants_caps_combinations() -> None:
    combos, truncated = expand_variants(
        {"a": ["1", "2", "3"], "b": ["x", "y"]}, ["a", "b"], limit=4
    )

    assert len(combos) == 4
    assert truncated


def test_expand_variants_without_domains() -> None:
    assert expand_variants({"a": []}, ["a", "b"], limit=4) == ([], False)


def test_field_keys_follow_key_map_except_identity_fields() -> None:
    template = IdentifierTemplate.parse("{Series}-{Coil V}-{brand}")

    assert field_keys(template, {"coil_v": "coil_voltage", "series": "ignored"}) == {
        "Series": "series",
        "Coil V": "coil_voltage",
        "brand": "brand",
    }


def test_render_identifier_keeps_verified_renders() -> None:
    record = CandidateRecord(series="G5V", attributes={"form": "1C", "voltage": "24"})
    fields = field_keys(TEMPLATE, {})

    render_identifier(record, TEMPLATE, fields, RELAY_TEXT)

    assert record.identifier == "G5V324"
    assert record.identifier_source is IdentifierSource.SYNTHESIZED
    assert record.verified_in_doc


def test_render_identifier_rejects_missing_fields_and_unseen_codes() -> None:
    fields = field_keys(TEMPLATE, {})
    missing = CandidateRecord(series="G5V", attributes={"form": "1A"})
    unseen = CandidateRecord(series="G5V", attributes={"form": "1A", "voltage": "48"})

    render_identifier(missing, TEMPLATE, fields, RELAY_TEXT)
    render_identifier(unseen, TEMPLATE, fields, RELAY_TEXT)

    assert missing.rejection is SkipReason.TEMPLATE_UNRESOLVED
    assert missing.rejection_detail == "missing voltage"
    assert missing.identifier is None
    assert unseen.rejection is SkipReason.UNVERIFIED_IDENTIFIER
    assert unseen.rejection_detail == "G5V148"


def _ordering_run(template: str = RELAY_TEMPLATE) -> IngestRun:
    bundle = relay_bundle()
    bundle.ordering = relay_ordering()
    run = IngestRun(run_id="run-1", document=document(), bundle=bundle)
    run.family = Family.default_for("relay")
    run.brand = "Acme"
    run.series = "G5V"
    run.doc_type = DocType.ORDERING
    run.ordering_template = template
    run.variant_domains = {"voltage": ["12", "24"], "form": ["1A", "1C"]}
    run.records = [CandidateRecord(brand="Acme", series="G5V", attributes={"rating": "1 A"})]
    return run


def test_phase_expands_ordering_table_and_learns_template(services: IngestServices) -> None:
    run = _ordering_run()
    context = PipelineContext(services, RunDeadline(60.0))

    IdentifierSynthesisPhase().run(run, context=context)

    assert [r.identifier for r in run.records] == ["G5V112", "G5V124", "G5V312", "G5V324"]
    assert run.records[2].variant == {"form": "1C", "voltage": "12"}
    with services.uow_factory() as uow:
        stored = uow.repositories.templates.find("relay", "Acme", "G5V")
    assert stored is not None
    assert (stored.template, stored.source) == (RELAY_TEMPLATE, "oracle")
    assert run.skipped == [
        SkippedRecord(SkipReason.MERGED, None, "subsumed by variant expansion")
    ]
    assert run.processed == 1


def test_phase_ignores_invalid_templates(services: IngestServices, oracle: FakeOracle) -> None:
    run = _ordering_run("{series|bogus}{voltage}")
    context = PipelineContext(services, RunDeadline(60.0))

    IdentifierSynthesisPhase().run(run, context=context)

    assert run.template is None
    assert "template_invalid" in run.warnings
    assert "infer_template" in oracle.calls
    assert [r.identifier for r in run.records] == [None]


def test_phase_uses_confident_oracle_template(
    services: IngestServices,
    oracle: FakeOracle,
) -> None:
    run = _ordering_run()
    run.bundle.ordering = relay_ordering(confidence=0.1)
    oracle.template = TemplateGuess(RELAY_TEMPLATE, confidence=0.95)
    context = PipelineContext(services, RunDeadline(60.0))

    IdentifierSynthesisPhase().run(run, context=context)

    assert run.template is not None
    assert run.template.source == RELAY_TEMPLATE
    assert len(run.records) == 4


def test_single_item_documents_absorb_anonymous_rows(services: IngestServices) -> None:
    run = IngestRun(run_id="run-2", document=document(), bundle=relay_bundle())
    run.family = Family.default_for("sensor")
    run.records = [
        CandidateRecord(identifier="X1-24", attributes={"range": "8 mm"}),
        CandidateRecord(attributes={"output": "PNP", "range": "ignored"}),
    ]
    context = PipelineContext(services, RunDeadline(60.0))

    IdentifierSynthesisPhase().run(run, context=context)

    assert len(run.records) == 1
    assert run.records[0].attributes == {"range": "8 mm", "output": "PNP"}
    assert [(s.reason, s.detail) for s in run.skipped] == [(SkipReason.MERGED, "into X1-24")]
    assert run.processed == 1


def test_learned_template_without_verified_renders_is_not_stored(
    services: IngestServices,
) -> None:
    run = _ordering_run("{series}-{voltage}")
    context = PipelineContext(services, RunDeadline(60.0))

    IdentifierSynthesisPhase().run(run, context=context)

    assert run.template is not None
    assert {r.rejection for r in run.records} == {SkipReason.UNVERIFIED_IDENTIFIER}
    assert "template_unverified" in run.warnings
    with services.uow_factory() as uow:
        assert uow.repositories.templates.find("relay", "Acme", "G5V") is None
