from __future__ import annotations

import pytest

from catalogist.domain.brands import BrandAlias
from catalogist.domain.ingest_pipeline.admission import AdmissionGate
from catalogist.domain.model import (
    AttributeType,
    CandidateRecord,
    IdentifierSource,
    NaturalKey,
    SkipReason,
)

CORPUS = "OMRON Corporation | G5V-1-12 | coil 12 VDC\nX1-24 proximity sensor by Acme"
COLUMNS = {
    "coil_voltage": AttributeType.NUMERIC,
    "contact_form": AttributeType.TEXT,
}
DIRECTORY = [BrandAlias(brand="Omron", alias="OMRON Corporation")]


def _gate(**overrides: object) -> AdmissionGate:
    options: dict[str, object] = {
        "columns": COLUMNS,
        "directory": DIRECTORY,
        "corpus": CORPUS,
        "min_attributes": 1,
    }
    options.update(overrides)
    return AdmissionGate(**options)  # type: ignore[arg-type]


def _record(**overrides: object) -> CandidateRecord:
    record = CandidateRecord(
        brand="omron corporation",
        identifier="G5V-1-12",
        attributes={"coil_voltage": "12 VDC", "contact_form": "1A"},
    )
    for name, value in overrides.items():
        setattr(record, name, value)
    return record


def test_admits_and_coerces_to_column_types() -> None:
    record = _record(attributes={"coil_voltage": "12 VDC", "colour": "blue"})

    admitted = _gate().admit(record)

    assert admitted is not None
    assert admitted.key == NaturalKey("omron", "g5v-1-12")
    assert admitted.brand == "Omron"
    assert admitted.values == {"coil_voltage": 12.0}
    assert admitted.overflow == {"colour": "blue"}
    assert admitted.identifier_source is IdentifierSource.LITERAL
    assert admitted.verified_in_doc


def test_schema_not_ready_skips_everything() -> None:
    record = _record()

    assert _gate(schema_ready=False).admit(record) is None
    assert record.rejection is SkipReason.SCHEMA_NOT_READY


def test_brand_is_found_in_document_when_missing() -> None:
    admitted = _gate().admit(_record(brand=None))

    assert admitted is not None
    assert admitted.brand == "Omron"


def test_missing_brand() -> None:
    record = _record(brand="unknown")

    assert _gate(corpus="G5V-1-12 coil 12 VDC").admit(record) is None
    assert record.rejection is SkipReason.MISSING_BRAND


@pytest.mark.parametrize("identifier", [None, "12V", "ab", "http://example.com/x"])
def test_invalid_identifier(identifier: str | None) -> None:
    record = _record(identifier=identifier)

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.INVALID_IDENTIFIER


def test_placeholder_in_identifier_is_unresolved_template() -> None:
    record = _record(identifier="G5V-1-{voltage}")

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.TEMPLATE_UNRESOLVED


def test_placeholder_in_attribute_is_unresolved_template() -> None:
    record = _record(attributes={"contact_form": "{form}"})

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.TEMPLATE_UNRESOLVED
    assert record.rejection_detail == "contact_form"


def test_identifier_must_appear_in_document() -> None:
    record = _record(identifier="G5V-2-24")

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.UNVERIFIED_IDENTIFIER


def test_hint_and_corroborated_identifiers_are_trusted() -> None:
    hinted = _record(identifier="G5V-2-24", identifier_source=IdentifierSource.HINT)
    corroborated = _record(identifier="G5V-2-48", verified_in_doc=True)

    gate = _gate()

    assert gate.admit(hinted) is not None
    assert gate.admit(corroborated) is not None


def test_verified_flag_reflects_the_document() -> None:
    unseen_hint = _record(identifier="G5V-2-24", identifier_source=IdentifierSource.HINT)
    seen_hint = _record(identifier="G5V-1-12", identifier_source=IdentifierSource.HINT)

    gate = _gate()
    unseen = gate.admit(unseen_hint)
    seen = gate.admit(seen_hint)

    assert unseen is not None
    assert not unseen.verified_in_doc
    assert unseen.identifier_source is IdentifierSource.HINT
    assert seen is not None
    assert seen.verified_in_doc


def test_identifier_match_ignores_separators() -> None:
    assert _gate().admit(_record(identifier="G5V 1 12")) is not None


def test_missing_core_spec() -> None:
    record = _record(attributes={"coil_voltage": "", "contact_form": None})

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.MISSING_CORE_SPEC
    assert record.rejection_detail == "0 < 1"


def test_min_attributes_counts_overflow() -> None:
    record = _record(attributes={"coil_voltage": "see table", "contact_form": "1A"})

    admitted = _gate(min_attributes=2).admit(record)

    assert admitted is not None
    assert admitted.overflow == {"coil_voltage": "see table"}
    assert "unparsed_numeric:coil_voltage" in admitted.warnings


def test_duplicates_within_batch_use_natural_key() -> None:
    gate = _gate()
    first = _record()
    second = _record(brand="Omron", identifier="g5v-1-12")

    assert gate.admit(first) is not None
    assert gate.admit(second) is None
    assert second.rejection is SkipReason.DUPLICATE_WITHIN_BATCH


def test_rejected_records_stay_rejected() -> None:
    record = _record()
    record.reject(SkipReason.STORE_ERROR, "earlier")

    assert _gate().admit(record) is None
    assert record.rejection is SkipReason.STORE_ERROR
