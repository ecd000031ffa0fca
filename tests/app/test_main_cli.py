from __future__ import annotations

import json

import pytest

from catalogist.config import MissingConfigurationError
from catalogist.domain.errors import SourceUnreadableError
from catalogist.domain.model import (
    Family,
    IngestHints,
    IngestResult,
    RunStatus,
    SkippedRecord,
    SkipReason,
)
from catalogist.ui import cli as cli_module


def _result() -> IngestResult:
    return IngestResult(
        run_id="run-1",
        family="relay",
        table="relay_specs",
        status=RunStatus.PARTIAL,
        brand="Omron",
        identifiers=["G5V112"],
        skipped=[SkippedRecord(reason=SkipReason.MISSING_CORE_SPEC, identifier="G5V")],
        processed=2,
    )


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> dict[str, object]:
    calls: dict[str, object] = {}

    def fake_build_services(**kwargs: object) -> object:
        calls["services_kwargs"] = kwargs
        return "services"

    def fake_ingest(ref: str, **kwargs: object) -> IngestResult:
        calls["ref"] = ref
        calls.update(kwargs)
        return _result()

    monkeypatch.setattr(cli_module, "build_services", fake_build_services)
    monkeypatch.setattr(cli_module, "ingest_document", fake_ingest)
    return calls


def test_ingest_passes_hints_and_run_id(captured: dict[str, object]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(
            [
                "ingest",
                "relay.pdf",
                "--family",
                "relay",
                "--brand",
                "Omron",
                "--code",
                "G5V112",
                "--run-id",
                "run-1",
            ]
        )

    assert excinfo.value.code == 0
    assert captured["ref"] == "relay.pdf"
    assert captured["run_id"] == "run-1"
    assert captured["services"] == "services"
    assert captured["hints"] == IngestHints(family="relay", brand="Omron", code="G5V112")
    assert "scheduler" in captured["services_kwargs"]  # type: ignore[operator]


def test_ingest_prints_json(
    captured: dict[str, object],
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit):
        cli_module.main(["ingest", "relay.pdf", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "partial"
    assert payload["processed"] == 2
    assert payload["skip_reasons"] == ["missing_core_spec"]
    assert captured["run_id"] is None


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (MissingConfigurationError("Missing configuration for: DATABASE_URI"), 2),
        (SourceUnreadableError("gone", run_id="run-1"), 1),
        (RuntimeError("boom"), 1),
    ],
)
def test_failures_map_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    error: Exception,
    code: int,
) -> None:
    def failing_build_services(**_kwargs: object) -> object:
        raise error

    monkeypatch.setattr(cli_module, "build_services", failing_build_services)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["ingest", "relay.pdf"])

    assert excinfo.value.code == code


def test_families_command_lists_registered_families(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(cli_module, "list_families", lambda: [Family.default_for("relay")])

    with caplog.at_level("INFO"), pytest.raises(SystemExit) as excinfo:
        cli_module.main(["families"])

    assert excinfo.value.code == 0
    assert "relay -> relay_specs" in caplog.text


def test_a_command_is_required() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 2
