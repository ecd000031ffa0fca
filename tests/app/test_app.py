from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from catalogist import app as app_module
from catalogist.adapters.documents import HttpDocumentParser, PlainTextDocumentParser
from catalogist.adapters.oracle import HttpExtractionOracle, NullOracle
from catalogist.adapters.sqlalchemy.views import SqlAlchemyViewRefresher
from catalogist.config import IngestConfig
from catalogist.domain.model import DocType, IngestHints, RunStatus
from tests.support.catalog import MemoryDocumentStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from catalogist.adapters.sqlalchemy.unit_of_work import SqlAlchemyIngestUnitOfWork
    from catalogist.domain.ingest_pipeline import InlineScheduler
    from tests.support.catalog import FakeOracle

SENSOR_SHEET = (
    b"Acme X1 inductive proximity sensor\n"
    b"\n"
    b"Part number | Sensing range\n"
    b"--- | ---\n"
    b"X1-24 | 8 mm\n"
    b"X1-30 | 15 mm\n"
)


def test_build_oracle_and_parser_follow_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ORACLE_BASE_URL", raising=False)
    monkeypatch.delenv("PARSER_BASE_URL", raising=False)

    assert isinstance(app_module.build_oracle(), NullOracle)
    assert isinstance(app_module.build_parser(), PlainTextDocumentParser)

    monkeypatch.setenv("ORACLE_BASE_URL", "http://oracle.test")
    monkeypatch.setenv("PARSER_BASE_URL", "http://parser.test")

    assert isinstance(app_module.build_oracle(), HttpExtractionOracle)
    assert isinstance(app_module.build_parser(), HttpDocumentParser)


def test_shared_caches_are_reused_per_ttl() -> None:
    assert app_module.shared_caches(12.5) is app_module.shared_caches(12.5)
    assert app_module.shared_caches(12.5) is not app_module.shared_caches(13.5)


def test_ingest_document_end_to_end(
    uow_factory: Callable[[], SqlAlchemyIngestUnitOfWork],
    oracle: FakeOracle,
    scheduler: InlineScheduler,
) -> None:
    services = app_module.build_services(
        config=IngestConfig(refresh_views=("catalog_items",)),
        oracle=oracle,
        documents=MemoryDocumentStore({"sheets/x1.txt": SENSOR_SHEET}),
        parser=PlainTextDocumentParser(),
        scheduler=scheduler,
        unit_of_work_factory=uow_factory,
    )
    assert isinstance(services.view_refresher, SqlAlchemyViewRefresher)

    result = app_module.ingest_document(
        "sheets/x1.txt",
        hints=IngestHints(family="proximity_sensor", brand="Acme"),
        services=services,
    )

    assert result.status is RunStatus.DONE
    assert result.identifiers == ["X1-24", "X1-30"]
    assert result.doc_type is DocType.CATALOG
    assert len(result.run_id) == 32
    assert "view_refresh" in scheduler.completed

    families = app_module.list_families(unit_of_work_factory=uow_factory)
    assert [family.slug for family in families] == ["proximity_sensor"]


def test_services_without_views_have_no_refresher(
    uow_factory: Callable[[], SqlAlchemyIngestUnitOfWork],
    oracle: FakeOracle,
    scheduler: InlineScheduler,
) -> None:
    services = app_module.build_services(
        config=IngestConfig(),
        oracle=oracle,
        documents=MemoryDocumentStore(),
        parser=PlainTextDocumentParser(),
        scheduler=scheduler,
        unit_of_work_factory=uow_factory,
    )

    assert services.view_refresher is None
    assert services.oracle is oracle
