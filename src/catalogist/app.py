"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from catalogist.adapters.documents import (
    HttpDocumentParser,
    PlainTextDocumentParser,
    default_document_store,
)
from catalogist.adapters.oracle import HttpExtractionOracle, NullOracle
from catalogist.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    configured_engine,
    is_started,
    startup,
)
from catalogist.adapters.sqlalchemy.views import SqlAlchemyViewRefresher
from catalogist.config import get_ingest_config, optional_env
from catalogist.domain.ingest_pipeline import (
    IngestServices,
    LearnedStateCache,
    ThreadedScheduler,
    run_ingest,
)
from catalogist.domain.model import IngestHints, SourceDocument

if TYPE_CHECKING:
    from catalogist.config import IngestConfig
    from catalogist.domain.model import ExtractionBundle, Family, IngestResult
    from catalogist.domain.ports import (
        DocumentParser,
        DocumentStore,
        ExtractionOracle,
        IngestUnitOfWork,
        PostCommitScheduler,
    )

UnitOfWorkFactory = Callable[[], "IngestUnitOfWork"]


log = getLogger(__name__)

_CACHES: dict[float, LearnedStateCache] = {}


def shared_caches(ttl_seconds: float) -> LearnedStateCache:
    """Return the process-wide learned-state cache for ``ttl_seconds``."""

    if ttl_seconds not in _CACHES:
        _CACHES[ttl_seconds] = LearnedStateCache.with_ttl(ttl_seconds)
    return _CACHES[ttl_seconds]


def build_oracle() -> ExtractionOracle:
    if optional_env("ORACLE_BASE_URL") is None:
        log.info("ORACLE_BASE_URL not set, running without an extraction oracle")
        return NullOracle()
    return HttpExtractionOracle()


def build_parser() -> DocumentParser:
    if optional_env("PARSER_BASE_URL") is None:
        return PlainTextDocumentParser()
    return HttpDocumentParser()


def build_services(
    *,
    config: IngestConfig | None = None,
    oracle: ExtractionOracle | None = None,
    documents: DocumentStore | None = None,
    parser: DocumentParser | None = None,
    scheduler: PostCommitScheduler | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> IngestServices:
    """Wire the configured adapters into the collaborators an ingestion run needs."""

    if not is_started():
        startup()
    effective_config = config or get_ingest_config()
    engine = configured_engine()
    refresher = (
        SqlAlchemyViewRefresher(engine=engine, views=effective_config.refresh_views)
        if engine is not None and effective_config.refresh_views
        else None
    )
    return IngestServices(
        uow_factory=unit_of_work_factory or SqlAlchemyIngestUnitOfWork,
        oracle=oracle or build_oracle(),
        config=effective_config,
        caches=shared_caches(effective_config.cache_ttl_seconds),
        scheduler=scheduler or ThreadedScheduler(),
        view_refresher=refresher,
        documents=documents or default_document_store(),
        parser=parser or build_parser(),
    )


def ingest_document(
    ref: str,
    *,
    hints: IngestHints | None = None,
    run_id: str | None = None,
    bundle: ExtractionBundle | None = None,
    services: IngestServices | None = None,
) -> IngestResult:
    """Ingest one document reference using the configured adapters."""

    effective_services = services or build_services()
    effective_run_id = run_id or uuid4().hex
    document = SourceDocument(ref=ref, hints=hints or IngestHints())
    log.info("Starting ingestion of %s as run %s", ref, effective_run_id)
    return run_ingest(
        document,
        run_id=effective_run_id,
        services=effective_services,
        bundle=bundle,
    )


def list_families(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> list[Family]:
    """Return every family registered so far."""

    if not is_started():
        startup()
    with (unit_of_work_factory or SqlAlchemyIngestUnitOfWork)() as uow:
        return uow.repositories.families.list()
