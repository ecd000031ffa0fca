"""Entry point for running one ingestion: lock, bundle loading, phases, result."""

from __future__ import annotations

import os
import socket
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from catalogist.domain.errors import (
    LockContentionError,
    RunFailedError,
    SourceUnreadableError,
    StoreError,
    StoreUnavailableError,
)
from catalogist.domain.model import ExtractionBundle, IngestResult, RunStatus

from .admission import AdmissionPhase
from .context import IngestRun, PipelineContext, RunDeadline
from .family_resolution import FamilyResolutionPhase
from .harvesting import HarvestPhase
from .identifier_synthesis import IdentifierSynthesisPhase
from .orchestrator import IngestionPipeline
from .persistence import PersistencePhase
from .schema_negotiation import SchemaNegotiationPhase

if TYPE_CHECKING:
    from catalogist.domain.model import SourceDocument

    from .context import IngestServices

log = getLogger(__name__)


def default_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        phases=(
            FamilyResolutionPhase(),
            HarvestPhase(),
            SchemaNegotiationPhase(),
            IdentifierSynthesisPhase(),
            AdmissionPhase(),
            PersistencePhase(),
        )
    )


def default_owner() -> str:
    """Lock owner for one invocation: host, process and a per-call token."""

    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:12]}"


def run_ingest(
    document: SourceDocument,
    *,
    run_id: str,
    services: IngestServices,
    bundle: ExtractionBundle | None = None,
    pipeline: IngestionPipeline | None = None,
    owner: str | None = None,
) -> IngestResult:
    """Ingest ``document`` under ``run_id`` and return a structured result.

    Record-level problems end up in ``IngestResult.skipped``. Run-level failures
    (unreadable source, unreachable store, timeout) are logged as FAILED and raised as
    :class:`RunFailedError` subclasses; retrying is safe. Lock contention raises
    :class:`LockContentionError` and leaves the run log to the lease holder.
    """

    config = services.config
    lock_owner = owner or default_owner()
    context = PipelineContext(services=services, deadline=RunDeadline(config.run_budget_seconds))
    run = IngestRun(run_id=run_id, document=document, bundle=bundle or ExtractionBundle())

    _acquire_lock(context, run_id, lock_owner)
    try:
        context.transition(RunStatus.STARTED, run)
        if bundle is None:
            run.bundle = load_bundle(document, context=context, run_id=run_id)
        (pipeline or default_pipeline()).run(run, context=context)
    except StoreError as exc:
        failure = StoreUnavailableError(f"Store unavailable: {exc}", run_id=run_id)
        _record_failure(context, run, failure)
        raise failure from exc
    except RunFailedError as exc:
        _record_failure(context, run, exc)
        raise
    finally:
        _release_lock(context, run_id, lock_owner)

    status = RunStatus.PARTIAL if run.incomplete else RunStatus.DONE
    context.status = status
    context.transitions.append(status)
    context.record_status(
        run,
        status,
        {"written": len(run.written), "skipped": len(run.skipped), "processed": run.processed},
    )
    _schedule_post_commit(run, context)

    result = IngestResult(
        run_id=run_id,
        family=run.require_family().slug,
        table=run.table,
        status=status,
        brand=run.admitted[0].brand if run.admitted else run.brand,
        doc_type=run.doc_type,
        identifiers=list(run.written),
        skipped=list(run.skipped),
        warnings=list(run.warnings),
        processed=run.processed,
    )
    if not result.complete:
        log.error(
            "Run %s accounted for %d of %d processed record(s)",
            run_id,
            result.written + len(result.skipped),
            result.processed,
        )
    log.info(
        "Run %s %s: family=%s processed=%d written=%d skipped=%d",
        run_id,
        status,
        result.family,
        result.processed,
        result.written,
        len(result.skipped),
    )
    return result


def load_bundle(
    document: SourceDocument,
    *,
    context: PipelineContext,
    run_id: str,
) -> ExtractionBundle:
    """Fetch the document and run the layout parser, falling back to plain text."""

    services = context.services
    config = context.config
    store = services.documents
    if store is None:
        raise SourceUnreadableError("No document store configured", run_id=run_id)

    data = context.external(
        "documents.fetch_bytes",
        lambda: store.fetch_bytes(document.ref),
        timeout=config.store_timeout_seconds,
    )
    if data is None:
        raise SourceUnreadableError(f"Could not fetch {document.ref}", run_id=run_id)

    parser = services.parser
    if parser is not None:
        parsed = context.external(
            "documents.parse",
            lambda: parser.parse(document.ref, data),
            timeout=config.parser_timeout_seconds,
        )
        if parsed is not None and (parsed.text or parsed.tables):
            bundle = ExtractionBundle.from_parsed(parsed)
            bundle.text = bundle.text[: config.text_prefix_limit]
            return bundle

    log.info("Parser gave nothing for %s, falling back to a text prefix", document.ref)
    text = data[: config.text_prefix_limit * 4].decode("utf-8", errors="ignore")
    if not text.strip():
        text = store.fetch_text_prefix(document.ref, config.text_prefix_limit)
    return ExtractionBundle(text=text[: config.text_prefix_limit])


def _acquire_lock(context: PipelineContext, run_id: str, owner: str) -> None:
    ttl = context.config.run_budget_seconds + context.config.lock_grace_seconds
    try:
        with context.uow() as uow:
            acquired = uow.repositories.run_locks.acquire(run_id, owner, ttl)
            uow.commit()
    except StoreError as exc:
        raise StoreUnavailableError(f"Store unavailable: {exc}", run_id=run_id) from exc
    if not acquired:
        raise LockContentionError(f"Run {run_id} is locked by another worker", run_id=run_id)
    log.debug("Run %s locked by %s for %.0fs", run_id, owner, ttl)


def _release_lock(context: PipelineContext, run_id: str, owner: str) -> None:
    try:
        with context.uow() as uow:
            uow.repositories.run_locks.release(run_id, owner)
            uow.commit()
    except StoreError as exc:
        log.warning("Could not release lock for run %s: %s", run_id, exc)


def _record_failure(context: PipelineContext, run: IngestRun, exc: RunFailedError) -> None:
    context.status = RunStatus.FAILED
    context.transitions.append(RunStatus.FAILED)
    context.record_status(run, RunStatus.FAILED, {"error": str(exc)})
    log.error("Run %s failed: %s", run.run_id, exc)


def _schedule_post_commit(run: IngestRun, context: PipelineContext) -> None:
    scheduler = context.services.scheduler
    for name, task in run.post_commit:
        if scheduler is None:
            log.debug("No scheduler configured, dropping post-commit task %s", name)
            continue
        scheduler.submit(name, task)
