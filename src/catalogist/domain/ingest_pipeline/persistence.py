"""Persistence phase: one unit of work per admitted record, keyed by natural key."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from catalogist.domain.errors import StoreError
from catalogist.domain.model import RunStatus, SkipReason

if TYPE_CHECKING:
    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext

log = getLogger(__name__)


@dataclass(slots=True)
class PersistencePhase:
    name: str = "persistence"
    status: RunStatus = RunStatus.PERSISTING

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        family = run.require_family()
        for record in run.admitted:
            try:
                with context.uow() as uow:
                    outcome = uow.repositories.catalog.upsert(
                        family.table_name,
                        record,
                        family=family.slug,
                        source_ref=run.document.ref,
                        run_id=run.run_id,
                    )
                    uow.commit()
            except StoreError as exc:
                run.skip(SkipReason.STORE_ERROR, record.identifier, str(exc))
                continue
            run.written.append(record.identifier)
            log.debug("%s %s/%s in %s", outcome, record.brand, record.identifier, family.table_name)

        refresher = context.services.view_refresher
        if run.written and refresher is not None:
            run.post_commit.append(("view_refresh", refresher.refresh))
        log.info(
            "Run %s wrote %d record(s) to %s",
            run.run_id,
            len(run.written),
            family.table_name,
        )
