"""Refresh of read-optimized views built on top of the family relations."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from catalogist.domain.errors import StoreError
from catalogist.domain.model import is_valid_table_name

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = getLogger(__name__)


@dataclass(slots=True)
class SqlAlchemyViewRefresher:
    """Runs ``REFRESH MATERIALIZED VIEW`` for each configured view.

    Other dialects have no materialized views; refreshing is a logged no-op there.
    """

    engine: Engine
    views: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        invalid = [name for name in self.views if not is_valid_table_name(name)]
        if invalid:
            raise ValueError(f"Invalid view names: {', '.join(invalid)}")

    def refresh(self) -> None:
        if not self.views:
            return
        if self.engine.dialect.name != "postgresql":
            log.debug("Skipping view refresh on dialect %s", self.engine.dialect.name)
            return
        try:
            with self.engine.begin() as connection:
                for name in self.views:
                    connection.execute(text(f'REFRESH MATERIALIZED VIEW "{name}"'))
        except SQLAlchemyError as exc:
            raise StoreError(f"View refresh failed: {exc}") from exc
        log.info("Refreshed views: %s", ", ".join(self.views))
