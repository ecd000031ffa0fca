"""SQLAlchemy adapter package for catalogist."""

from __future__ import annotations

from .mappings import family_table, metadata
from .repositories import (
    SqlAlchemyAttributeAliasRepository,
    SqlAlchemyBrandRepository,
    SqlAlchemyCatalogRepository,
    SqlAlchemyFamilyRepository,
    SqlAlchemyRunLockRepository,
    SqlAlchemyRunLogRepository,
    SqlAlchemySchemaRepository,
    SqlAlchemyTemplateRepository,
)
from .unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from .views import SqlAlchemyViewRefresher

__all__ = [
    "SqlAlchemyAttributeAliasRepository",
    "SqlAlchemyBrandRepository",
    "SqlAlchemyCatalogRepository",
    "SqlAlchemyFamilyRepository",
    "SqlAlchemyIngestUnitOfWork",
    "SqlAlchemyRunLockRepository",
    "SqlAlchemyRunLogRepository",
    "SqlAlchemySchemaRepository",
    "SqlAlchemyTemplateRepository",
    "SqlAlchemyViewRefresher",
    "StartupError",
    "configured_engine",
    "family_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
