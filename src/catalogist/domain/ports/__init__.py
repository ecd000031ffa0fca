"""Ports implemented by adapters and consumed by the ingest pipeline."""

from __future__ import annotations

from catalogist.domain.ports.documents import DocumentParser, DocumentStore
from catalogist.domain.ports.oracle import ExtractionOracle
from catalogist.domain.ports.persistence import (
    AttributeAliasRepository,
    BrandRepository,
    CatalogRepository,
    FamilyRepository,
    IngestRepositories,
    IngestUnitOfWork,
    RunLockRepository,
    RunLogRepository,
    SchemaRepository,
    StoredTemplate,
    TemplateRepository,
    UpsertOutcome,
)
from catalogist.domain.ports.runtime import PostCommitScheduler, ViewRefresher
from catalogist.domain.ports.unit_of_work import RepositoryCollection, UnitOfWork

__all__ = [
    "AttributeAliasRepository",
    "BrandRepository",
    "CatalogRepository",
    "DocumentParser",
    "DocumentStore",
    "ExtractionOracle",
    "FamilyRepository",
    "IngestRepositories",
    "IngestUnitOfWork",
    "PostCommitScheduler",
    "RepositoryCollection",
    "RunLockRepository",
    "RunLogRepository",
    "SchemaRepository",
    "StoredTemplate",
    "TemplateRepository",
    "UnitOfWork",
    "UpsertOutcome",
    "ViewRefresher",
]
