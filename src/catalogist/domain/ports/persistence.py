"""Persistence ports used by the ingest pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from catalogist.domain.ports.unit_of_work import RepositoryCollection, UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Mapping

    from catalogist.domain.brands import BrandAlias
    from catalogist.domain.model import AdmittedRecord, AttributeType, Family, NaturalKey


class UpsertOutcome(StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class StoredTemplate:
    template: str
    confidence: float
    source: str


@runtime_checkable
class FamilyRepository(Protocol):
    """Registry mapping family slugs to relations and learned family metadata."""

    def get(self, slug: str) -> Family | None: ...

    def list(self) -> list[Family]: ...

    def save(self, family: Family) -> None: ...


@runtime_checkable
class SchemaRepository(Protocol):
    """Live schema of family relations. Additive operations only."""

    def columns(self, table: str) -> dict[str, AttributeType]:
        """Return attribute columns (base columns excluded); empty when the table is absent."""
        ...

    def ensure_table(self, table: str) -> None: ...

    def add_column(self, table: str, name: str, column_type: AttributeType) -> AttributeType:
        """Add ``name`` if missing; return the effective, possibly pre-existing, type."""
        ...


@runtime_checkable
class CatalogRepository(Protocol):
    """Rows of family relations keyed by natural key."""

    def upsert(
        self,
        table: str,
        record: AdmittedRecord,
        *,
        family: str,
        source_ref: str,
        run_id: str,
    ) -> UpsertOutcome: ...

    def get(self, table: str, key: NaturalKey) -> dict[str, object] | None: ...

    def count(self, table: str) -> int: ...

    def rows_missing(self, table: str, column: str, *, limit: int = 500) -> list[tuple[int, str]]:
        """Return ``(id, identifier)`` of rows whose ``column`` is null."""
        ...

    def fill_missing(self, table: str, row_id: int, values: Mapping[str, object]) -> None:
        """Set ``values`` on a row, only where the current value is null."""
        ...


@runtime_checkable
class AttributeAliasRepository(Protocol):
    def lookup(self, family: str, brand: str | None, series: str | None) -> dict[str, str]:
        """Return alias→canonical, narrower scopes overriding wider ones."""
        ...

    def save(
        self,
        family: str,
        alias: str,
        canonical: str,
        *,
        brand: str | None = None,
        series: str | None = None,
        confidence: float = 1.0,
    ) -> None: ...


@runtime_checkable
class TemplateRepository(Protocol):
    def find(self, family: str, brand: str | None, series: str | None) -> StoredTemplate | None:
        """Return the narrowest-scoped template for (family, brand, series)."""
        ...

    def save(
        self,
        family: str,
        template: str,
        *,
        brand: str | None = None,
        series: str | None = None,
        confidence: float = 1.0,
        source: str = "recipe",
    ) -> None: ...


@runtime_checkable
class BrandRepository(Protocol):
    def entries(self) -> list[BrandAlias]: ...

    def add(self, brand: str, alias: str) -> None: ...


@runtime_checkable
class RunLogRepository(Protocol):
    def append(self, run_id: str, status: str, detail: Mapping[str, object]) -> None: ...

    def statuses(self, run_id: str) -> list[str]: ...


@runtime_checkable
class RunLockRepository(Protocol):
    def acquire(self, run_id: str, owner: str, ttl_seconds: float) -> bool:
        """Take the lease for ``run_id``; succeed only if it is free or expired."""
        ...

    def release(self, run_id: str, owner: str) -> None: ...


@dataclass(slots=True)
class IngestRepositories(RepositoryCollection):
    """Repositories required for ingest pipeline phases."""

    families: FamilyRepository
    schema: SchemaRepository
    catalog: CatalogRepository
    aliases: AttributeAliasRepository
    templates: TemplateRepository
    brands: BrandRepository
    run_log: RunLogRepository
    run_locks: RunLockRepository


type IngestUnitOfWork = UnitOfWork[IngestRepositories]
