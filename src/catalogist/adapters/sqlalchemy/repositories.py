"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import MetaData, Table, delete, func, inspect, insert, select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, NoSuchTableError, OperationalError, SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable

from catalogist.adapters.sqlalchemy.mappings import (
    attribute_alias_table,
    attribute_type_of,
    brand_alias_table,
    family_registry_table,
    family_table,
    identifier_template_table,
    ingest_run_lock_table,
    ingest_run_log_table,
    sql_type,
    utcnow,
)
from catalogist.domain.brands import BrandAlias, fold
from catalogist.domain.errors import SchemaNotReadyError, StoreError
from catalogist.domain.model import (
    BASE_COLUMNS,
    AttributeType,
    Family,
    is_valid_table_name,
)
from catalogist.domain.ports import StoredTemplate, UpsertOutcome

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from sqlalchemy.engine import Connection
    from sqlalchemy.orm import Session

    from catalogist.domain.model import AdmittedRecord, NaturalKey

log = getLogger(__name__)

UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}
IDENTITY_COLUMNS = frozenset(
    {"id", "family", "brand", "brand_norm", "identifier", "identifier_norm", "created_at"}
)


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate driver and SQLAlchemy failures into :class:`StoreError`."""

    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(f"{action} failed: {exc}") from exc


def _scopes(brand: str | None, series: str | None) -> list[tuple[str, str]]:
    """Scopes from narrowest to widest: (brand, series), (brand, *), (*, *)."""

    brand_scope = fold(brand or "")
    series_scope = fold(series or "")
    scopes: list[tuple[str, str]] = []
    if brand_scope and series_scope:
        scopes.append((brand_scope, series_scope))
    if brand_scope:
        scopes.append((brand_scope, ""))
    scopes.append(("", ""))
    return scopes


class SqlAlchemyFamilyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, slug: str) -> Family | None:
        stmt = select(family_registry_table).where(family_registry_table.c.slug == slug)
        with store_errors("family lookup"):
            row = self.session.execute(stmt).mappings().first()
        return _family_from_row(row) if row is not None else None

    def list(self) -> list[Family]:
        stmt = select(family_registry_table).order_by(family_registry_table.c.id)
        with store_errors("family listing"):
            rows = self.session.execute(stmt).mappings().all()
        return [_family_from_row(row) for row in rows]

    def save(self, family: Family) -> None:
        values = {
            "table_name": family.table_name,
            "attributes": {key: str(value) for key, value in family.attributes.items()},
            "allowed_keys": list(family.allowed_keys),
            "variant_keys": list(family.variant_keys),
            "identifier_template": family.identifier_template,
            "keywords": list(family.keywords),
            "brands": list(family.brands),
            "updated_at": utcnow(),
        }
        table = family_registry_table
        with store_errors(f"saving family {family.slug}"):
            existing = self.session.execute(
                select(table.c.id).where(table.c.slug == family.slug)
            ).scalar_one_or_none()
            if existing is None:
                self.session.execute(insert(table).values(slug=family.slug, **values))
            else:
                self.session.execute(update(table).where(table.c.id == existing).values(**values))


def _family_from_row(row: Mapping[str, Any]) -> Family:
    attributes = cast("dict[str, str]", row["attributes"] or {})
    return Family(
        slug=row["slug"],
        table_name=row["table_name"],
        attributes={key: AttributeType(value) for key, value in attributes.items()},
        allowed_keys=tuple(row["allowed_keys"] or ()),
        variant_keys=tuple(row["variant_keys"] or ()),
        identifier_template=row["identifier_template"],
        keywords=tuple(row["keywords"] or ()),
        brands=tuple(row["brands"] or ()),
    )


class SqlAlchemySchemaRepository:
    """Additive-only DDL on family relations."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @property
    def connection(self) -> Connection:
        return self.session.connection()

    def columns(self, table: str) -> dict[str, AttributeType]:
        with store_errors(f"inspecting {table}"):
            inspector = inspect(self.connection)
            if not inspector.has_table(table):
                return {}
            reflected = inspector.get_columns(table)
        return {
            column["name"]: attribute_type_of(column["type"])
            for column in reflected
            if column["name"] not in BASE_COLUMNS
        }

    def ensure_table(self, table: str) -> None:
        if not is_valid_table_name(table):
            raise SchemaNotReadyError(f"Invalid relation name: {table!r}", table=table)
        shape = family_table(table)
        try:
            self.connection.execute(CreateTable(shape, if_not_exists=True))
            for index in shape.indexes:
                self.connection.execute(CreateIndex(index, if_not_exists=True))
        except SQLAlchemyError as exc:
            raise SchemaNotReadyError(f"Could not create {table}: {exc}", table=table) from exc

    def add_column(self, table: str, name: str, column_type: AttributeType) -> AttributeType:
        if not is_valid_table_name(table) or not is_valid_table_name(name) or name in BASE_COLUMNS:
            raise SchemaNotReadyError(f"Invalid column {table}.{name}", table=table)
        existing = self.columns(table)
        if name in existing:
            if existing[name] is not column_type:
                log.debug(
                    "Column %s.%s exists as %s, ignoring declared %s",
                    table,
                    name,
                    existing[name],
                    column_type,
                )
            return existing[name]

        dialect = self.connection.dialect
        quote = dialect.identifier_preparer.quote
        ddl_type = sql_type(column_type).compile(dialect=dialect)
        guard = "IF NOT EXISTS " if dialect.name == "postgresql" else ""
        statement = f"ALTER TABLE {quote(table)} ADD COLUMN {guard}{quote(name)} {ddl_type}"
        try:
            self.connection.execute(text(statement))
        except OperationalError as exc:
            # lost a race against another run adding the same column
            if "duplicate column" not in str(exc).lower():
                message = f"Could not add {table}.{name}: {exc}"
                raise SchemaNotReadyError(message, table=table) from exc
        except SQLAlchemyError as exc:
            raise SchemaNotReadyError(f"Could not add {table}.{name}: {exc}", table=table) from exc
        log.info("Added column %s.%s (%s)", table, name, column_type)
        return self.columns(table).get(name, column_type)


class SqlAlchemyCatalogRepository:
    """Rows of family relations, one per natural key."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._tables: dict[str, Table] = {}

    def _reflect(self, name: str) -> Table | None:
        if name not in self._tables:
            try:
                self._tables[name] = Table(
                    name, MetaData(), autoload_with=self.session.connection()
                )
            except NoSuchTableError:
                return None
        return self._tables[name]

    def _require(self, name: str) -> Table:
        with store_errors(f"reflecting {name}"):
            table = self._reflect(name)
        if table is None:
            raise StoreError(f"Relation {name} does not exist")
        return table

    def upsert(
        self,
        table: str,
        record: AdmittedRecord,
        *,
        family: str,
        source_ref: str,
        run_id: str,
    ) -> UpsertOutcome:
        relation = self._require(table)
        now = utcnow()
        key_filter = (
            relation.c.brand_norm == record.key.brand_norm,
            relation.c.identifier_norm == record.key.identifier_norm,
        )
        with store_errors(f"upserting {record.identifier} into {table}"):
            existing = (
                self.session.execute(select(relation.c.id, relation.c.overflow).where(*key_filter))
                .mappings()
                .first()
            )
            previous_overflow: dict[str, object] = {}
            if existing is not None:
                previous_overflow = cast("dict[str, object]", existing["overflow"] or {})

            changes: dict[str, object] = {
                "series": record.series,
                "display_name": record.display_name,
                "identifier_source": str(record.identifier_source),
                "verified_in_doc": record.verified_in_doc,
                "doc_type": str(record.doc_type),
                "source_ref": source_ref,
                "run_id": run_id,
            }
            changes.update(
                {key: value for key, value in record.values.items() if key in relation.c}
            )
            changes = {k: v for k, v in changes.items() if v is not None}
            changes["overflow"] = {**previous_overflow, **record.overflow}
            changes["updated_at"] = now

            row = {
                "family": family,
                "brand": record.brand,
                "brand_norm": record.key.brand_norm,
                "identifier": record.identifier,
                "identifier_norm": record.key.identifier_norm,
                "created_at": now,
                **changes,
            }
            dialect_insert = UPSERT_DIALECTS.get(self.session.get_bind().dialect.name)
            if dialect_insert is not None:
                statement = dialect_insert(relation).values(**row)
                statement = statement.on_conflict_do_update(
                    index_elements=[relation.c.brand_norm, relation.c.identifier_norm],
                    set_={k: v for k, v in changes.items() if k not in IDENTITY_COLUMNS},
                )
                self.session.execute(statement)
            elif existing is None:
                self.session.execute(insert(relation).values(**row))
            else:
                self.session.execute(
                    update(relation).where(relation.c.id == existing["id"]).values(**changes)
                )
        return UpsertOutcome.INSERTED if existing is None else UpsertOutcome.UPDATED

    def get(self, table: str, key: NaturalKey) -> dict[str, object] | None:
        with store_errors(f"reading {table}"):
            relation = self._reflect(table)
            if relation is None:
                return None
            row = (
                self.session.execute(
                    select(relation)
                    .where(relation.c.brand_norm == key.brand_norm)
                    .where(relation.c.identifier_norm == key.identifier_norm)
                )
                .mappings()
                .first()
            )
        return dict(row) if row is not None else None

    def count(self, table: str) -> int:
        with store_errors(f"counting {table}"):
            relation = self._reflect(table)
            if relation is None:
                return 0
            total = self.session.execute(select(func.count()).select_from(relation)).scalar_one()
        return int(total)

    def rows_missing(self, table: str, column: str, *, limit: int = 500) -> list[tuple[int, str]]:
        with store_errors(f"scanning {table}.{column}"):
            relation = self._reflect(table)
            if relation is None or column not in relation.c:
                return []
            rows = self.session.execute(
                select(relation.c.id, relation.c.identifier)
                .where(relation.c[column].is_(None))
                .order_by(relation.c.id)
                .limit(limit)
            ).all()
        return [(int(row_id), str(identifier)) for row_id, identifier in rows]

    def fill_missing(self, table: str, row_id: int, values: Mapping[str, object]) -> None:
        relation = self._require(table)
        with store_errors(f"backfilling {table} row {row_id}"):
            for column, value in values.items():
                if column not in relation.c or column in BASE_COLUMNS or value is None:
                    continue
                self.session.execute(
                    update(relation)
                    .where(relation.c.id == row_id)
                    .where(relation.c[column].is_(None))
                    .values({column: value, "updated_at": utcnow()})
                )


class SqlAlchemyAttributeAliasRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def lookup(self, family: str, brand: str | None, series: str | None) -> dict[str, str]:
        table = attribute_alias_table
        scopes = _scopes(brand, series)
        with store_errors("alias lookup"):
            rows = self.session.execute(
                select(table.c.brand_scope, table.c.series_scope, table.c.alias, table.c.canonical)
                .where(table.c.family == family)
                .where(table.c.brand_scope.in_({b for b, _ in scopes}))
                .where(table.c.series_scope.in_({s for _, s in scopes}))
            ).all()
        rank = {scope: index for index, scope in enumerate(reversed(scopes))}
        aliases: dict[str, str] = {}
        applicable = [row for row in rows if (row.brand_scope, row.series_scope) in rank]
        for row in sorted(applicable, key=lambda r: rank[(r.brand_scope, r.series_scope)]):
            aliases[row.alias] = row.canonical
        return aliases

    def save(
        self,
        family: str,
        alias: str,
        canonical: str,
        *,
        brand: str | None = None,
        series: str | None = None,
        confidence: float = 1.0,
    ) -> None:
        table = attribute_alias_table
        scope = {
            "family": family,
            "brand_scope": fold(brand or ""),
            "series_scope": fold(series or "") if brand else "",
            "alias": alias,
        }
        with store_errors(f"saving alias {alias}"):
            existing = self.session.execute(
                select(table.c.id).where(*(table.c[k] == v for k, v in scope.items()))
            ).scalar_one_or_none()
            if existing is None:
                self.session.execute(
                    insert(table).values(**scope, canonical=canonical, confidence=confidence)
                )
            else:
                self.session.execute(
                    update(table)
                    .where(table.c.id == existing)
                    .values(canonical=canonical, confidence=confidence, updated_at=utcnow())
                )


class SqlAlchemyTemplateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, family: str, brand: str | None, series: str | None) -> StoredTemplate | None:
        table = identifier_template_table
        with store_errors("template lookup"):
            for brand_scope, series_scope in _scopes(brand, series):
                row = self.session.execute(
                    select(table.c.template, table.c.confidence, table.c.source)
                    .where(table.c.family == family)
                    .where(table.c.brand_scope == brand_scope)
                    .where(table.c.series_scope == series_scope)
                ).first()
                if row is not None:
                    return StoredTemplate(row.template, float(row.confidence), row.source)
        return None

    def save(
        self,
        family: str,
        template: str,
        *,
        brand: str | None = None,
        series: str | None = None,
        confidence: float = 1.0,
        source: str = "recipe",
    ) -> None:
        table = identifier_template_table
        scope = {
            "family": family,
            "brand_scope": fold(brand or ""),
            "series_scope": fold(series or "") if brand else "",
        }
        values = {"template": template, "confidence": confidence, "source": source}
        with store_errors(f"saving template for {family}"):
            existing = self.session.execute(
                select(table.c.id).where(*(table.c[k] == v for k, v in scope.items()))
            ).scalar_one_or_none()
            if existing is None:
                self.session.execute(insert(table).values(**scope, **values))
            else:
                self.session.execute(
                    update(table)
                    .where(table.c.id == existing)
                    .values(**values, updated_at=utcnow())
                )


class SqlAlchemyBrandRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def entries(self) -> list[BrandAlias]:
        table = brand_alias_table
        with store_errors("brand directory"):
            rows = self.session.execute(
                select(table.c.brand, table.c.alias).order_by(table.c.id)
            ).all()
        return [BrandAlias(brand=row.brand, alias=row.alias) for row in rows]

    def add(self, brand: str, alias: str) -> None:
        table = brand_alias_table
        alias_norm = fold(alias)
        with store_errors(f"adding brand alias {alias}"):
            existing = self.session.execute(
                select(table.c.id).where(table.c.alias_norm == alias_norm)
            ).scalar_one_or_none()
            if existing is None:
                self.session.execute(
                    insert(table).values(brand=brand, alias=alias, alias_norm=alias_norm)
                )


class SqlAlchemyRunLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, run_id: str, status: str, detail: Mapping[str, object]) -> None:
        with store_errors(f"run log for {run_id}"):
            self.session.execute(
                insert(ingest_run_log_table).values(
                    run_id=run_id, status=status, detail=dict(detail)
                )
            )

    def statuses(self, run_id: str) -> list[str]:
        table = ingest_run_log_table
        with store_errors(f"run log for {run_id}"):
            rows = self.session.execute(
                select(table.c.status).where(table.c.run_id == run_id).order_by(table.c.id)
            ).scalars()
            return list(rows)


class SqlAlchemyRunLockRepository:
    """Lease-style run lock: one row per run id with an expiry.

    An unexpired lease is exclusive, even against its own owner; only an expired lease can be
    taken over.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def acquire(self, run_id: str, owner: str, ttl_seconds: float) -> bool:
        table = ingest_run_lock_table
        now = utcnow()
        lease = {
            "owner": owner,
            "acquired_at": now,
            "expires_at": now + timedelta(seconds=ttl_seconds),
        }
        with store_errors(f"locking run {run_id}"):
            current = (
                self.session.execute(
                    select(table.c.owner, table.c.expires_at).where(table.c.run_id == run_id)
                )
                .mappings()
                .first()
            )
            if current is None:
                try:
                    self.session.execute(insert(table).values(run_id=run_id, **lease))
                except IntegrityError:
                    log.info("Run %s was locked concurrently", run_id)
                    return False
                return True
            if current["expires_at"] > now:
                log.debug("Run %s is leased by %s", run_id, current["owner"])
                return False
            taken = self.session.execute(
                update(table)
                .where(table.c.run_id == run_id)
                .where(table.c.expires_at <= now)
                .values(**lease)
            )
        return taken.rowcount == 1

    def release(self, run_id: str, owner: str) -> None:
        table = ingest_run_lock_table
        with store_errors(f"unlocking run {run_id}"):
            self.session.execute(
                delete(table).where(table.c.run_id == run_id).where(table.c.owner == owner)
            )


__all__ = [
    "SqlAlchemyAttributeAliasRepository",
    "SqlAlchemyBrandRepository",
    "SqlAlchemyCatalogRepository",
    "SqlAlchemyFamilyRepository",
    "SqlAlchemyRunLockRepository",
    "SqlAlchemyRunLogRepository",
    "SqlAlchemySchemaRepository",
    "SqlAlchemyTemplateRepository",
    "store_errors",
]
