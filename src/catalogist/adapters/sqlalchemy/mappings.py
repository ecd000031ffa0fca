"""SQLAlchemy table metadata: fixed bookkeeping tables and per-family relations."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Float,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

from catalogist.domain.model import AttributeType

if TYPE_CHECKING:
    from sqlalchemy.types import TypeEngine


NAMING_CONVENTION: Final[dict[str, str]] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


metadata = MetaData(naming_convention=NAMING_CONVENTION)

# Fixed tables ----------------------------------------------------------------

family_registry_table = Table(
    "family_registry",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(63), nullable=False, unique=True),
    Column("table_name", String(63), nullable=False, unique=True),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("allowed_keys", JSON, nullable=False, default=list),
    Column("variant_keys", JSON, nullable=False, default=list),
    Column("identifier_template", Text, nullable=True),
    Column("keywords", JSON, nullable=False, default=list),
    Column("brands", JSON, nullable=False, default=list),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime(), nullable=False, default=utcnow),
)

attribute_alias_table = Table(
    "attribute_alias",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("family", String(63), nullable=False),
    Column("brand_scope", String(255), nullable=False, default=""),
    Column("series_scope", String(255), nullable=False, default=""),
    Column("alias", String(63), nullable=False),
    Column("canonical", String(63), nullable=False),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime(), nullable=False, default=utcnow),
    UniqueConstraint("family", "brand_scope", "series_scope", "alias"),
)

identifier_template_table = Table(
    "identifier_template",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("family", String(63), nullable=False),
    Column("brand_scope", String(255), nullable=False, default=""),
    Column("series_scope", String(255), nullable=False, default=""),
    Column("template", Text, nullable=False),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("source", String(32), nullable=False, default="recipe"),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime(), nullable=False, default=utcnow),
    UniqueConstraint("family", "brand_scope", "series_scope"),
)

brand_alias_table = Table(
    "brand_alias",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("brand", String(255), nullable=False),
    Column("alias", String(255), nullable=False),
    Column("alias_norm", String(255), nullable=False, unique=True),
)

ingest_run_log_table = Table(
    "ingest_run_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("run_id", String(255), nullable=False),
    Column("status", String(32), nullable=False),
    Column("detail", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Index("ix_ingest_run_log_run_id", "run_id"),
)

ingest_run_lock_table = Table(
    "ingest_run_lock",
    metadata,
    Column("run_id", String(255), primary_key=True),
    Column("owner", String(255), nullable=False),
    Column("acquired_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)

# Family relations -------------------------------------------------------------

SQL_TYPES: Final[dict[AttributeType, type[TypeEngine[object]]]] = {
    AttributeType.NUMERIC: Float,
    AttributeType.INTEGER: BigInteger,
    AttributeType.BOOLEAN: Boolean,
    AttributeType.TEXT: Text,
    AttributeType.JSON: JSON,
}


def sql_type(attribute_type: AttributeType) -> TypeEngine[object]:
    return SQL_TYPES[attribute_type]()


def attribute_type_of(column_type: TypeEngine[object]) -> AttributeType:
    """Map a reflected column type back to its attribute type."""

    if isinstance(column_type, Boolean):
        return AttributeType.BOOLEAN
    if isinstance(column_type, Integer):
        return AttributeType.INTEGER
    # Float is not a Numeric subclass on every SQLAlchemy release
    if isinstance(column_type, Float | Numeric):
        return AttributeType.NUMERIC
    if isinstance(column_type, JSON):
        return AttributeType.JSON
    return AttributeType.TEXT


def family_table(name: str, *, table_metadata: MetaData | None = None) -> Table:
    """Return the base shape of a family relation; attribute columns are added at runtime."""

    return Table(
        name,
        table_metadata if table_metadata is not None else MetaData(),
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("family", String(63), nullable=False),
        Column("brand", String(255), nullable=False),
        Column("brand_norm", String(255), nullable=False),
        Column("identifier", String(255), nullable=False),
        Column("identifier_norm", String(255), nullable=False),
        Column("series", String(255), nullable=True),
        Column("display_name", Text, nullable=True),
        Column("identifier_source", String(16), nullable=False),
        Column("verified_in_doc", Boolean, nullable=False, default=False),
        Column("doc_type", String(16), nullable=False),
        Column("source_ref", Text, nullable=True),
        Column("run_id", String(255), nullable=True),
        Column("overflow", JSON, nullable=False, default=dict),
        Column("created_at", UTCDateTime(), nullable=False),
        Column("updated_at", UTCDateTime(), nullable=False),
        Index(f"uq_{name}_natural_key", "brand_norm", "identifier_norm", unique=True),
    )


__all__ = [
    "attribute_alias_table",
    "attribute_type_of",
    "brand_alias_table",
    "family_registry_table",
    "family_table",
    "identifier_template_table",
    "ingest_run_lock_table",
    "ingest_run_log_table",
    "metadata",
    "sql_type",
    "utcnow",
]
