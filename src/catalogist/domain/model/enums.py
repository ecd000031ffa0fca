"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class AttributeType(StrEnum):
    NUMERIC = "numeric"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    TEXT = "text"
    JSON = "json"


class DocType(StrEnum):
    """How many items a document describes."""

    SINGLE = "single"
    CATALOG = "catalog"
    ORDERING = "ordering"


class IdentifierSource(StrEnum):
    HINT = "hint"
    LITERAL = "literal"
    SYNTHESIZED = "synthesized"


class HarvestStrategy(StrEnum):
    ORACLE = "oracle"
    TABLE = "table"
    TEXT = "text"
    HINT = "hint"


class FamilySource(StrEnum):
    HINT = "hint"
    HEURISTIC = "heuristic"
    ORACLE = "oracle"
    DEFAULT = "default"


class SkipReason(StrEnum):
    """Typed reasons a candidate record was not persisted."""

    MISSING_BRAND = "missing_brand"
    INVALID_IDENTIFIER = "invalid_identifier"
    UNVERIFIED_IDENTIFIER = "unverified_identifier"
    MISSING_CORE_SPEC = "missing_core_spec"
    TEMPLATE_UNRESOLVED = "template_unresolved"
    DUPLICATE_WITHIN_BATCH = "duplicate_within_batch"
    SCHEMA_NOT_READY = "schema_not_ready"
    STORE_ERROR = "store_error"
    # folded into another record of the same run
    MERGED = "merged"


class RunStatus(StrEnum):
    STARTED = "started"
    RESOLVING_FAMILY = "resolving_family"
    HARVESTING = "harvesting"
    NEGOTIATING_SCHEMA = "negotiating_schema"
    SYNTHESIZING_IDENTIFIERS = "synthesizing_identifiers"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    DONE = "done"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {RunStatus.DONE, RunStatus.PARTIAL, RunStatus.FAILED}
