"""Exception taxonomy for ingestion runs.

Record-level problems never surface as exceptions outside the pipeline; they are
converted into :class:`~catalogist.domain.model.SkipReason` values. The classes here
cover the collaborator failures that the pipeline absorbs (oracle, schema, store)
and the run-level failures that abort a run and are safe to retry.
"""

from __future__ import annotations


class IngestError(RuntimeError):
    """Base class for ingestion failures."""


class ClassificationUncertain(IngestError):
    """Raised when no family signal was strong enough to classify a document."""


class OracleUnavailableError(IngestError):
    """Raised when the extraction oracle cannot answer (down, refused, malformed)."""


class OracleTimeoutError(OracleUnavailableError):
    """Raised when an external call exceeded its timeout."""


class DocumentParseError(IngestError):
    """Raised by layout parsers that cannot structure a document."""


class SchemaNotReadyError(IngestError):
    """Raised when a family relation cannot be created or extended."""

    def __init__(self, message: str, *, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class StoreError(IngestError):
    """Raised by persistence adapters when a store operation fails."""


class RunFailedError(IngestError):
    """Run-level failure. The whole pipeline is idempotent so retrying is safe."""

    retryable: bool = True

    def __init__(self, message: str, *, run_id: str | None = None) -> None:
        super().__init__(message)
        self.run_id = run_id


class SourceUnreadableError(RunFailedError):
    """Raised when the source document cannot be fetched or decoded."""


class StoreUnavailableError(RunFailedError):
    """Raised when the relational store is unreachable at run start."""


class RunTimeoutError(RunFailedError):
    """Raised when a run exceeds its wall-clock budget."""


class LockContentionError(RunFailedError):
    """Raised when another worker holds the lock for the same run id."""


__all__ = [
    "ClassificationUncertain",
    "DocumentParseError",
    "IngestError",
    "LockContentionError",
    "OracleTimeoutError",
    "OracleUnavailableError",
    "RunFailedError",
    "RunTimeoutError",
    "SchemaNotReadyError",
    "SourceUnreadableError",
    "StoreError",
    "StoreUnavailableError",
]
