"""Public domain model surface."""

from __future__ import annotations

from catalogist.domain.model.documents import (
    ExtractionBundle,
    IngestHints,
    ParsedDocument,
    ParsedTable,
    SourceDocument,
)
from catalogist.domain.model.enums import (
    AttributeType,
    DocType,
    FamilySource,
    HarvestStrategy,
    IdentifierSource,
    RunStatus,
    SkipReason,
)
from catalogist.domain.model.family import (
    BASE_COLUMNS,
    Family,
    FamilyResolution,
    default_table_name,
    is_valid_table_name,
    slugify_family,
)
from catalogist.domain.model.oracle import (
    FamilyGuess,
    KeyCanonicalization,
    OracleExtraction,
    OrderingGuess,
    TemplateGuess,
)
from catalogist.domain.model.records import AdmittedRecord, CandidateRecord, NaturalKey
from catalogist.domain.model.results import IngestResult, SkippedRecord

__all__ = [  # noqa: RUF022
    # enums
    "AttributeType",
    "DocType",
    "FamilySource",
    "HarvestStrategy",
    "IdentifierSource",
    "RunStatus",
    "SkipReason",
    # families
    "BASE_COLUMNS",
    "Family",
    "FamilyResolution",
    "default_table_name",
    "is_valid_table_name",
    "slugify_family",
    # documents
    "ExtractionBundle",
    "IngestHints",
    "ParsedDocument",
    "ParsedTable",
    "SourceDocument",
    # oracle values
    "FamilyGuess",
    "KeyCanonicalization",
    "OracleExtraction",
    "OrderingGuess",
    "TemplateGuess",
    # records
    "AdmittedRecord",
    "CandidateRecord",
    "NaturalKey",
    # results
    "IngestResult",
    "SkippedRecord",
]
