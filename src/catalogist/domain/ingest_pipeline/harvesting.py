"""Candidate harvesting phase.

Three independent, read-only strategies look for item identifiers and attribute
bags: the oracle's structured answer, a scan of parsed tables and a regex pass over
the raw text. Their results are merged by normalized identifier key with a fixed
strategy order, so the outcome does not depend on which strategy finished first.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogist.domain.identifiers import (
    appears_verbatim,
    clean_identifier,
    is_identifier_shaped,
    normalize_identifier,
    text_tokens,
)
from catalogist.domain.ingest_pipeline.context import IdentifierCandidate
from catalogist.domain.keys import identity_role, normalize_attributes, normalize_key
from catalogist.domain.model import (
    CandidateRecord,
    DocType,
    HarvestStrategy,
    IdentifierSource,
    RunStatus,
)
from catalogist.domain.templates import stringify

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext
    from catalogist.domain.model import OracleExtraction, OrderingGuess, ParsedTable

log = getLogger(__name__)

IDENTIFIER_HEADER: Final[re.Pattern[str]] = re.compile(
    r"^\s*(code|part|pn|p/n|ordering|order|type|catalog|cat\.|model|item)\b", re.IGNORECASE
)
ORDERING_ANCHOR: Final[re.Pattern[str]] = re.compile(
    r"(ordering\s+information|ordering\s+code|ordering\s+guide|how\s+to\s+order|"
    r"part\s+number(?:ing)?\s+system|type\s+designation|model\s+number\s+structure)",
    re.IGNORECASE,
)
ORDERING_WINDOW_CHARS: Final[int] = 1500
MAX_TEXT_CANDIDATES: Final[int] = 200
_LIST_SPLIT: Final[re.Pattern[str]] = re.compile(r"\s*[,;/]\s*")


@dataclass(slots=True)
class HarvestedRow:
    """One item's attribute bag as seen by a single strategy."""

    strategy: HarvestStrategy
    identifier: str | None
    attributes: dict[str, object] = field(default_factory=dict[str, object])


@dataclass(slots=True)
class StrategyResult:
    strategy: HarvestStrategy
    identifiers: list[str] = field(default_factory=list[str])
    rows: list[HarvestedRow] = field(default_factory=list[HarvestedRow])
    domains: dict[str, list[str]] = field(default_factory=dict[str, list[str]])


@dataclass(slots=True)
class DocumentIdentity:
    brand: str | None = None
    series: str | None = None
    display_name: str | None = None
    attributes: dict[str, object] = field(default_factory=dict[str, object])


def split_identity(raw: Mapping[str, object]) -> tuple[dict[str, object], dict[str, str]]:
    """Separate identity fields (brand, identifier, series, name) from attributes."""

    attributes: dict[str, object] = {}
    identity: dict[str, str] = {}
    for key, value in normalize_attributes(dict(raw)).items():
        role = identity_role(key)
        if role is None:
            attributes[key] = value
            continue
        text = stringify(value)
        if text and role not in identity:
            identity[role] = text
    return attributes, identity


def oracle_strategy(extraction: OracleExtraction | None) -> StrategyResult:
    result = StrategyResult(HarvestStrategy.ORACLE)
    if extraction is None:
        return result

    _, identity = split_identity(extraction.fields)
    codes: list[str] = [str(code) for code in extraction.codes if code]
    if "identifier" in identity:
        codes.append(identity["identifier"])

    for raw_row in extraction.rows:
        attributes, row_identity = split_identity(raw_row)
        identifier = row_identity.get("identifier")
        if not (identifier and is_identifier_shaped(identifier)):
            identifier = None
        else:
            identifier = clean_identifier(identifier)
        result.rows.append(HarvestedRow(HarvestStrategy.ORACLE, identifier, attributes))
        if identifier is not None:
            codes.append(identifier)

    result.identifiers = [clean_identifier(code) for code in codes if is_identifier_shaped(code)]
    return result


def _identifier_column(table: ParsedTable) -> int | None:
    for index, header in enumerate(table.headers):
        if IDENTIFIER_HEADER.match(header or ""):
            return index
    return None


def _domain_values(cells: Iterable[str]) -> list[str]:
    values: dict[str, None] = {}
    for cell in cells:
        for part in _LIST_SPLIT.split(cell.strip()):
            if part:
                values.setdefault(part, None)
    return list(values)


def table_strategy(tables: Sequence[ParsedTable]) -> StrategyResult:
    result = StrategyResult(HarvestStrategy.TABLE)
    for table in tables:
        id_column = _identifier_column(table)
        keys = [normalize_key(header) for header in table.headers]

        if id_column is None:
            # option tables: every column listing 2+ values is a candidate variant domain
            for index, key in enumerate(keys):
                if not key or identity_role(key) is not None:
                    continue
                values = _domain_values(table.column(index))
                if len(values) >= 2 and key not in result.domains:
                    result.domains[key] = values
            continue

        for row in table.rows:
            if id_column >= len(row):
                continue
            cell = clean_identifier(row[id_column])
            if not is_identifier_shaped(cell):
                continue
            attributes: dict[str, object] = {}
            for index, value in enumerate(row):
                key = keys[index] if index < len(keys) else ""
                if index == id_column or not key or not value.strip():
                    continue
                if identity_role(key) is None:
                    attributes.setdefault(key, value.strip())
            result.identifiers.append(cell)
            result.rows.append(HarvestedRow(HarvestStrategy.TABLE, cell, attributes))
    return result


def ordering_windows(text: str) -> list[tuple[int, int]]:
    return [
        (match.start(), min(len(text), match.start() + ORDERING_WINDOW_CHARS))
        for match in ORDERING_ANCHOR.finditer(text)
    ]


def has_ordering_section(text: str) -> bool:
    return ORDERING_ANCHOR.search(text) is not None


def text_strategy(text: str, *, series: str | None) -> StrategyResult:
    """Identifier-shaped tokens from the raw text.

    With a known series, tokens must carry its prefix and those inside an
    ordering-information window rank first. Without one, only window tokens are
    kept; elsewhere in a datasheet such tokens are mostly standards and file numbers.
    """

    result = StrategyResult(HarvestStrategy.TEXT)
    if not text:
        return result
    windowed: list[str] = []
    for start, end in ordering_windows(text):
        windowed.extend(text_tokens(text[start:end], prefix=series))
    tokens = [*windowed, *text_tokens(text, prefix=series)] if series else windowed
    if series:
        # the bare series name is a prefix, not an item
        tokens = [t for t in tokens if normalize_identifier(t) != normalize_identifier(series)]
    result.identifiers = list(dict.fromkeys(tokens))[:MAX_TEXT_CANDIDATES]
    return result


def merge_candidates(
    results: Sequence[StrategyResult],
    corpus: str,
) -> list[IdentifierCandidate]:
    """First-seen wins on identical keys; recurrence or corroboration marks verified."""

    merged: dict[str, IdentifierCandidate] = {}
    for result in results:
        for identifier in result.identifiers:
            key = normalize_identifier(identifier)
            candidate = merged.get(key)
            if candidate is None:
                candidate = IdentifierCandidate(identifier=identifier, key=key)
                merged[key] = candidate
            candidate.sources.add(result.strategy)
    for candidate in merged.values():
        candidate.verified_in_doc = len(candidate.sources) >= 2 or appears_verbatim(
            candidate.identifier, corpus
        )
    return list(merged.values())


def merge_domains(
    ordering: OrderingGuess | None,
    detected: Mapping[str, list[str]],
    *,
    max_keys: int,
) -> dict[str, list[str]]:
    domains: dict[str, list[str]] = {}
    if ordering is not None:
        ranked = [normalize_key(key) for key in ordering.variant_keys]
        ranked.extend(normalize_key(key) for key in ordering.domains)
        raw_domains = {normalize_key(key): values for key, values in ordering.domains.items()}
        for key in dict.fromkeys(ranked):
            rendered = (stringify(value) for value in raw_domains.get(key, []))
            values = list(dict.fromkeys(value for value in rendered if value))
            if key and values:
                domains[key] = values
    for key, values in detected.items():
        domains.setdefault(key, values)
    return dict(list(domains.items())[:max_keys])


def classify_document(
    candidates: Sequence[IdentifierCandidate],
    domains: Mapping[str, list[str]],
    *,
    ordering_section: bool,
) -> DocType:
    literal = [c for c in candidates if c.sources != {HarvestStrategy.HINT}]
    if ordering_section and any(len(values) >= 2 for values in domains.values()):
        return DocType.ORDERING
    if len(literal) > 1:
        return DocType.CATALOG
    return DocType.SINGLE


def document_identity(run: IngestRun, extraction: OracleExtraction | None) -> DocumentIdentity:
    hints = run.document.hints
    identity = DocumentIdentity()
    oracle_identity: dict[str, str] = {}
    if extraction is not None:
        identity.attributes, oracle_identity = split_identity(extraction.fields)
        oracle_identity.setdefault("brand", extraction.brand or "")
        oracle_identity.setdefault("series", extraction.series or "")
    identity.brand = hints.brand or oracle_identity.get("brand") or None
    identity.series = hints.series or oracle_identity.get("series") or None
    identity.display_name = hints.display_name or oracle_identity.get("display_name") or None
    return identity


def build_records(
    run: IngestRun,
    identity: DocumentIdentity,
    results: Sequence[StrategyResult],
    candidates: Sequence[IdentifierCandidate],
) -> list[CandidateRecord]:
    by_key = {candidate.key: candidate for candidate in candidates}
    records: dict[str, CandidateRecord] = {}
    anonymous: list[CandidateRecord] = []

    def new_record(identifier: str | None, attributes: Mapping[str, object]) -> CandidateRecord:
        record = CandidateRecord(
            attributes={**identity.attributes, **attributes},
            brand=identity.brand,
            identifier=identifier,
            series=identity.series,
            display_name=identity.display_name,
            doc_type=run.doc_type,
        )
        candidate = by_key.get(normalize_identifier(identifier)) if identifier else None
        if candidate is not None:
            record.identifier = candidate.identifier
            record.sources = set(candidate.sources)
            record.verified_in_doc = candidate.verified_in_doc
            record.identifier_source = (
                IdentifierSource.HINT
                if candidate.sources == {HarvestStrategy.HINT}
                else IdentifierSource.LITERAL
            )
        return record

    for result in results:
        for row in result.rows:
            if row.identifier is None:
                anonymous.append(new_record(None, row.attributes))
                continue
            key = normalize_identifier(row.identifier)
            existing = records.get(key)
            if existing is None:
                records[key] = new_record(row.identifier, row.attributes)
            else:
                for attr, value in row.attributes.items():
                    existing.attributes.setdefault(attr, value)

    for candidate in candidates:
        if candidate.key not in records:
            records[candidate.key] = new_record(candidate.identifier, {})

    produced = [*records.values(), *anonymous]
    if not produced:
        produced.append(new_record(None, {}))
    return produced


@dataclass(slots=True)
class HarvestPhase:
    name: str = "harvesting"
    status: RunStatus = RunStatus.HARVESTING

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        family = run.require_family()
        oracle = context.services.oracle
        bundle = run.bundle

        if bundle.oracle is None:
            bundle.oracle = context.oracle_call(
                "extract_fields", lambda: oracle.extract_fields(bundle.text, family)
            )
        if bundle.ordering is None and has_ordering_section(bundle.text):
            bundle.ordering = context.oracle_call(
                "extract_ordering", lambda: oracle.extract_ordering(bundle.text, family)
            )

        identity = document_identity(run, bundle.oracle)
        run.brand = identity.brand
        run.series = identity.series
        run.display_name = identity.display_name
        run.doc_attributes = dict(identity.attributes)

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="catalogist-harvest") as pool:
            futures = (
                pool.submit(oracle_strategy, bundle.oracle),
                pool.submit(table_strategy, bundle.tables),
                pool.submit(text_strategy, bundle.text, series=identity.series),
            )
            results: list[StrategyResult] = [future.result() for future in futures]

        hint_code = run.document.hints.code
        if hint_code and is_identifier_shaped(hint_code):
            results.insert(
                0,
                StrategyResult(HarvestStrategy.HINT, identifiers=[clean_identifier(hint_code)]),
            )

        corpus = bundle.corpus()
        run.candidates = merge_candidates(results, corpus)
        detected: dict[str, list[str]] = {}
        for result in results:
            for key, values in result.domains.items():
                detected.setdefault(key, values)
        run.variant_domains = merge_domains(
            bundle.ordering, detected, max_keys=context.config.max_variant_keys
        )
        if bundle.ordering is not None and bundle.ordering.template:
            run.ordering_template = bundle.ordering.template
        run.doc_type = classify_document(
            run.candidates,
            run.variant_domains,
            ordering_section=has_ordering_section(bundle.text) or bundle.ordering is not None,
        )
        run.records = build_records(run, identity, results, run.candidates)

        log.info(
            "Run %s harvested %d candidate(s), %d record(s), doc type %s, variant keys %s",
            run.run_id,
            len(run.candidates),
            len(run.records),
            run.doc_type,
            sorted(run.variant_domains),
        )
