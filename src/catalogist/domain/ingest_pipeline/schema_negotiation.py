"""Variant schema negotiation: canonicalize keys and extend the family relation."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogist.domain.brands import fold
from catalogist.domain.errors import SchemaNotReadyError, StoreError
from catalogist.domain.keys import normalize_key
from catalogist.domain.model import BASE_COLUMNS, RunStatus, is_valid_table_name
from catalogist.domain.values import coerce_value

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext, ScopeKey
    from catalogist.domain.model import AttributeType, CandidateRecord, Family
    from catalogist.domain.ports import IngestUnitOfWork
    from catalogist.domain.templates import IdentifierTemplate

log = getLogger(__name__)

BACKFILL_BATCH: Final[int] = 500


def scope_key(family: str, brand: str | None, series: str | None) -> ScopeKey:
    return (family, fold(brand or ""), fold(series or ""))


def is_column_key(key: str) -> bool:
    return bool(key) and key not in BASE_COLUMNS and is_valid_table_name(key)


def collect_keys(records: Iterable[CandidateRecord], domains: Mapping[str, object]) -> list[str]:
    keys: dict[str, None] = {}
    for record in records:
        keys.update(dict.fromkeys(record.attributes))
    keys.update(dict.fromkeys(domains))
    return list(keys)


def canonicalize(
    keys: Sequence[str],
    *,
    aliases: Mapping[str, str],
    vocabulary: Sequence[str],
    ask_oracle: Callable[[Sequence[str]], Mapping[str, tuple[str, float]]],
    threshold: float,
) -> tuple[dict[str, str], dict[str, tuple[str, float]]]:
    """Map every key to its canonical name: learned alias, then oracle, then identity.

    Oracle answers count only when they name a vocabulary key. Returns the full key map
    and the oracle answers that were accepted, so they can be written back as aliases.
    """

    known = set(vocabulary)
    key_map: dict[str, str] = {}
    unknown: list[str] = []
    for key in keys:
        if key in aliases:
            key_map[key] = aliases[key]
        elif key in known:
            key_map[key] = key
        else:
            unknown.append(key)

    learned: dict[str, tuple[str, float]] = {}
    if unknown and vocabulary:
        for key, (canonical, confidence) in ask_oracle(unknown).items():
            target = normalize_key(canonical)
            if key not in unknown or target == key or confidence < threshold:
                continue
            if target not in known:
                log.debug("Ignoring canonical name %r for %r outside the vocabulary", target, key)
                continue
            key_map[key] = target
            learned[key] = (target, confidence)

    for key in unknown:
        key_map.setdefault(key, key)
    return key_map, learned


def rename_attributes(record: CandidateRecord, key_map: Mapping[str, str]) -> None:
    renamed: dict[str, object] = {}
    for key, value in record.attributes.items():
        canonical = key_map.get(key, key)
        if not is_column_key(canonical):
            record.overflow.setdefault(key, value)
            continue
        renamed.setdefault(canonical, value)
    record.attributes = renamed


def backfill_variant_keys(
    uow_factory: Callable[[], IngestUnitOfWork],
    *,
    table: str,
    template: IdentifierTemplate,
    keys: Sequence[str],
    columns: Mapping[str, AttributeType],
    limit: int = BACKFILL_BATCH,
) -> int:
    """Fill newly discovered variant columns of existing rows by decoding their identifiers."""

    filled = 0
    with uow_factory() as uow:
        catalog = uow.repositories.catalog
        for key in keys:
            column_type = columns.get(key)
            if column_type is None or key not in template.fields:
                continue
            for row_id, identifier in catalog.rows_missing(table, key, limit=limit):
                decoded = template.decode(identifier)
                if not decoded or key not in decoded:
                    continue
                values = coerce_value(key, decoded[key], column_type, columns).values
                if key in values:
                    catalog.fill_missing(table, row_id, {key: values[key]})
                    filled += 1
        uow.commit()
    log.info("Backfilled %d row(s) of %s for variant keys %s", filled, table, list(keys))
    return filled


@dataclass(slots=True)
class SchemaNegotiationPhase:
    name: str = "schema_negotiation"
    status: RunStatus = RunStatus.NEGOTIATING_SCHEMA

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        family = run.require_family()
        scope = scope_key(family.slug, run.brand, run.series)
        keys = collect_keys(run.records, run.variant_domains)

        try:
            aliases = self._aliases(context, scope, run)
            with context.uow() as uow:
                run.columns = uow.repositories.schema.columns(family.table_name)
        except StoreError as exc:
            self._not_ready(run, exc)
            return

        vocabulary = tuple(dict.fromkeys((*family.vocabulary(), *run.columns)))

        def ask_oracle(unknown: Sequence[str]) -> dict[str, tuple[str, float]]:
            answers = context.oracle_call(
                "canonicalize_keys",
                lambda: context.services.oracle.canonicalize_keys(
                    unknown, vocabulary, family=family
                ),
            )
            return {a.key: (a.canonical, a.confidence) for a in answers or ()}

        run.key_map, learned = canonicalize(
            keys,
            aliases=aliases,
            vocabulary=vocabulary,
            ask_oracle=ask_oracle,
            threshold=context.config.canonicalization_confidence,
        )
        for record in run.records:
            rename_attributes(record, run.key_map)
        run.variant_domains = self._canonical_domains(run)

        wanted = [k for k in dict.fromkeys(run.key_map.values()) if is_column_key(k)]
        try:
            with context.uow() as uow:
                schema = uow.repositories.schema
                schema.ensure_table(family.table_name)
                for key in wanted:
                    if key not in run.columns:
                        run.columns[key] = schema.add_column(
                            family.table_name, key, family.declared_type(key)
                        )
                for alias, (canonical, confidence) in learned.items():
                    uow.repositories.aliases.save(
                        family.slug,
                        alias,
                        canonical,
                        brand=run.brand,
                        series=run.series,
                        confidence=confidence,
                    )
                family = self._register_discovered(uow, family, wanted, run)
                uow.commit()
        except (SchemaNotReadyError, StoreError) as exc:
            self._not_ready(run, exc)
            return

        if learned:
            context.caches.aliases.invalidate()
        run.family = family
        self._schedule_backfill(run, context)
        log.info(
            "Run %s negotiated %d key(s) for %s (%d learned alias(es), new variant keys %s)",
            run.run_id,
            len(wanted),
            family.table_name,
            len(learned),
            run.new_variant_keys,
        )

    @staticmethod
    def _aliases(context: PipelineContext, scope: ScopeKey, run: IngestRun) -> dict[str, str]:
        def load() -> dict[str, str]:
            with context.uow() as uow:
                return uow.repositories.aliases.lookup(scope[0], run.brand, run.series)

        return context.caches.aliases.get_or_load(scope, load)

    @staticmethod
    def _canonical_domains(run: IngestRun) -> dict[str, list[str]]:
        domains: dict[str, list[str]] = {}
        for key, values in run.variant_domains.items():
            canonical = run.key_map.get(key, key)
            if is_column_key(canonical):
                domains.setdefault(canonical, values)
        return domains

    @staticmethod
    def _register_discovered(
        uow: IngestUnitOfWork,
        family: Family,
        wanted: Sequence[str],
        run: IngestRun,
    ) -> Family:
        declared = set(family.attributes)
        new_allowed = tuple(k for k in wanted if k not in family.allowed_keys and k not in declared)
        new_variants = tuple(k for k in run.variant_domains if k not in family.variant_keys)
        if not new_allowed and not new_variants:
            return family
        updated = family.with_discovered(allowed=new_allowed, variants=new_variants)
        uow.repositories.families.save(updated)
        run.new_variant_keys = list(new_variants)
        return updated

    @staticmethod
    def _schedule_backfill(run: IngestRun, context: PipelineContext) -> None:
        if not run.new_variant_keys:
            return
        context.caches.families.invalidate()
        keys = tuple(run.new_variant_keys)
        table = run.table
        columns = dict(run.columns)

        def task() -> None:
            # the template is only known once identifier synthesis ran
            if run.template is None:
                log.info("No template for %s, skipping variant backfill", table)
                return
            backfill_variant_keys(
                context.services.uow_factory,
                table=table,
                template=run.template,
                keys=keys,
                columns=columns,
            )

        run.post_commit.append(("variant_backfill", task))

    @staticmethod
    def _not_ready(run: IngestRun, exc: Exception) -> None:
        run.schema_ready = False
        run.warn("schema_not_ready")
        log.warning("Schema for %s not ready in run %s: %s", run.table, run.run_id, exc)
