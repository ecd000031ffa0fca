"""Identifier synthesis: render catalog identifiers from a template and variant domains."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogist.domain.errors import StoreError
from catalogist.domain.identifiers import appears_verbatim, normalize_identifier
from catalogist.domain.ingest_pipeline.schema_negotiation import scope_key
from catalogist.domain.keys import normalize_key
from catalogist.domain.model import (
    CandidateRecord,
    DocType,
    IdentifierSource,
    RunStatus,
    SkipReason,
)
from catalogist.domain.ports import StoredTemplate
from catalogist.domain.templates import IdentifierTemplate, TemplateSyntaxError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext

log = getLogger(__name__)

MAX_TEMPLATE_EXAMPLES: Final[int] = 20
IDENTITY_FIELDS: Final[frozenset[str]] = frozenset({"series", "brand"})


def field_keys(template: IdentifierTemplate, key_map: Mapping[str, str]) -> dict[str, str]:
    """Map each placeholder to the attribute key that feeds it."""

    resolved: dict[str, str] = {}
    for name in template.fields:
        key = normalize_key(name)
        resolved[name] = key if key in IDENTITY_FIELDS else key_map.get(key, key)
    return resolved


def template_values(record: CandidateRecord, fields: Mapping[str, str]) -> dict[str, object]:
    values: dict[str, object] = {}
    for name, key in fields.items():
        if key == "series":
            values[name] = record.series
        elif key == "brand":
            values[name] = record.brand
        else:
            values[name] = record.attributes.get(key)
    return values


def expand_variants(
    domains: Mapping[str, Sequence[str]],
    keys: Iterable[str],
    *,
    limit: int,
) -> tuple[list[dict[str, str]], bool]:
    """Cartesian product of the domains of ``keys``, capped at ``limit`` combinations.

    Returns the combinations and whether the cap cut the product short.
    """

    used = [key for key in dict.fromkeys(keys) if domains.get(key)]
    if not used:
        return [], False
    product = itertools.product(*(domains[key] for key in used))
    combinations = [
        dict(zip(used, combo, strict=True)) for combo in itertools.islice(product, limit + 1)
    ]
    truncated = len(combinations) > limit
    return combinations[:limit], truncated


def _absorb(target: CandidateRecord, literal: CandidateRecord) -> None:
    for key, value in literal.attributes.items():
        target.attributes.setdefault(key, value)
    target.sources |= literal.sources
    target.verified_in_doc = target.verified_in_doc or literal.verified_in_doc


def render_identifier(
    record: CandidateRecord,
    template: IdentifierTemplate,
    fields: Mapping[str, str],
    corpus: str,
) -> None:
    """Give ``record`` a synthesized identifier, or reject it.

    The render is kept only when it appears verbatim in the document.
    """

    rendered = template.render(template_values(record, fields))
    if not rendered.resolved:
        record.reject(SkipReason.TEMPLATE_UNRESOLVED, f"missing {', '.join(rendered.missing)}")
        return
    if not appears_verbatim(rendered.value, corpus):
        record.reject(SkipReason.UNVERIFIED_IDENTIFIER, rendered.value)
        return
    record.identifier = rendered.value
    record.identifier_source = IdentifierSource.SYNTHESIZED
    record.verified_in_doc = True


@dataclass(slots=True)
class IdentifierSynthesisPhase:
    name: str = "identifier_synthesis"
    status: RunStatus = RunStatus.SYNTHESIZING_IDENTIFIERS

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        run.template, learned = self._resolve_template(run, context)
        corpus = run.bundle.corpus()

        if run.template is not None:
            fields = field_keys(run.template, run.key_map)
            self._expand(run, context, fields, corpus)
            for record in run.records:
                if record.identifier is None and not record.rejected:
                    render_identifier(record, run.template, fields, corpus)

        self._single_item_fallback(run)
        synthesized = sum(
            1 for r in run.records if r.identifier_source is IdentifierSource.SYNTHESIZED
        )
        if run.template is not None and learned is not None:
            # a learned template is stored only once it verified against the document
            if synthesized:
                self._remember(run, context, run.template, learned)
            else:
                run.warn("template_unverified")
                log.warning(
                    "Run %s: template %s matched nothing in the document, not storing it",
                    run.run_id,
                    run.template.source,
                )
        log.info(
            "Run %s: template %s, %d synthesized identifier(s)",
            run.run_id,
            run.template.source if run.template else None,
            synthesized,
        )

    def _expand(
        self,
        run: IngestRun,
        context: PipelineContext,
        fields: Mapping[str, str],
        corpus: str,
    ) -> None:
        if run.template is None:
            return
        combinations, truncated = expand_variants(
            run.variant_domains,
            fields.values(),
            limit=context.config.max_variant_combinations,
        )
        if not combinations:
            return
        if truncated:
            run.warn("variant_combinations_capped")
            log.warning(
                "Run %s: variant expansion capped at %d combinations",
                run.run_id,
                context.config.max_variant_combinations,
            )

        literal = {
            normalize_identifier(r.identifier): r for r in run.records if r.identifier is not None
        }
        expanded: list[CandidateRecord] = []
        absorbed: set[int] = set()
        for combination in combinations:
            record = CandidateRecord(
                attributes={**run.doc_attributes, **combination},
                brand=run.brand,
                series=run.series,
                display_name=run.display_name,
                doc_type=run.doc_type,
                variant=dict(combination),
            )
            render_identifier(record, run.template, fields, corpus)
            match = (
                literal.get(normalize_identifier(record.identifier)) if record.identifier else None
            )
            if match is not None and id(match) not in absorbed:
                _absorb(record, match)
                absorbed.add(id(match))
                run.merge(match, f"into {record.identifier}")
            expanded.append(record)

        # anonymous rows are subsumed by the expansion
        kept: list[CandidateRecord] = []
        for record in run.records:
            if record.identifier is None:
                run.merge(record, "subsumed by variant expansion")
            elif id(record) not in absorbed:
                kept.append(record)
        run.records = [*expanded, *kept]

    @staticmethod
    def _single_item_fallback(run: IngestRun) -> None:
        if run.doc_type is not DocType.SINGLE:
            return
        literal = [r for r in run.records if r.identifier is not None and not r.rejected]
        if len(literal) != 1:
            return
        target = literal[0]
        remaining: list[CandidateRecord] = []
        for record in run.records:
            if record is not target and record.identifier is None:
                _absorb(target, record)
                run.merge(record, f"into {target.identifier}")
                continue
            remaining.append(record)
        run.records = remaining

    def _resolve_template(
        self,
        run: IngestRun,
        context: PipelineContext,
    ) -> tuple[IdentifierTemplate | None, float | None]:
        """Pick the template: stored, declared, ordering guess, then oracle inference.

        The second item is the confidence of a newly learned template, or ``None``
        when the template was already known.
        """

        family = run.require_family()
        threshold = context.config.template_confidence

        stored = self._stored_template(run, context)
        if stored is not None and (template := _parse(run, stored.template)) is not None:
            return template, None
        if family.identifier_template and (template := _parse(run, family.identifier_template)):
            return template, None

        ordering = run.bundle.ordering
        if run.ordering_template and ordering is not None and ordering.confidence >= threshold:
            if (template := _parse(run, run.ordering_template)) is not None:
                return template, ordering.confidence

        examples = [
            {"identifier": r.identifier, **r.attributes}
            for r in run.records
            if r.identifier is not None
        ][:MAX_TEMPLATE_EXAMPLES]
        guess = context.oracle_call(
            "infer_template",
            lambda: context.services.oracle.infer_template(run.text, examples, family=family),
        )
        if guess is None or guess.confidence < threshold:
            return None, None
        template = _parse(run, guess.template)
        return template, guess.confidence if template is not None else None

    @staticmethod
    def _stored_template(run: IngestRun, context: PipelineContext) -> StoredTemplate | None:
        family = run.require_family()
        scope = scope_key(family.slug, run.brand, run.series)

        def load() -> StoredTemplate | None:
            with context.uow() as uow:
                return uow.repositories.templates.find(family.slug, run.brand, run.series)

        return context.caches.templates.get_or_load(scope, load)

    @staticmethod
    def _remember(
        run: IngestRun,
        context: PipelineContext,
        template: IdentifierTemplate,
        confidence: float,
    ) -> None:
        family = run.require_family()
        scope = scope_key(family.slug, run.brand, run.series)
        try:
            with context.uow() as uow:
                uow.repositories.templates.save(
                    family.slug,
                    template.source,
                    brand=run.brand,
                    series=run.series,
                    confidence=confidence,
                    source="oracle",
                )
                uow.commit()
        except StoreError as exc:
            log.warning("Could not store learned template for %s: %s", scope, exc)
            return
        context.caches.templates.put(scope, StoredTemplate(template.source, confidence, "oracle"))


def _parse(run: IngestRun, source: str) -> IdentifierTemplate | None:
    try:
        template = IdentifierTemplate.parse(source)
    except TemplateSyntaxError as exc:
        run.warn("template_invalid")
        log.warning("Ignoring invalid template %r: %s", source, exc)
        return None
    if not template.fields:
        return None
    return template


__all__ = [
    "IdentifierSynthesisPhase",
    "expand_variants",
    "field_keys",
    "render_identifier",
]
