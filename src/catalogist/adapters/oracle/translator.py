"""Translate oracle payloads into domain value objects."""

from __future__ import annotations

from typing import TYPE_CHECKING

from catalogist.domain.model import (
    FamilyGuess,
    KeyCanonicalization,
    OracleExtraction,
    OrderingGuess,
    TemplateGuess,
)

if TYPE_CHECKING:
    from .schema import (
        CanonicalizeResponse,
        ClassifyResponse,
        ExtractResponse,
        OrderingResponse,
        TemplateResponse,
    )


def parse_family_guess(payload: ClassifyResponse) -> FamilyGuess | None:
    if payload.family is None:
        return None
    return FamilyGuess(slug=payload.family, confidence=payload.confidence)


def parse_extraction(payload: ExtractResponse) -> OracleExtraction:
    return OracleExtraction(
        fields=dict(payload.fields),
        codes=list(dict.fromkeys(payload.codes)),
        rows=[dict(row) for row in payload.rows],
        brand=payload.brand,
        series=payload.series,
    )


def parse_ordering(payload: OrderingResponse) -> OrderingGuess | None:
    if payload.empty:
        return None
    return OrderingGuess(
        variant_keys=list(payload.variant_keys),
        domains={key: list(values) for key, values in payload.domains.items()},
        template=payload.template,
        confidence=payload.confidence,
    )


def parse_canonicalizations(payload: CanonicalizeResponse) -> list[KeyCanonicalization]:
    return [
        KeyCanonicalization(key=item.key, canonical=item.canonical, confidence=item.confidence)
        for item in payload.mappings
        if item.key and item.canonical
    ]


def parse_template(payload: TemplateResponse) -> TemplateGuess | None:
    if payload.template is None:
        return None
    return TemplateGuess(template=payload.template, confidence=payload.confidence)
