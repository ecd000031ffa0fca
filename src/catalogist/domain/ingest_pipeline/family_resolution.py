"""Family resolution phase: pick the target record family for a document."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogist.domain.brands import fold
from catalogist.domain.errors import ClassificationUncertain
from catalogist.domain.model import (
    Family,
    FamilyResolution,
    FamilySource,
    RunStatus,
    slugify_family,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from catalogist.domain.ingest_pipeline.context import IngestRun, PipelineContext
    from catalogist.domain.model import FamilyGuess

log = getLogger(__name__)

TEXT_SAMPLE_CHARS: Final[int] = 4000
BRAND_BONUS: Final[int] = 2
REGISTRY_CACHE_KEY: Final[str] = "registry"


def _keyword_hits(text: str, keyword: str) -> int:
    pattern = re.compile(rf"(?<![0-9a-z]){re.escape(fold(keyword))}(?![0-9a-z])")
    return len(pattern.findall(text))


def score_family(family: Family, text: str, brand_hint: str | None) -> int:
    score = sum(_keyword_hits(text, keyword) for keyword in family.keywords)
    if brand_hint and fold(brand_hint) in {fold(brand) for brand in family.brands}:
        score += BRAND_BONUS
    return score


def guess_family(
    families: Sequence[Family],
    text_sample: str,
    brand_hint: str | None,
) -> Family | None:
    """Ordered keyword/brand heuristics; ties keep registry order."""

    folded = fold(text_sample)
    best: Family | None = None
    best_score = 0
    for family in families:
        score = score_family(family, folded, brand_hint)
        if score > best_score:
            best, best_score = family, score
    return best


def classify_strict(
    *,
    text_sample: str,
    brand_hint: str | None,
    families: Sequence[Family],
    classify: Callable[[Sequence[str]], FamilyGuess | None],
    min_confidence: float = 0.0,
) -> FamilyResolution:
    """Heuristics, then the oracle. Raises ``ClassificationUncertain`` without a signal.

    The oracle picks from the registered slugs only, and its guess must reach
    ``min_confidence``.
    """

    guessed = guess_family(families, text_sample, brand_hint)
    if guessed is not None:
        return FamilyResolution(guessed, FamilySource.HEURISTIC)

    by_slug = {family.slug: family for family in families}
    if not by_slug:
        raise ClassificationUncertain("No registered families to classify against")
    guess = classify(tuple(by_slug))
    if guess is None:
        raise ClassificationUncertain("No heuristic or oracle signal for the document family")
    family = by_slug.get(slugify_family(guess.slug))
    if family is None:
        raise ClassificationUncertain(f"Oracle guessed unregistered family {guess.slug!r}")
    if guess.confidence < min_confidence:
        raise ClassificationUncertain(
            f"Oracle guess {family.slug} at {guess.confidence:.2f} is below {min_confidence:.2f}"
        )
    return FamilyResolution(
        family,
        FamilySource.ORACLE,
        confidence=guess.confidence,
    )


def resolve_family(
    *,
    hint: str | None,
    text_sample: str,
    brand_hint: str | None,
    families: Sequence[Family],
    classify: Callable[[Sequence[str]], FamilyGuess | None],
    default: str,
    min_confidence: float = 0.0,
) -> FamilyResolution:
    """Resolve the family: hint, heuristics, oracle, then default. Never raises."""

    by_slug = {family.slug: family for family in families}

    if hint and slugify_family(hint):
        slug = slugify_family(hint)
        return FamilyResolution(by_slug.get(slug) or Family.default_for(slug), FamilySource.HINT)

    try:
        return classify_strict(
            text_sample=text_sample,
            brand_hint=brand_hint,
            families=families,
            classify=classify,
            min_confidence=min_confidence,
        )
    except ClassificationUncertain as exc:
        log.info("%s, using default family %s", exc, default)

    slug = slugify_family(default)
    return FamilyResolution(by_slug.get(slug) or Family.default_for(slug), FamilySource.DEFAULT)


@dataclass(slots=True)
class FamilyResolutionPhase:
    name: str = "family_resolution"
    status: RunStatus = RunStatus.RESOLVING_FAMILY

    def run(self, run: IngestRun, *, context: PipelineContext) -> None:
        hints = run.document.hints
        families = known_families(context)
        sample = run.text[:TEXT_SAMPLE_CHARS]
        oracle = context.services.oracle

        def classify(slugs: Sequence[str]) -> FamilyGuess | None:
            return context.oracle_call(
                "classify_family", lambda: oracle.classify_family(sample, slugs)
            )

        resolution = resolve_family(
            hint=hints.family,
            text_sample=sample,
            brand_hint=hints.brand,
            families=families,
            classify=classify,
            default=context.config.default_family,
            min_confidence=context.config.classification_confidence,
        )
        if resolution.uncertain:
            run.warn("classification_uncertain")
            log.warning(
                "Run %s: no family signal, falling back to default %s",
                run.run_id,
                resolution.family.slug,
            )

        family = resolution.family
        if family.slug not in {known.slug for known in families}:
            with context.uow() as uow:
                uow.repositories.families.save(family)
                uow.commit()
            context.caches.families.invalidate()
            log.info("Registered family %s -> %s", family.slug, family.table_name)

        run.family = family
        run.family_source = resolution.source
        log.info("Run %s resolved family %s via %s", run.run_id, family.slug, resolution.source)


def known_families(context: PipelineContext) -> tuple[Family, ...]:
    def load() -> tuple[Family, ...]:
        with context.uow() as uow:
            return tuple(uow.repositories.families.list())

    return context.caches.families.get_or_load(REGISTRY_CACHE_KEY, load)
