"""Tunables for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import env_float, env_int, env_list, optional_env

DEFAULT_FAMILY: Final[str] = "generic_component"


@dataclass(frozen=True, slots=True)
class IngestConfig:
    """Thresholds and budgets applied to every ingestion run.

    ``min_attribute_count`` is the floor of distinct populated attributes a record
    needs before it is admitted. It is a heuristic; deployments are expected to
    tune it per catalog.
    """

    min_attribute_count: int = 1
    default_family: str = DEFAULT_FAMILY
    classification_confidence: float = 0.6
    canonicalization_confidence: float = 0.8
    template_confidence: float = 0.7
    oracle_timeout_seconds: float = 30.0
    parser_timeout_seconds: float = 60.0
    store_timeout_seconds: float = 30.0
    run_budget_seconds: float = 900.0
    lock_grace_seconds: float = 60.0
    max_variant_combinations: int = 200
    max_variant_keys: int = 5
    text_prefix_limit: int = 200_000
    cache_ttl_seconds: float = 60.0
    refresh_views: tuple[str, ...] = field(default_factory=tuple)


def get_ingest_config() -> IngestConfig:
    return IngestConfig(
        min_attribute_count=env_int("CATALOGIST_MIN_ATTRIBUTES", 1, minimum=0),
        default_family=optional_env("CATALOGIST_DEFAULT_FAMILY") or DEFAULT_FAMILY,
        classification_confidence=env_float(
            "CATALOGIST_CLASSIFICATION_CONFIDENCE", 0.6, minimum=0.0, maximum=1.0
        ),
        canonicalization_confidence=env_float(
            "CATALOGIST_CANONICALIZATION_CONFIDENCE", 0.8, minimum=0.0, maximum=1.0
        ),
        template_confidence=env_float(
            "CATALOGIST_TEMPLATE_CONFIDENCE", 0.7, minimum=0.0, maximum=1.0
        ),
        oracle_timeout_seconds=env_float("CATALOGIST_ORACLE_TIMEOUT", 30.0, minimum=0.1),
        parser_timeout_seconds=env_float("CATALOGIST_PARSER_TIMEOUT", 60.0, minimum=0.1),
        store_timeout_seconds=env_float("CATALOGIST_STORE_TIMEOUT", 30.0, minimum=0.1),
        run_budget_seconds=env_float("CATALOGIST_RUN_BUDGET", 900.0, minimum=1.0),
        max_variant_combinations=env_int("CATALOGIST_MAX_VARIANTS", 200, minimum=1),
        text_prefix_limit=env_int("CATALOGIST_TEXT_PREFIX_LIMIT", 200_000, minimum=1_000),
        cache_ttl_seconds=env_float("CATALOGIST_CACHE_TTL", 60.0, minimum=0.0),
        refresh_views=env_list("CATALOGIST_REFRESH_VIEWS"),
    )
