from __future__ import annotations

import pytest

from catalogist.domain.brands import BrandAlias, fold, is_sentinel, normalize_brand

DIRECTORY = [
    BrandAlias(brand="Omron", alias="Omron"),
    BrandAlias(brand="Omron", alias="OMRON Corporation"),
    BrandAlias(brand="TE Connectivity", alias="Tyco Electronics"),
]


def test_fold_collapses_whitespace_and_case() -> None:
    assert fold("  OMRON  Corp ") == "omron corp"


@pytest.mark.parametrize("value", [None, "", "unknown", "N/A", " Generic "])
def test_sentinels(value: str | None) -> None:
    assert is_sentinel(value)


def test_exact_alias_resolves_to_canonical() -> None:
    assert normalize_brand("omron corporation", DIRECTORY) == "Omron"
    assert normalize_brand("tyco electronics", DIRECTORY) == "TE Connectivity"


def test_contained_alias_resolves_to_canonical() -> None:
    assert normalize_brand("OMRON Electronic Components", DIRECTORY) == "Omron"


def test_unknown_brand_keeps_trimmed_literal() -> None:
    assert normalize_brand("  Acme   Sensors ", DIRECTORY) == "Acme Sensors"


def test_missing_brand_is_found_in_document_text() -> None:
    text = "Made in Japan by OMRON. All rights reserved."

    assert normalize_brand(None, DIRECTORY, document_text=text) == "Omron"
    assert normalize_brand("unknown", DIRECTORY, document_text=text) == "Omron"


def test_missing_brand_without_evidence_is_none() -> None:
    assert normalize_brand(None, DIRECTORY, document_text="A generic relay") is None
    assert normalize_brand("n/a", []) is None


def test_alias_must_match_whole_words() -> None:
    assert normalize_brand(None, DIRECTORY, document_text="Omronix clone") is None
