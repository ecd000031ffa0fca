"""Port for the external, untrusted extraction oracle."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from catalogist.domain.model import (
        Family,
        FamilyGuess,
        KeyCanonicalization,
        OracleExtraction,
        OrderingGuess,
        TemplateGuess,
    )


@runtime_checkable
class ExtractionOracle(Protocol):
    """Best-effort document-to-structure service.

    Every method may raise ``OracleUnavailableError`` (including for malformed
    answers). Callers treat that, and timeouts, as "no answer".
    """

    def classify_family(self, text: str, families: Sequence[str]) -> FamilyGuess | None: ...

    def extract_fields(self, text: str, family: Family) -> OracleExtraction: ...

    def extract_ordering(self, text: str, family: Family) -> OrderingGuess | None: ...

    def canonicalize_keys(
        self,
        keys: Sequence[str],
        vocabulary: Sequence[str],
        *,
        family: Family,
    ) -> list[KeyCanonicalization]: ...

    def infer_template(
        self,
        text: str,
        examples: Sequence[dict[str, object]],
        *,
        family: Family,
    ) -> TemplateGuess | None: ...


__all__ = ["ExtractionOracle"]
