"""Source documents and the per-run extraction bundle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from catalogist.domain.model.oracle import OracleExtraction, OrderingGuess


@dataclass(frozen=True, slots=True)
class IngestHints:
    family: str | None = None
    brand: str | None = None
    code: str | None = None
    series: str | None = None
    display_name: str | None = None


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """Immutable reference to a document plus caller-supplied hints."""

    ref: str
    hints: IngestHints = field(default_factory=IngestHints)


@dataclass(frozen=True, slots=True)
class ParsedTable:
    """One table from the layout parser: a header row plus body cell text."""

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()

    def column(self, index: int) -> list[str]:
        return [row[index] for row in self.rows if index < len(row)]

    def records(self) -> list[dict[str, str]]:
        return [
            {header: cell for header, cell in zip(self.headers, row, strict=False) if header}
            for row in self.rows
        ]


@dataclass(frozen=True, slots=True)
class ParsedDocument:
    text: str = ""
    tables: tuple[ParsedTable, ...] = ()


@dataclass(slots=True)
class ExtractionBundle:
    """Ephemeral aggregate of everything extracted for one run. Never persisted."""

    text: str = ""
    tables: list[ParsedTable] = field(default_factory=list[ParsedTable])
    oracle: OracleExtraction | None = None
    ordering: OrderingGuess | None = None

    @classmethod
    def from_parsed(cls, parsed: ParsedDocument) -> ExtractionBundle:
        return cls(text=parsed.text, tables=list(parsed.tables))

    def corpus(self) -> str:
        """Raw text plus every table cell: the literal content of the document."""

        lines = [self.text]
        for table in self.tables:
            lines.append(" | ".join(table.headers))
            lines.extend(" | ".join(row) for row in table.rows)
        return "\n".join(line for line in lines if line)
