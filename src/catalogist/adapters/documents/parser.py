"""Layout parsers turning raw document bytes into text plus tables."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import ValidationError

from catalogist.adapters.http_resilience import ResilientClient
from catalogist.config import get_parser_config
from catalogist.domain.errors import DocumentParseError
from catalogist.domain.model import ParsedDocument, ParsedTable
from catalogist.domain.ports import DocumentParser

from .schema import ParseResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from catalogist.config import ParserConfig, ResilienceConfig

log = getLogger(__name__)

_SEPARATOR_ROW: Final = re.compile(r"^[\s|:+-]+$")
_TAB_SPLIT: Final = re.compile(r"\t+")


def _split_cells(line: str) -> list[str] | None:
    if "|" in line:
        cells = [cell.strip() for cell in line.strip().strip("|").split("|")]
    elif "\t" in line:
        cells = [cell.strip() for cell in _TAB_SPLIT.split(line.strip())]
    else:
        return None
    return cells if len(cells) >= 2 else None


def _build_table(block: list[list[str]]) -> ParsedTable | None:
    if len(block) < 2:
        return None
    headers, *rows = block
    width = len(headers)
    return ParsedTable(
        headers=tuple(headers),
        rows=tuple(tuple((row + [""] * width)[:width]) for row in rows),
    )


def detect_tables(lines: Iterable[str]) -> list[ParsedTable]:
    """Find runs of pipe- or tab-delimited lines; the first line of a run is its header."""

    tables: list[ParsedTable] = []
    block: list[list[str]] = []
    for line in lines:
        if block and _SEPARATOR_ROW.match(line) and "-" in line:
            continue
        cells = _split_cells(line)
        if cells is None:
            table = _build_table(block)
            if table is not None:
                tables.append(table)
            block = []
            continue
        block.append(cells)
    table = _build_table(block)
    if table is not None:
        tables.append(table)
    return tables


@dataclass(slots=True)
class PlainTextDocumentParser:
    """Parser for text documents: the full text plus any delimited tables found in it."""

    encoding: str = "utf-8"

    def parse(self, ref: str, data: bytes) -> ParsedDocument:
        text = data.decode(self.encoding, errors="replace")
        if "\x00" in text:
            raise DocumentParseError(f"{ref} does not look like a text document")
        tables = detect_tables(text.splitlines())
        log.debug("Parsed %s: %d chars, %d tables", ref, len(text), len(tables))
        return ParsedDocument(text=text, tables=tuple(tables))


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpDocumentParser:
    """Delegates layout parsing to an external service (``POST /parse`` with raw bytes)."""

    config: ParserConfig = field(default_factory=get_parser_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def parse(self, ref: str, data: bytes) -> ParsedDocument:
        payload = asyncio.run(self._parse(ref, data))
        return ParsedDocument(
            text=payload.text,
            tables=tuple(
                ParsedTable(headers=tuple(table.headers), rows=tuple(map(tuple, table.rows)))
                for table in payload.tables
                if table.headers
            ),
        )

    async def _parse(self, ref: str, data: bytes) -> ParseResponse:
        async with self.client_factory(self.config.resilience) as client:
            try:
                response = await client.post(
                    "/parse",
                    content=data,
                    headers={
                        "Content-Type": "application/octet-stream",
                        "X-Document-Ref": ref,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise DocumentParseError(f"Layout parser failed for {ref}: {exc}") from exc
        try:
            return ParseResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise DocumentParseError(f"Malformed layout parser payload for {ref}") from exc


if TYPE_CHECKING:
    _plain_check: DocumentParser = PlainTextDocumentParser()
    _http_check: DocumentParser = HttpDocumentParser()
