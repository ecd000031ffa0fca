from __future__ import annotations

import json

import httpx
import pytest

from catalogist.adapters.documents import (
    HttpDocumentParser,
    PlainTextDocumentParser,
    detect_tables,
)
from catalogist.adapters.http_resilience import ResilientClient
from catalogist.config import ParserConfig, ResilienceConfig, RetryPolicy
from catalogist.domain.errors import DocumentParseError
from catalogist.domain.model import ParsedTable


def _http_parser(response: httpx.Response, requests: list[httpx.Request]) -> HttpDocumentParser:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response

    resilience = ResilienceConfig(
        name="parser",
        base_url="http://parser.test",
        retry=RetryPolicy(total=0),
        cache=None,
    )
    return HttpDocumentParser(
        config=ParserConfig(base_url="http://parser.test", resilience=resilience),
        client_factory=lambda cfg: ResilientClient(cfg, transport=httpx.MockTransport(handler)),
    )


def test_detect_tables_reads_pipe_and_tab_blocks() -> None:
    lines = [
        "Ordering information",
        "| Model | Coil voltage | Form |",
        "|-------|--------------|------|",
        "| G5V-1-12 | 12 | 1A |",
        "| G5V-1-24 | 24 |",
        "",
        "Form\tRating",
        "1A\t1 A",
        "lonely | line",
    ]

    tables = detect_tables(lines)

    assert tables[0] == ParsedTable(
        headers=("Model", "Coil voltage", "Form"),
        rows=(("G5V-1-12", "12", "1A"), ("G5V-1-24", "24", "")),
    )
    assert tables[1] == ParsedTable(
        headers=("Form", "Rating"),
        rows=(("1A", "1 A"), ("lonely", "line")),
    )


def test_detect_tables_ignores_single_lines() -> None:
    assert detect_tables(["just | one", "prose"]) == []


def test_plain_text_parser() -> None:
    parsed = PlainTextDocumentParser().parse("sheet.txt", b"Model | Range\nX1-24 | 4 mm\n")

    assert parsed.text.startswith("Model")
    assert parsed.tables == (ParsedTable(headers=("Model", "Range"), rows=(("X1-24", "4 mm"),)),)


def test_plain_text_parser_rejects_binary_content() -> None:
    with pytest.raises(DocumentParseError):
        PlainTextDocumentParser().parse("sheet.pdf", b"%PDF\x00\x01")


def test_http_parser_posts_raw_bytes() -> None:
    requests: list[httpx.Request] = []
    payload = {
        "text": "Relay datasheet",
        "tables": [
            {"headers": ["Model", None], "rows": [["G5V-1-12", 12], "junk"]},
            {"headers": [], "rows": [["orphan"]]},
        ],
    }
    parser = _http_parser(httpx.Response(200, content=json.dumps(payload).encode()), requests)

    parsed = parser.parse("relay.pdf", b"%PDF-bytes")

    assert parsed.text == "Relay datasheet"
    assert parsed.tables == (ParsedTable(headers=("Model", ""), rows=(("G5V-1-12", "12"),)),)
    request = requests[0]
    assert request.url.path == "/parse"
    assert request.headers["X-Document-Ref"] == "relay.pdf"
    assert request.content == b"%PDF-bytes"


@pytest.mark.parametrize(
    "response",
    [httpx.Response(500), httpx.Response(200, content=b"<html>")],
)
def test_http_parser_failures_raise_parse_errors(response: httpx.Response) -> None:
    parser = _http_parser(response, [])

    with pytest.raises(DocumentParseError):
        parser.parse("relay.pdf", b"%PDF-bytes")
