from __future__ import annotations

import pytest

from catalogist.domain.templates import (
    IdentifierTemplate,
    TemplateSyntaxError,
    has_unresolved,
    stringify,
)

RELAY = "{series}{form|map:1A>1,1C>3}{voltage|pad=2}"


def test_parse_collects_fields_in_order() -> None:
    template = IdentifierTemplate.parse(RELAY)

    assert template.fields == ("series", "form", "voltage")


def test_parse_accepts_double_braces() -> None:
    template = IdentifierTemplate.parse("{{series}}-{{voltage}}")

    assert template.fields == ("series", "voltage")
    assert template.render({"series": "LY2", "voltage": "24"}).value == "LY2-24"


def test_render_applies_transforms() -> None:
    template = IdentifierTemplate.parse(RELAY)

    result = template.render({"series": "G5V", "form": "1c", "voltage": 5})

    assert result.resolved
    assert result.value == "G5V305"


def test_render_reports_missing_fields() -> None:
    template = IdentifierTemplate.parse(RELAY)

    result = template.render({"series": "G5V", "form": "1A", "voltage": None})

    assert not result.resolved
    assert result.missing == ("voltage",)
    assert has_unresolved(result.value)


@pytest.mark.parametrize(
    ("source", "value", "expected"),
    [
        ("{x|upper}", "ab1", "AB1"),
        ("{x|lower}", "AB1", "ab1"),
        ("{x|first}", "NO, NC", "NO"),
        ("{x|digits}", "12 VDC", "12"),
        ("{x|slice=0:2}", "ABCD", "AB"),
        ("{x|slice=2:}", "ABCD", "CD"),
        ("{x|map:NO>A}", "nc", "nc"),
        ("{x|digits|pad=3}", "5 V", "005"),
    ],
)
def test_transforms(source: str, value: str, expected: str) -> None:
    assert IdentifierTemplate.parse(source).render({"x": value}).value == expected


@pytest.mark.parametrize("source", ["{x|bogus}", "{x|pad=wide}"])
def test_invalid_transforms_raise(source: str) -> None:
    with pytest.raises(TemplateSyntaxError):
        IdentifierTemplate.parse(source)


def test_invalid_slice_raises_on_render() -> None:
    template = IdentifierTemplate.parse("{x|slice=a:b}")

    with pytest.raises(TemplateSyntaxError, match="slice"):
        template.render({"x": "ABCD"})


def test_decode_inverts_map_and_padding() -> None:
    template = IdentifierTemplate.parse(RELAY)

    assert template.decode("G5V312") == {"series": "G5V", "form": "1C", "voltage": "12"}
    assert template.decode("G5V105") == {"series": "G5V", "form": "1A", "voltage": "5"}


def test_decode_returns_none_when_identifier_does_not_fit() -> None:
    template = IdentifierTemplate.parse("{series}-{voltage|pad=2}")

    assert template.decode("LY2-24") == {"series": "LY2", "voltage": "24"}
    assert template.decode("LY2_24") is None


def test_stringify() -> None:
    assert stringify(12.0) == "12"
    assert stringify(4.7) == "4.7"
    assert stringify(True) == "1"
    assert stringify(["1A", "1C"]) == "1A"
    assert stringify(None) == ""
    assert stringify("  24 ") == "24"
