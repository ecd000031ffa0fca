"""Declarative identifier templates.

A template is literal text with placeholders ``{field|transform|...}`` (the doubled
``{{field}}`` form is accepted too). Supported transforms:

``upper`` / ``lower``
    change case
``pad=N``
    left zero-pad to width ``N``
``first``
    first whitespace, comma or slash delimited token
``digits``
    keep digits only
``map:A>B,C>D``
    value alias map, unmapped values pass through
``slice=a:b``
    substring, either bound optional
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

_PLACEHOLDER = re.compile(r"\{\{?\s*([^{}|]+?)\s*((?:\|[^{}]*)?)\}\}?")
_FIRST_TOKEN = re.compile(r"[\s,/;]+")


class TemplateSyntaxError(ValueError):
    """Raised when a template contains an unknown or malformed transform."""


@dataclass(frozen=True, slots=True)
class Transform:
    name: str
    argument: str | None = None

    def apply(self, value: str) -> str:
        match self.name:
            case "upper":
                return value.upper()
            case "lower":
                return value.lower()
            case "pad":
                return value.zfill(int(self.argument or "0"))
            case "first":
                parts = [part for part in _FIRST_TOKEN.split(value.strip()) if part]
                return parts[0] if parts else ""
            case "digits":
                return "".join(ch for ch in value if ch.isdigit())
            case "map":
                return self.mapping().get(value.strip().upper(), value)
            case "slice":
                start, stop = self._slice_bounds()
                return value[start:stop]
            case _:
                raise TemplateSyntaxError(f"Unknown transform: {self.name}")

    def mapping(self) -> dict[str, str]:
        pairs: dict[str, str] = {}
        for item in (self.argument or "").split(","):
            source, sep, target = item.partition(">")
            if sep:
                pairs[source.strip().upper()] = target.strip()
        return pairs

    def _slice_bounds(self) -> tuple[int | None, int | None]:
        start, _, stop = (self.argument or "").partition(":")
        try:
            return (int(start) if start.strip() else None, int(stop) if stop.strip() else None)
        except ValueError as exc:
            raise TemplateSyntaxError(f"Invalid slice bounds: {self.argument}") from exc


@dataclass(frozen=True, slots=True)
class Placeholder:
    field: str
    transforms: tuple[Transform, ...] = ()

    def render(self, value: str) -> str:
        for transform in self.transforms:
            value = transform.apply(value)
        return value


@dataclass(frozen=True, slots=True)
class RenderResult:
    value: str
    missing: tuple[str, ...] = ()

    @property
    def resolved(self) -> bool:
        return not self.missing


@dataclass(frozen=True, slots=True)
class IdentifierTemplate:
    source: str
    segments: tuple[str | Placeholder, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, source: str) -> IdentifierTemplate:
        segments: list[str | Placeholder] = []
        cursor = 0
        for match in _PLACEHOLDER.finditer(source):
            if match.start() > cursor:
                segments.append(source[cursor : match.start()])
            segments.append(
                Placeholder(
                    field=match.group(1).strip(),
                    transforms=_parse_transforms(match.group(2)),
                )
            )
            cursor = match.end()
        if cursor < len(source):
            segments.append(source[cursor:])
        return cls(source=source, segments=tuple(segments))

    @property
    def fields(self) -> tuple[str, ...]:
        names = [seg.field for seg in self.segments if isinstance(seg, Placeholder)]
        return tuple(dict.fromkeys(names))

    def render(self, values: Mapping[str, object]) -> RenderResult:
        parts: list[str] = []
        missing: list[str] = []
        for segment in self.segments:
            if isinstance(segment, str):
                parts.append(segment)
                continue
            raw = values.get(segment.field)
            text = stringify(raw)
            if not text:
                missing.append(segment.field)
                parts.append("{" + segment.field + "}")
                continue
            parts.append(segment.render(text))
        return RenderResult(value="".join(parts), missing=tuple(missing))

    def decode(self, identifier: str) -> dict[str, str] | None:
        """Reverse the template against ``identifier``; ``None`` when it does not fit.

        Map transforms are inverted and padded digits unpadded. Other transforms
        are lossy so the captured text is returned as-is.
        """

        pattern_parts: list[str] = []
        for index, segment in enumerate(self.segments):
            if isinstance(segment, str):
                pattern_parts.append(re.escape(segment))
            else:
                pattern_parts.append(f"(?P<f{index}>{_capture_pattern(segment)})")
        match = re.fullmatch("".join(pattern_parts), identifier.strip(), re.IGNORECASE)
        if match is None:
            return None
        decoded: dict[str, str] = {}
        for index, segment in enumerate(self.segments):
            if isinstance(segment, str):
                continue
            captured = match.group(f"f{index}")
            decoded.setdefault(segment.field, _invert(segment, captured))
        return decoded


def _parse_transforms(raw: str) -> tuple[Transform, ...]:
    transforms: list[Transform] = []
    for chunk in raw.split("|"):
        text = chunk.strip()
        if not text:
            continue
        if text.startswith("map:"):
            transforms.append(Transform("map", text[4:]))
            continue
        name, sep, argument = text.partition("=")
        name = name.strip().lower()
        if name not in {"upper", "lower", "pad", "first", "digits", "slice"}:
            raise TemplateSyntaxError(f"Unknown transform: {text}")
        if name == "pad" and not argument.strip().isdigit():
            raise TemplateSyntaxError(f"pad needs a width: {text}")
        transforms.append(Transform(name, argument.strip() if sep else None))
    return tuple(transforms)


def _capture_pattern(placeholder: Placeholder) -> str:
    for transform in placeholder.transforms:
        if transform.name == "map":
            targets = sorted({v for v in transform.mapping().values() if v}, key=len, reverse=True)
            if targets:
                return "|".join(re.escape(target) for target in targets)
        if transform.name == "pad":
            return rf"\d{{{int(transform.argument or '1')},}}?"
        if transform.name == "digits":
            return r"\d+?"
    return r"[A-Za-z0-9.]+?"


def _invert(placeholder: Placeholder, captured: str) -> str:
    value = captured
    for transform in reversed(placeholder.transforms):
        if transform.name == "map":
            reverse = {target.upper(): source for source, target in transform.mapping().items()}
            value = reverse.get(value.upper(), value)
        elif transform.name == "pad":
            value = value.lstrip("0") or "0"
    return value


def stringify(value: object) -> str:
    """Render an attribute value for template substitution (``12.0`` → ``"12"``)."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, (list, tuple)):
        items = [stringify(item) for item in value]
        return items[0] if items else ""
    return str(value).strip()


def has_unresolved(value: str) -> bool:
    return bool(_PLACEHOLDER.search(value))
