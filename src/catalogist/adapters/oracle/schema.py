"""Pydantic models describing the extraction oracle's request and response payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _clamp_confidence(value: object) -> object:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return min(max(float(value), 0.0), 1.0)
    return value


class OracleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Requests --------------------------------------------------------------------


class ClassifyRequest(OracleBaseModel):
    text: str
    families: list[str]


class ExtractRequest(OracleBaseModel):
    text: str
    family: str
    attributes: list[str] = Field(default_factory=list)


class CanonicalizeRequest(OracleBaseModel):
    keys: list[str]
    vocabulary: list[str]
    family: str


class TemplateRequest(OracleBaseModel):
    text: str
    examples: list[dict[str, object]]
    family: str


# Responses -------------------------------------------------------------------


class ClassifyResponse(OracleBaseModel):
    family: str | None = None
    confidence: float = 0.0

    _normalize_family = field_validator("family", mode="before")(_blank_to_none)
    _normalize_confidence = field_validator("confidence", mode="before")(_clamp_confidence)


class ExtractResponse(OracleBaseModel):
    fields: dict[str, object] = Field(default_factory=dict)
    codes: list[str] = Field(default_factory=list)
    rows: list[dict[str, object]] = Field(default_factory=list)
    brand: str | None = None
    series: str | None = None

    _normalize_brand = field_validator("brand", "series", mode="before")(_blank_to_none)

    @field_validator("codes", mode="before")
    @classmethod
    def _drop_blank_codes(cls, value: object) -> object:
        if isinstance(value, list):
            items = cast(list[object], value)
            return [str(item).strip() for item in items if item is not None and str(item).strip()]
        return value

    @field_validator("rows", mode="before")
    @classmethod
    def _keep_mapping_rows(cls, value: object) -> object:
        if isinstance(value, list):
            items = cast(list[object], value)
            return [item for item in items if isinstance(item, Mapping)]
        return value


class OrderingResponse(OracleBaseModel):
    variant_keys: list[str] = Field(default_factory=list)
    domains: dict[str, list[str]] = Field(default_factory=dict)
    template: str | None = None
    confidence: float = 0.0

    _normalize_template = field_validator("template", mode="before")(_blank_to_none)
    _normalize_confidence = field_validator("confidence", mode="before")(_clamp_confidence)

    @field_validator("domains", mode="before")
    @classmethod
    def _stringify_domain_values(cls, value: object) -> object:
        if isinstance(value, Mapping):
            mapping = cast(Mapping[str, object], value)
            domains: dict[str, list[str]] = {}
            for key, values in mapping.items():
                if isinstance(values, list):
                    items = cast(list[object], values)
                    domains[str(key)] = [str(item) for item in items if item is not None]
            return domains
        return value

    @property
    def empty(self) -> bool:
        return not self.variant_keys and not self.domains and self.template is None


class KeyMappingPayload(OracleBaseModel):
    key: str
    canonical: str
    confidence: float = 0.0

    _normalize_confidence = field_validator("confidence", mode="before")(_clamp_confidence)


class CanonicalizeResponse(OracleBaseModel):
    mappings: list[KeyMappingPayload] = Field(default_factory=list)


class TemplateResponse(OracleBaseModel):
    template: str | None = None
    confidence: float = 0.0

    _normalize_template = field_validator("template", mode="before")(_blank_to_none)
    _normalize_confidence = field_validator("confidence", mode="before")(_clamp_confidence)


__all__ = [
    "CanonicalizeRequest",
    "CanonicalizeResponse",
    "ClassifyRequest",
    "ClassifyResponse",
    "ExtractRequest",
    "ExtractResponse",
    "KeyMappingPayload",
    "OrderingResponse",
    "TemplateRequest",
    "TemplateResponse",
]
