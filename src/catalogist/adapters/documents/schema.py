"""Pydantic models describing the layout parser service payload."""

from __future__ import annotations

from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParserBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TablePayload(ParserBaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value: object) -> object:
        if isinstance(value, list):
            return ["" if cell is None else str(cell).strip() for cell in cast(list[object], value)]
        return value

    @field_validator("rows", mode="before")
    @classmethod
    def _stringify_cells(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        rows: list[list[str]] = []
        for row in cast(list[object], value):
            if isinstance(row, list):
                cells = cast(list[object], row)
                rows.append(["" if cell is None else str(cell).strip() for cell in cells])
        return rows


class ParseResponse(ParserBaseModel):
    text: str = ""
    tables: list[TablePayload] = Field(default_factory=list)
