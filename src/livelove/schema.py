from __future__ import annotations

import json
from typing import Any, Dict, List, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> JSONObject:
        return self.model_dump(by_alias=True)


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


class VarsBatch(BaseModel):
    variables: Dict[str, str] = {}

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        # an empty name would match at every word boundary
        return {
            str(name): _render_value(item) for name, item in value.items() if str(name)
        }


class VarsUpdate(BaseModel):
    uri: str
    updates: List[VarsBatch] = []


class ViewerWindow(BaseModel):
    enabled: bool
    window_size: int = Field(default=5, ge=0)

    @field_validator("window_size", mode="before")
    @classmethod
    def _default_when_null(cls, value: Any) -> Any:
        return 5 if value is None else value


class EditorCommand(BaseModel):
    command: str


class ReplaceSelection(BaseModel):
    text: str


InboundMessage: TypeAlias = VarsUpdate | ViewerWindow | EditorCommand | ReplaceSelection


class AssetUpdate(BaseModel):
    uri: str
    text: str


class SelectionDTO(_CamelModel):
    start_line: int = 0
    start_char: int = 0
    end_line: int = 0
    end_char: int = 0


class Viewport(_CamelModel):
    uri: str
    current_line: int = 0
    selection: SelectionDTO = SelectionDTO()
    language: str = ""


class TokenDTO(_CamelModel):
    text: str
    token_type: str


class LineDTO(_CamelModel):
    line_number: int
    text: str
    tokens: List[TokenDTO] = []
    is_current: bool = False
    is_selected: bool = False


class ViewerState(_CamelModel):
    uri: str
    visible_lines: List[LineDTO] = []
    current_line: int
    selection: SelectionDTO
    language: str = ""
