from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WeatherInput(BaseModel):
    city: str = Field(..., min_length=1)
    country: Optional[str] = None


class CalculatorInput(BaseModel):
    expression: str


class UrlFetchInput(BaseModel):
    url: str
    method: Literal["GET", "POST"] = "GET"

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class MemoryInput(BaseModel):
    action: str
    key: Optional[str] = None
    value: Optional[str] = None


class ContentItem(BaseModel):
    """One unit of a tool result; ``type`` tells clients how to render it."""

    model_config = ConfigDict(extra="allow")

    type: str


class TextContent(ContentItem):
    type: Literal["text"] = "text"
    text: str


class ToolCallResult(BaseModel):
    content: List[ContentItem]
    is_error: bool = False
    structured: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Machine readable result used by the HTTP routes; never sent over the protocol",
    )

    @classmethod
    def ok(cls, text: str, data: Optional[Dict[str, Any]] = None) -> "ToolCallResult":
        return cls(content=[TextContent(text=text)], structured=data)

    @classmethod
    def error(cls, text: str) -> "ToolCallResult":
        return cls(content=[TextContent(text=text)], is_error=True)

    @property
    def text(self) -> str:
        parts = [getattr(item, "text", "") for item in self.content]
        return "\n".join(part for part in parts if part)

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"content": [item.model_dump() for item in self.content]}
        if self.is_error:
            payload["isError"] = True
        return payload


class ToolCallResponse(BaseModel):
    tool: str
    content: List[Dict[str, Any]]
    isError: bool
    data: Optional[Dict[str, Any]] = None


class CalculateRequest(BaseModel):
    expression: str


class CalculateResponse(BaseModel):
    expression: str
    result: Union[int, float]
    timestamp: dt.datetime
