from .tool import (
    CalculateRequest,
    CalculateResponse,
    CalculatorInput,
    ContentItem,
    MemoryInput,
    TextContent,
    ToolCallResponse,
    ToolCallResult,
    UrlFetchInput,
    WeatherInput,
)

__all__ = [
    "CalculateRequest",
    "CalculateResponse",
    "CalculatorInput",
    "ContentItem",
    "MemoryInput",
    "TextContent",
    "ToolCallResponse",
    "ToolCallResult",
    "UrlFetchInput",
    "WeatherInput",
]
