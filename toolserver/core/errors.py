from __future__ import annotations


class ToolServerError(Exception):
    code = "tool_server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ToolExecutionError(ToolServerError):
    """Raised by a tool handler when the invocation cannot produce a result."""

    code = "tool_execution_error"


class UnknownToolError(ToolServerError):
    code = "unknown_tool"

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown tool: {name}")
        self.name = name


class ExpressionError(ToolServerError):
    code = "invalid_expression"


class TransportError(ToolServerError):
    code = "transport_error"
