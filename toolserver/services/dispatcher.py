from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..core.errors import ToolExecutionError
from ..schemas import ToolCallResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


class InvocationDispatcher:
    """Resolve a tool by name, validate its arguments and normalize the outcome.

    ``dispatch`` never raises for unknown tools, bad arguments or handler
    failures: every call yields exactly one ``ToolCallResult``.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def dispatch(self, tool_name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolCallResult:
        spec = self._registry.get(tool_name)
        if spec is None:
            logger.info("Rejected call to unknown tool %r", tool_name)
            return ToolCallResult.error(f"unknown tool: {tool_name}")

        handler = spec.handler
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            return ToolCallResult.error(
                f"{handler.error_prefix}: invalid arguments: expected an object, got {type(arguments).__name__}"
            )

        try:
            params = spec.input_model.model_validate(dict(arguments))
        except ValidationError as exc:
            return ToolCallResult.error(
                f"{handler.error_prefix}: invalid arguments: {_format_validation_error(exc)}"
            )

        logger.info("Executing tool %s with arguments=%s", tool_name, dict(arguments))
        try:
            result = await handler.run(params)
        except ToolExecutionError as exc:
            result = ToolCallResult.error(f"{handler.error_prefix}: {exc.message}")
        except Exception as exc:
            logger.exception("Tool %s failed unexpectedly", tool_name)
            detail = str(exc) or exc.__class__.__name__
            result = ToolCallResult.error(f"{handler.error_prefix}: {detail}")

        logger.info("Tool %s returned isError=%s", tool_name, result.is_error)
        return result
