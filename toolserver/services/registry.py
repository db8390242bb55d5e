"""
Tool registry shared by every session.

A tool is a ``ToolHandler`` subclass: it declares its name, description, the
JSON schema advertised to clients and the pydantic model arguments are
validated against before ``run`` is awaited.

    class EchoTool(ToolHandler):
        name = "echo"
        description = "Echoes back the input message."
        input_schema = {
            "type": "object",
            "properties": {"message": {"type": "string"}},
            "required": ["message"],
        }
        input_model = EchoInput

        async def run(self, params: EchoInput) -> ToolCallResult:
            return ToolCallResult.ok(params.message)

Registration happens once at startup; ``freeze()`` then makes the registry
read-only, which is what lets concurrent sessions share it without locking.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from ..core.errors import UnknownToolError
from ..schemas import ToolCallResult

logger = logging.getLogger(__name__)


class ToolHandler(ABC):
    """Base class for a tool implementation. The dispatcher handles validation."""

    # Subclasses must set these
    name: str = ""
    description: str = ""
    input_schema: Dict[str, Any] = {}
    input_model: Type[BaseModel] = BaseModel
    error_prefix: str = "Tool error"

    @abstractmethod
    async def run(self, params: Any) -> ToolCallResult:
        """
        Execute the tool with already validated parameters.

        Failures are reported by raising ``ToolExecutionError`` with a human
        readable message; the dispatcher turns it into an error envelope.
        """
        ...


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler

    @classmethod
    def from_handler(cls, handler: ToolHandler) -> "ToolSpec":
        return cls(
            name=handler.name,
            description=handler.description,
            input_schema=handler.input_schema,
            handler=handler,
        )

    @property
    def input_model(self) -> Type[BaseModel]:
        return self.handler.input_model

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}
        self._frozen = False

    def register(self, handler: ToolHandler) -> ToolSpec:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen; register tools before serving")
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        if handler.name in self._tools:
            raise ValueError(f"Tool '{handler.name}' is already registered")
        spec = ToolSpec.from_handler(handler)
        self._tools[spec.name] = spec
        logger.debug("Registered tool: %s", spec.name)
        return spec

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def list_tools(self) -> List[ToolSpec]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def get_handler(self, name: str) -> ToolHandler:
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolError(name)
        return spec.handler

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
