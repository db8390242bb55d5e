from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from toolserver.core.config import AppConfig
from toolserver.core.dependencies import get_app_config, get_dispatcher, get_tool_registry
from toolserver.services.dispatcher import InvocationDispatcher
from toolserver.services.memory_store import MemoryStore
from toolserver.services.registry import ToolRegistry
from toolserver.services.tools import build_tool_registry


class RecordingUpstream:
    """
    httpx.MockTransport handler serving canned responses by path.

    Every request is recorded so tests can assert on what the tools sent.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, httpx.Response] = {}
        self.requests: List[httpx.Request] = []
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        response = self.routes.get(request.url.path)
        if response is None:
            return httpx.Response(404, text="not found")
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def registry(app_config: AppConfig, memory_store: MemoryStore, upstream: RecordingUpstream) -> ToolRegistry:
    return build_tool_registry(app_config, memory_store, http_transport=upstream.transport)


@pytest.fixture
def dispatcher(registry: ToolRegistry) -> InvocationDispatcher:
    return InvocationDispatcher(registry)


@pytest.fixture
def client(app_config: AppConfig, registry: ToolRegistry, dispatcher: InvocationDispatcher):
    from fastapi.testclient import TestClient

    from toolserver.main import app

    overrides: Dict[Any, Any] = {
        get_app_config: lambda: app_config,
        get_tool_registry: lambda: registry,
        get_dispatcher: lambda: dispatcher,
    }
    app.dependency_overrides.update(overrides)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
