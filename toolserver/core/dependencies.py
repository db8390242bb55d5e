from __future__ import annotations

from functools import lru_cache

from ..services.config_loader import ConfigService, create_config_service
from ..services.dispatcher import InvocationDispatcher
from ..services.memory_store import MemoryStore
from ..services.registry import ToolRegistry
from ..services.tools import build_tool_registry
from .config import AppConfig


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    return create_config_service()


def get_app_config() -> AppConfig:
    return get_config_service().get()


@lru_cache(maxsize=1)
def get_memory_store() -> MemoryStore:
    return MemoryStore()


@lru_cache(maxsize=1)
def get_tool_registry() -> ToolRegistry:
    return build_tool_registry(get_app_config(), get_memory_store())


@lru_cache(maxsize=1)
def get_dispatcher() -> InvocationDispatcher:
    return InvocationDispatcher(get_tool_registry())


def reset_dependencies() -> None:
    """Drop cached singletons so the next lookup rebuilds them from configuration."""
    for factory in (get_dispatcher, get_tool_registry, get_memory_store, get_config_service):
        factory.cache_clear()
