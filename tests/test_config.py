from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from toolserver.core.config import DEFAULT_CONFIG_PATH, ConfigLoaderError, load_app_config
from toolserver.core.dependencies import get_app_config, get_memory_store, get_tool_registry, reset_dependencies
from toolserver.core.logging import configure_logging
from toolserver.services.config_loader import create_config_service


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in ("OPENWEATHER_API_KEY", "PORT", "MCP_WS_PORT", "LOG_LEVEL", "TOOLSERVER_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    reset_dependencies()
    yield
    reset_dependencies()


def test_shipped_config_file_loads() -> None:
    config = load_app_config(DEFAULT_CONFIG_PATH)
    assert config.server.websocket_port == 3001
    assert config.http.max_body_chars == 1000
    assert config.weather.api_key is None


def test_missing_file_falls_back_to_defaults(tmp_path: Path) -> None:
    config = load_app_config(tmp_path / "absent.json")
    assert config.server.name == "ai-api-server"
    assert config.server.http_port == 3000


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "server.json"
    path.write_text(json.dumps({"server": {"name": "custom"}, "logging": {"level": "INFO"}}), "utf-8")
    monkeypatch.setenv("OPENWEATHER_API_KEY", " abc123 ")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("MCP_WS_PORT", "9090")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_app_config(path)

    assert config.server.name == "custom"
    assert config.weather.api_key == "abc123"
    assert config.server.http_port == 8080
    assert config.server.websocket_port == 9090
    assert config.logging.level == "DEBUG"


def test_config_file_from_environment(monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "alt.json"
    path.write_text(json.dumps({"http": {"max_body_chars": 50}}), "utf-8")
    monkeypatch.setenv("TOOLSERVER_CONFIG_FILE", str(path))
    assert get_app_config().http.max_body_chars == 50


def test_invalid_json_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", "utf-8")
    with pytest.raises(ConfigLoaderError):
        load_app_config(path)


def test_invalid_values_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "ports.json"
    path.write_text(json.dumps({"server": {"websocket_port": 0}}), "utf-8")
    with pytest.raises(ConfigLoaderError):
        load_app_config(path)


def test_non_numeric_port_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MCP_WS_PORT", "ws")
    with pytest.raises(ConfigLoaderError):
        load_app_config(tmp_path / "absent.json")


def test_config_service_caches_until_reloaded(tmp_path: Path) -> None:
    path = tmp_path / "server.json"
    path.write_text(json.dumps({"server": {"name": "first"}}), "utf-8")
    service = create_config_service(path)
    assert service.get().server.name == "first"

    path.write_text(json.dumps({"server": {"name": "second"}}), "utf-8")
    assert service.get().server.name == "first"
    assert service.load().server.name == "second"


def test_singletons_are_shared_until_reset() -> None:
    assert get_memory_store() is get_memory_store()
    registry = get_tool_registry()
    assert registry is get_tool_registry()
    reset_dependencies()
    assert get_tool_registry() is not registry


def test_configure_logging_writes_to_given_stream() -> None:
    stream = io.StringIO()
    configure_logging("warning", stream=stream)
    try:
        logging.getLogger("toolserver.test").warning("visible")
        logging.getLogger("toolserver.test").info("hidden")
    finally:
        configure_logging("INFO")
    output = stream.getvalue()
    assert "WARNING toolserver.test - visible" in output
    assert "hidden" not in output
