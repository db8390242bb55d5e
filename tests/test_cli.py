from __future__ import annotations

from typing import Any, Dict, List

import pytest

import toolserver.__main__ as cli
from toolserver.core.config import AppConfig, ServerConfig
from toolserver.core.dependencies import reset_dependencies


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in ("OPENWEATHER_API_KEY", "PORT", "MCP_WS_PORT", "LOG_LEVEL", "TOOLSERVER_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    reset_dependencies()
    yield
    reset_dependencies()


def test_listen_ports_binds_http_and_websocket_ports() -> None:
    assert cli.listen_ports(AppConfig()) == [3000, 3001]
    assert cli.listen_ports(AppConfig(), 4001) == [3000, 4001]


def test_listen_ports_collapses_a_shared_port() -> None:
    config = AppConfig(server=ServerConfig(http_port=8000, websocket_port=8000))
    assert cli.listen_ports(config) == [8000]


def _capture_serve(monkeypatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    async def fake_serve_network(host: str, ports: List[int], *, log_level: str = "info") -> None:
        calls.append({"host": host, "ports": ports, "log_level": log_level})

    monkeypatch.setattr(cli, "serve_network", fake_serve_network)
    return calls


def test_websocket_mode_serves_both_configured_ports(monkeypatch) -> None:
    calls = _capture_serve(monkeypatch)
    monkeypatch.setenv("PORT", "8080")

    assert cli.main(["websocket", "9001", "--host", "127.0.0.1"]) == 0
    assert calls == [{"host": "127.0.0.1", "ports": [8080, 9001], "log_level": "info"}]


def test_websocket_mode_uses_config_ports_by_default(monkeypatch) -> None:
    calls = _capture_serve(monkeypatch)
    monkeypatch.setenv("MCP_WS_PORT", "9100")

    assert cli.main(["websocket"]) == 0
    assert calls[0]["ports"] == [3000, 9100]
    assert calls[0]["host"] == "0.0.0.0"


def test_bad_configuration_exits_with_status_2(monkeypatch) -> None:
    _capture_serve(monkeypatch)
    monkeypatch.setenv("PORT", "eighty")
    assert cli.main(["websocket"]) == 2
