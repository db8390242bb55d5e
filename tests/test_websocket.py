from __future__ import annotations

from typing import Any, Dict

from toolserver.services.protocol import NOT_INITIALIZED, PROTOCOL_VERSION


def _request(msg_id: int, method: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def _call(msg_id: int, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    return _request(msg_id, "tools/call", {"name": name, "arguments": arguments})


def _handshake(ws) -> Dict[str, Any]:
    ws.send_json(_request(1, "initialize", {"protocolVersion": PROTOCOL_VERSION}))
    response = ws.receive_json()
    ws.send_json({"jsonrpc": "2.0", "method": "notifications/initialized"})
    return response


def test_websocket_session_lists_and_calls_tools(client) -> None:
    with client.websocket_connect("/mcp") as ws:
        init = _handshake(ws)
        assert init["id"] == 1
        assert init["result"]["serverInfo"]["name"] == "ai-api-server"

        ws.send_json(_request(2, "tools/list"))
        listed = ws.receive_json()
        assert [tool["name"] for tool in listed["result"]["tools"]] == [
            "weather",
            "calculator",
            "urlFetch",
            "memory",
        ]

        ws.send_json(_call(3, "calculator", {"expression": "(2+3)*4"}))
        called = ws.receive_json()
        assert called["id"] == 3
        assert called["result"]["content"][0]["text"] == "Result: (2+3)*4 = 20"


def test_websocket_requires_initialize(client) -> None:
    with client.websocket_connect("/mcp") as ws:
        ws.send_json(_request(1, "tools/list"))
        response = ws.receive_json()
        assert response["error"]["code"] == NOT_INITIALIZED


def test_websocket_malformed_frame_is_dropped(client) -> None:
    with client.websocket_connect("/mcp") as ws:
        ws.send_text("this is not json")
        ws.send_json(_request(7, "ping"))
        response = ws.receive_json()
        # no reply was produced for the malformed frame
        assert response == {"jsonrpc": "2.0", "id": 7, "result": {}}


def test_concurrent_sessions_share_memory(client) -> None:
    with client.websocket_connect("/mcp") as first, client.websocket_connect("/mcp") as second:
        _handshake(first)
        _handshake(second)

        first.send_json(_call(2, "memory", {"action": "save", "key": "alpha", "value": "from-first"}))
        second.send_json(_call(2, "memory", {"action": "save", "key": "beta", "value": "from-second"}))
        assert first.receive_json()["result"]["content"][0]["text"] == "Saved: alpha = from-first"
        assert second.receive_json()["result"]["content"][0]["text"] == "Saved: beta = from-second"

        first.send_json(_call(3, "memory", {"action": "get", "key": "beta"}))
        assert first.receive_json()["result"]["content"][0]["text"] == "Retrieved: beta = from-second"

        second.send_json(_call(3, "memory", {"action": "get", "key": "alpha"}))
        assert second.receive_json()["result"]["content"][0]["text"] == "Retrieved: alpha = from-first"


def test_same_key_from_two_sessions_keeps_one_value(client, memory_store) -> None:
    with client.websocket_connect("/mcp") as first, client.websocket_connect("/mcp") as second:
        _handshake(first)
        _handshake(second)

        first.send_json(_call(2, "memory", {"action": "save", "key": "shared", "value": "one"}))
        second.send_json(_call(2, "memory", {"action": "save", "key": "shared", "value": "two"}))
        first.receive_json()
        second.receive_json()

    assert memory_store.get("shared") in ("one", "two")
    assert memory_store.keys() == ["shared"]


def test_disconnect_of_one_session_leaves_others_running(client) -> None:
    with client.websocket_connect("/mcp") as survivor:
        _handshake(survivor)

        with client.websocket_connect("/mcp") as leaving:
            _handshake(leaving)
            leaving.send_json(_request(2, "ping"))
            leaving.receive_json()

        survivor.send_json(_call(2, "calculator", {"expression": "10/4"}))
        assert survivor.receive_json()["result"]["content"][0]["text"] == "Result: 10/4 = 2.5"
