"""
Transport adapters for protocol sessions.

A transport only frames and moves JSON messages; protocol routing lives in
``ProtocolSession``. Each transport exposes:

- ``receive()``: next decoded message, or ``None`` once the peer is gone
- ``send(message)``: write one message as one frame
- ``close(reason)`` / ``wait_closed()``: the lifecycle channel

Currently implements:
  - StdioTransport: newline-delimited JSON over stdin/stdout (one session per process)
  - WebSocketTransport: one JSON message per WebSocket frame (one session per connection)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TextIO

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from ..core.errors import TransportError
from .protocol import PARSE_ERROR, jsonrpc_error

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract message transport for one protocol session."""

    # Whether the output side stays usable after the input side reaches EOF,
    # i.e. whether in-flight requests should still be answered.
    flush_on_eof: bool = False

    def __init__(self) -> None:
        self._closed = asyncio.Event()
        self._released = False
        self.close_reason: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def wait_closed(self) -> Optional[str]:
        await self._closed.wait()
        return self.close_reason

    @abstractmethod
    async def receive(self) -> Optional[Any]:
        """Return the next decoded message, or ``None`` when the input is closed."""
        ...

    @abstractmethod
    async def send(self, message: Dict[str, Any]) -> None:
        """Write one message. Raises ``TransportError`` when the peer is unreachable."""
        ...

    @property
    def released(self) -> bool:
        return self._released

    async def close(self, reason: Optional[str] = None) -> None:
        # The input side may already have marked the transport closed
        # (peer disconnect, failed write); resources are still released once.
        self._mark_closed(reason)
        if self._released:
            return
        self._released = True
        await self._release()

    def _mark_closed(self, reason: Optional[str]) -> None:
        if not self.closed:
            self.close_reason = reason
            self._closed.set()

    async def _release(self) -> None:
        """Free transport resources once the session is done with it."""


class StdioTransport(Transport):
    """
    JSON-RPC over stdin/stdout, one message per line.

    Only protocol frames are written to ``stdout``; diagnostics belong on
    stderr. Blocking reads run in a worker thread so tool calls awaiting
    network I/O keep making progress while the next line is awaited.
    """

    flush_on_eof = True

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        super().__init__()
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._write_lock = asyncio.Lock()

    async def receive(self) -> Optional[Any]:
        while not self.closed:
            try:
                line = await asyncio.to_thread(self._stdin.readline)
            except (OSError, ValueError) as exc:
                raise TransportError(f"failed to read from stdin: {exc}") from exc
            if line == "":
                return None  # EOF
            line = line.strip()
            if not line:
                continue
            try:
                return json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Malformed stdin frame dropped: %s", exc)
                await self.send(jsonrpc_error(None, PARSE_ERROR, f"Parse error: {exc}"))
        return None

    async def send(self, message: Dict[str, Any]) -> None:
        # Always write exactly one JSON object per line
        data = json.dumps(message) + "\n"
        async with self._write_lock:
            try:
                self._stdout.write(data)
                self._stdout.flush()
            except (OSError, ValueError) as exc:
                raise TransportError(f"failed to write to stdout: {exc}") from exc


class WebSocketTransport(Transport):
    """
    One JSON message per WebSocket frame.

    Outbound messages are queued and written by a single writer task, so
    responses completing concurrently never interleave on the socket.
    Frames that are not valid JSON are logged and dropped; the connection
    stays open.
    """

    def __init__(self, websocket: WebSocket, *, drain_timeout: float = 5.0) -> None:
        super().__init__()
        self._websocket = websocket
        self._outbound: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._drain_timeout = drain_timeout

    @property
    def pending(self) -> int:
        """Number of outbound messages not yet written to the socket."""
        return self._outbound.qsize()

    async def receive(self) -> Optional[Any]:
        while not self.closed:
            message = await self._websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket client disconnected (code=%s)", message.get("code"))
                self._mark_closed("client disconnected")
                return None
            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            if raw is None:
                continue
            try:
                return json.loads(raw)
            except json.JSONDecodeError as exc:
                logger.warning("WebSocket message parse error: %s", exc)
        return None

    async def send(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise TransportError("WebSocket transport is closed")
        if self._writer is None:
            self._writer = asyncio.create_task(self._pump_outbound())
        await self._outbound.put(message)

    async def _pump_outbound(self) -> None:
        while True:
            message = await self._outbound.get()
            try:
                if message is None:
                    return
                await self._websocket.send_text(json.dumps(message))
            except Exception as exc:
                logger.warning("WebSocket send failed; closing transport: %s", exc)
                self._mark_closed(f"send failed: {exc}")
                return
            finally:
                self._outbound.task_done()

    async def _release(self) -> None:
        if self._writer is not None and not self._writer.done():
            await self._outbound.put(None)
            try:
                await asyncio.wait_for(self._writer, timeout=self._drain_timeout)
            except asyncio.TimeoutError:
                logger.warning("Dropped %d pending WebSocket messages on close", self.pending)
        if (
            self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await self._websocket.close()
            except Exception:
                logger.debug("Failed to close WebSocket cleanly", exc_info=True)
