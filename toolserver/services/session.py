from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Set

from ..core.errors import TransportError
from .dispatcher import InvocationDispatcher
from .protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    NOT_INITIALIZED,
    PROTOCOL_VERSION,
    jsonrpc_error,
    jsonrpc_response,
)
from .transports import Transport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CREATED = "created"
    NEGOTIATED = "negotiated"
    SERVING = "serving"
    CLOSED = "closed"


class ProtocolSession:
    """
    One protocol session bound to exactly one transport.

    Lifecycle is strictly forward: CREATED -> NEGOTIATED (``initialize``) ->
    SERVING (``notifications/initialized`` or the first tool request) ->
    CLOSED (EOF, transport failure or ``shutdown``).

    Every request runs in its own task, so a slow tool call does not hold up
    the next frame; responses are written in completion order.
    """

    def __init__(
        self,
        transport: Transport,
        dispatcher: InvocationDispatcher,
        *,
        server_name: str,
        server_version: str,
        session_id: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.dispatcher = dispatcher
        self.server_name = server_name
        self.server_version = server_version
        self.session_id = session_id or uuid.uuid4().hex
        self.state = SessionState.CREATED
        self.error: Optional[BaseException] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    async def run(self) -> None:
        """Serve messages until the transport closes or the session shuts down."""
        logger.info("Session %s started", self.session_id)
        try:
            while not self.closed:
                message = await self._next_message()
                if message is None:
                    break
                task = asyncio.create_task(self._respond(message))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
            if self.transport.flush_on_eof and not self.closed:
                await self._drain()
        except TransportError as exc:
            logger.error("Session %s transport failure: %s", self.session_id, exc)
            self.error = exc
        finally:
            await self.close(self.transport.close_reason or "input closed")

    async def close(self, reason: Optional[str] = None) -> None:
        if self.closed:
            return
        self.state = SessionState.CLOSED
        current = asyncio.current_task()
        for task in list(self._in_flight):
            if task is not current:
                task.cancel()
        self._in_flight.clear()
        await self.transport.close(reason)
        logger.info("Session %s closed (%s)", self.session_id, reason or "shutdown")

    async def _next_message(self) -> Optional[Any]:
        receive = asyncio.ensure_future(self.transport.receive())
        closed = asyncio.ensure_future(self.transport.wait_closed())
        try:
            await asyncio.wait({receive, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
        if not receive.done():
            receive.cancel()
            return None
        return receive.result()

    async def _drain(self) -> None:
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _respond(self, message: Any) -> None:
        response = await self.handle_message(message)
        if response is None or self.closed:
            return
        try:
            await self.transport.send(response)
        except TransportError as exc:
            logger.error("Session %s could not deliver response: %s", self.session_id, exc)
            self.error = exc
            await self.close(f"send failed: {exc}")
            return
        if self._shutdown_requested(message):
            await self.close("shutdown requested")

    @staticmethod
    def _shutdown_requested(message: Any) -> bool:
        return isinstance(message, dict) and message.get("method") == "shutdown"

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """Route one JSON-RPC message; returns the response or ``None`` for notifications."""
        if self.closed:
            return None
        if not isinstance(message, dict):
            return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

        msg_id = message.get("id")
        if message.get("jsonrpc") != JSONRPC_VERSION:
            return jsonrpc_error(msg_id, INVALID_REQUEST, "Invalid JSON-RPC version")

        method = message.get("method")
        if not isinstance(method, str) or not method:
            return jsonrpc_error(msg_id, INVALID_REQUEST, "Missing method")

        params = message.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return jsonrpc_error(msg_id, INVALID_PARAMS, "Invalid params")

        # Notifications have no id and produce no response
        if "id" not in message:
            self._handle_notification(method)
            return None

        try:
            if method == "initialize":
                return self._handle_initialize(msg_id)
            if method == "ping":
                return jsonrpc_response(msg_id, {})
            if method == "shutdown":
                return jsonrpc_response(msg_id, None)
            if method in ("tools/list", "tools/call"):
                if self.state is SessionState.CREATED:
                    return jsonrpc_error(msg_id, NOT_INITIALIZED, "session not initialized")
                self._advance(SessionState.SERVING)
                if method == "tools/list":
                    return jsonrpc_response(msg_id, self._handle_tools_list())
                return await self._handle_tools_call(msg_id, params)
            return jsonrpc_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")
        except Exception as exc:
            logger.exception("Error handling method %s in session %s", method, self.session_id)
            return jsonrpc_error(msg_id, INTERNAL_ERROR, str(exc) or "Internal error")

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            if self.state is SessionState.NEGOTIATED:
                self._advance(SessionState.SERVING)
            return
        logger.debug("Ignoring notification %s in session %s", method, self.session_id)

    def _handle_initialize(self, msg_id: Any) -> Dict[str, Any]:
        if self.state is not SessionState.CREATED:
            return jsonrpc_error(msg_id, INVALID_REQUEST, "session already initialized")
        self._advance(SessionState.NEGOTIATED)
        return jsonrpc_response(
            msg_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": self.server_name, "version": self.server_version},
            },
        )

    def _handle_tools_list(self) -> Dict[str, Any]:
        return {"tools": [spec.to_payload() for spec in self.dispatcher.registry.list_tools()]}

    async def _handle_tools_call(self, msg_id: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return jsonrpc_error(msg_id, INVALID_PARAMS, "Missing 'name' in tools/call params")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return jsonrpc_error(msg_id, INVALID_PARAMS, "'arguments' must be an object")
        result = await self.dispatcher.dispatch(name, arguments)
        return jsonrpc_response(msg_id, result.to_wire())

    def _advance(self, target: SessionState) -> None:
        order = list(SessionState)
        if order.index(target) > order.index(self.state):
            logger.debug("Session %s: %s -> %s", self.session_id, self.state.value, target.value)
            self.state = target
