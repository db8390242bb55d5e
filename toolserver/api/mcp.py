from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket

from ..core.config import AppConfig
from ..core.dependencies import get_app_config, get_dispatcher
from ..services.dispatcher import InvocationDispatcher
from ..services.session import ProtocolSession
from ..services.transports import WebSocketTransport

router = APIRouter(tags=["mcp"])

logger = logging.getLogger(__name__)


@router.websocket("/mcp")
async def mcp_socket(
    websocket: WebSocket,
    dispatcher: InvocationDispatcher = Depends(get_dispatcher),
    app_config: AppConfig = Depends(get_app_config),
):
    await websocket.accept()
    session = ProtocolSession(
        WebSocketTransport(websocket),
        dispatcher,
        server_name=app_config.server.name,
        server_version=app_config.server.version,
    )
    logger.info("WebSocket connection established (session=%s)", session.session_id)
    await session.run()
