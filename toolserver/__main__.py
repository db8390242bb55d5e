"""
Command line entry point.

    python -m toolserver stdio            # one session over stdin/stdout
    python -m toolserver websocket 3001   # HTTP routes on server.http_port, WebSocket sessions on /mcp at 3001
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, TextIO

from .core.config import AppConfig, ConfigLoaderError
from .core.dependencies import get_app_config, get_dispatcher
from .core.logging import configure_logging
from .services.dispatcher import InvocationDispatcher
from .services.session import ProtocolSession
from .services.transports import StdioTransport

logger = logging.getLogger("toolserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolserver", description="Serve tools over stdio or WebSocket.")
    parser.add_argument("mode", nargs="?", default="stdio", choices=["stdio", "websocket"])
    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="WebSocket port (websocket mode); HTTP routes stay on server.http_port",
    )
    parser.add_argument("--host", default=None, help="Bind host (websocket mode)")
    parser.add_argument("--config", default=None, help="Path to a JSON configuration file")
    return parser


async def serve_stdio(
    dispatcher: InvocationDispatcher,
    *,
    server_name: str,
    server_version: str,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> ProtocolSession:
    session = ProtocolSession(
        StdioTransport(stdin=stdin, stdout=stdout),
        dispatcher,
        server_name=server_name,
        server_version=server_version,
    )
    logger.info("Tool server running on stdio")
    await session.run()
    return session


def listen_ports(app_config: AppConfig, websocket_port: Optional[int] = None) -> List[int]:
    """HTTP port first, then the WebSocket port; a shared port is listed once."""
    ports = [app_config.server.http_port]
    socket_port = websocket_port or app_config.server.websocket_port
    if socket_port not in ports:
        ports.append(socket_port)
    return ports


async def serve_network(host: str, ports: List[int], *, log_level: str = "info") -> None:
    """Serve the FastAPI app on every port; stopping one listener stops them all."""
    import uvicorn

    from .main import app

    servers = [uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level)) for port in ports]
    tasks = [asyncio.create_task(server.serve()) for server in servers]
    _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for server in servers:
        server.should_exit = True
    if pending:
        await asyncio.gather(*pending)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.config:
        os.environ["TOOLSERVER_CONFIG_FILE"] = args.config

    try:
        app_config = get_app_config()
    except ConfigLoaderError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    configure_logging(app_config.logging.level)

    if args.mode == "stdio":
        session = asyncio.run(
            serve_stdio(
                get_dispatcher(),
                server_name=app_config.server.name,
                server_version=app_config.server.version,
            )
        )
        if session.error is not None:
            logger.error("Tool server stopped: %s", session.error)
            return 1
        return 0

    ports = listen_ports(app_config, args.port)
    host = args.host or app_config.server.host
    logger.info(
        "Tool server running: HTTP routes on port %d, WebSocket endpoint /mcp on port %d",
        ports[0],
        ports[-1],
    )
    asyncio.run(serve_network(host, ports, log_level=app_config.logging.level.lower()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
