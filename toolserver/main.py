from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import config as config_router, mcp, tools
from .core.dependencies import get_app_config, get_tool_registry
from .services.registry import ToolRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_context(app):  # type: ignore[unused-argument]
    logger.info("Starting up application; loading configuration")
    app_config = get_app_config()
    registry = get_tool_registry()
    logger.info(
        "Serving %d tools (%s) as %s %s",
        len(registry),
        ", ".join(registry.names()),
        app_config.server.name,
        app_config.server.version,
    )
    yield
    logger.info("Application shutdown complete")


app = FastAPI(
    title="AI Tool Server",
    version="1.0.0",
    lifespan=lifespan_context,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(config_router.router)
app.include_router(mcp.router)
app.include_router(tools.router)


@app.get("/health")
async def health(registry: ToolRegistry = Depends(get_tool_registry)):
    return {"status": "ok", "tools": registry.names()}
