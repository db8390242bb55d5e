from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..core.config import AppConfig
from ..core.dependencies import get_app_config, get_tool_registry
from ..services.protocol import PROTOCOL_VERSION
from ..services.registry import ToolRegistry

router = APIRouter(prefix="/config", tags=["config"])


@router.get("", name="get_server_config")
async def get_server_config(
    app_config: AppConfig = Depends(get_app_config),
    registry: ToolRegistry = Depends(get_tool_registry),
) -> Dict[str, Any]:
    """Effective configuration without secrets, plus what the protocol endpoint advertises."""
    payload = app_config.safe_payload
    payload["protocol"] = {
        "version": PROTOCOL_VERSION,
        "tools": registry.names(),
        "weather_source": "openweathermap" if app_config.weather.api_key else "synthetic",
    }
    return payload
