from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ..core.dependencies import get_dispatcher, get_tool_registry
from ..schemas import CalculateRequest, CalculateResponse, ToolCallResponse
from ..services.dispatcher import InvocationDispatcher
from ..services.registry import ToolRegistry

router = APIRouter(prefix="/api", tags=["tools"])

logger = logging.getLogger(__name__)


@router.get("/tools/list", name="list_tools")
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)):
    return {"tools": [spec.to_payload() for spec in registry.list_tools()]}


@router.post("/tools/{tool_name}", response_model=ToolCallResponse)
async def call_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    dispatcher: InvocationDispatcher = Depends(get_dispatcher),
):
    if tool_name not in dispatcher.registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"unknown tool: {tool_name}")
    result = await dispatcher.dispatch(tool_name, arguments or {})
    return ToolCallResponse(
        tool=tool_name,
        content=[item.model_dump() for item in result.content],
        isError=result.is_error,
        data=result.structured,
    )


@router.get("/weather/{city}", name="get_weather")
async def get_weather(
    city: str,
    country: Optional[str] = None,
    dispatcher: InvocationDispatcher = Depends(get_dispatcher),
):
    arguments: Dict[str, Any] = {"city": city}
    if country:
        arguments["country"] = country
    result = await dispatcher.dispatch("weather", arguments)
    if result.is_error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.text)
    return result.structured


@router.post("/calculator/calculate", response_model=CalculateResponse)
async def calculate(
    payload: CalculateRequest,
    dispatcher: InvocationDispatcher = Depends(get_dispatcher),
):
    result = await dispatcher.dispatch("calculator", {"expression": payload.expression})
    if result.is_error or not result.structured:
        logger.info("Rejected calculation %r: %s", payload.expression, result.text)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.text)
    return CalculateResponse(
        expression=result.structured["expression"],
        result=result.structured["result"],
        timestamp=dt.datetime.now(dt.timezone.utc),
    )
