from __future__ import annotations

import datetime as dt
import logging
import math
import random
import re
from typing import Any, Dict, Optional

import httpx

from ..core.config import AppConfig, HTTPClientConfig, WeatherConfig
from ..core.errors import ExpressionError, ToolExecutionError
from ..schemas import CalculatorInput, MemoryInput, ToolCallResult, UrlFetchInput, WeatherInput
from .expression import evaluate, format_number
from .memory_store import MemoryStore
from .registry import ToolHandler, ToolRegistry

logger = logging.getLogger(__name__)

_DISALLOWED_EXPRESSION_CHARS = re.compile(r"[^0-9+\-*/().\s]")


def _describe_error(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def sanitize_expression(expression: str) -> str:
    """Drop every character that is not a digit, ``+-*/().`` or whitespace."""
    return _DISALLOWED_EXPRESSION_CHARS.sub("", expression).strip()


class WeatherTool(ToolHandler):
    name = "weather"
    description = "Get the current weather for the given city"
    input_schema = {
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City name"},
            "country": {"type": "string", "description": "Country code, optional (e.g. JP, US, GB)"},
        },
        "required": ["city"],
    }
    input_model = WeatherInput
    error_prefix = "Failed to fetch weather"

    _CONDITIONS = ("Sunny", "Cloudy", "Rainy", "Snowy")

    def __init__(
        self,
        config: WeatherConfig,
        *,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._rng = rng or random.Random()

    async def run(self, params: WeatherInput) -> ToolCallResult:
        location = f"{params.city}, {params.country}" if params.country else params.city
        if self.config.api_key:
            reading = await self._fetch_reading(params, location)
        else:
            reading = self._synthetic_reading(location)
        return ToolCallResult.ok(self._summarize(reading), reading)

    def _synthetic_reading(self, location: str) -> Dict[str, Any]:
        return {
            "location": location,
            "temperature": self._rng.randint(5, 34),
            "condition": self._rng.choice(self._CONDITIONS),
            "humidity": self._rng.randint(0, 99),
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "source": "synthetic",
        }

    async def _fetch_reading(self, params: WeatherInput, location: str) -> Dict[str, Any]:
        query = f"{params.city},{params.country}" if params.country else params.city
        request_params = {
            "q": query,
            "appid": self.config.api_key,
            "units": self.config.units,
            "lang": self.config.lang,
        }
        timeout = httpx.Timeout(self.timeout_seconds)
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                transport=self._transport,
                headers={"User-Agent": self.config.user_agent},
            ) as client:
                response = await client.get(self.config.base_url, params=request_params)
        except httpx.HTTPError as exc:
            logger.warning("Weather provider request for '%s' failed: %s", query, exc)
            raise ToolExecutionError(_describe_error(exc)) from exc

        if response.status_code == 404:
            raise ToolExecutionError(f"city not found: {params.city}")
        if response.status_code == 401:
            raise ToolExecutionError("invalid credential for the weather provider")
        if not response.is_success:
            raise ToolExecutionError(f"weather provider returned status {response.status_code}")

        try:
            data = response.json()
            return {
                "location": location,
                "city": data["name"],
                "country": data["sys"]["country"],
                "temperature": round(data["main"]["temp"]),
                "feels_like": round(data["main"]["feels_like"]),
                "condition": data["weather"][0]["description"],
                "humidity": data["main"]["humidity"],
                "wind_kmh": round(data.get("wind", {}).get("speed", 0) * 3.6),
                "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
                "source": "openweathermap",
            }
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ToolExecutionError(
                f"unexpected response from weather provider: {_describe_error(exc)}"
            ) from exc

    @staticmethod
    def _summarize(reading: Dict[str, Any]) -> str:
        lines = [f"Weather for {reading['location']}:"]
        if "feels_like" in reading:
            lines.append(f"Temperature: {reading['temperature']}°C (feels like {reading['feels_like']}°C)")
        else:
            lines.append(f"Temperature: {reading['temperature']}°C")
        lines.append(f"Condition: {reading['condition']}")
        lines.append(f"Humidity: {reading['humidity']}%")
        if "wind_kmh" in reading:
            lines.append(f"Wind: {reading['wind_kmh']} km/h")
        lines.append(f"Observed at: {reading['timestamp']}")
        return "\n".join(lines)


class CalculatorTool(ToolHandler):
    name = "calculator"
    description = "Evaluate an arithmetic expression using + - * / and parentheses"
    input_schema = {
        "type": "object",
        "properties": {
            "expression": {"type": "string", "description": "Expression, e.g. 5+3, 10*2, (2+3)*4"},
        },
        "required": ["expression"],
    }
    input_model = CalculatorInput
    error_prefix = "Calculation error"

    def calculate(self, expression: str) -> Dict[str, Any]:
        sanitized = sanitize_expression(expression)
        if not sanitized:
            raise ToolExecutionError("no expression found")
        try:
            value = evaluate(sanitized)
            finite = math.isfinite(value)
        except ExpressionError as exc:
            raise ToolExecutionError(f"invalid expression: {exc}") from exc
        except OverflowError:
            finite = False
        if not finite:
            raise ToolExecutionError("result is not a finite number")
        return {"expression": sanitized, "result": value}

    async def run(self, params: CalculatorInput) -> ToolCallResult:
        outcome = self.calculate(params.expression)
        text = f"Result: {outcome['expression']} = {format_number(outcome['result'])}"
        return ToolCallResult.ok(text, outcome)


class UrlFetchTool(ToolHandler):
    name = "urlFetch"
    description = "Fetch data from a URL"
    input_schema = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL to fetch"},
            "method": {
                "type": "string",
                "enum": ["GET", "POST"],
                "default": "GET",
                "description": "HTTP method",
            },
        },
        "required": ["url"],
    }
    input_model = UrlFetchInput
    error_prefix = "URL fetch error"

    def __init__(
        self,
        config: HTTPClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport

    async def run(self, params: UrlFetchInput) -> ToolCallResult:
        timeout = httpx.Timeout(self.config.request_timeout_seconds)
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(params.method, params.url)
                body = response.text
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("urlFetch %s %s failed: %s", params.method, params.url, exc)
            raise ToolExecutionError(_describe_error(exc)) from exc

        limit = self.config.max_body_chars
        truncated = len(body) > limit
        preview = body[:limit] + ("..." if truncated else "")
        text = (
            f"URL: {params.url}\n"
            f"Status: {response.status_code} {response.reason_phrase}\n"
            f"Content: {preview}"
        )
        return ToolCallResult.ok(
            text,
            {
                "url": params.url,
                "status": response.status_code,
                "statusText": response.reason_phrase,
                "data": preview,
                "truncated": truncated,
            },
        )


class MemoryTool(ToolHandler):
    name = "memory"
    description = "Save and retrieve data for the lifetime of the server"
    input_schema = {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": ["save", "get", "list", "delete"],
                "description": "Action to perform",
            },
            "key": {"type": "string", "description": "Key of the entry"},
            "value": {"type": "string", "description": "Value to store (save only)"},
        },
        "required": ["action"],
    }
    input_model = MemoryInput
    error_prefix = "Memory operation error"

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    async def run(self, params: MemoryInput) -> ToolCallResult:
        action, key, value = params.action, params.key, params.value

        if action == "save":
            if not key or not value:
                raise ToolExecutionError("key and value are required")
            self.store.save(key, value)
            return ToolCallResult.ok(f"Saved: {key} = {value}", {"key": key, "value": value})

        if action == "get":
            if not key:
                raise ToolExecutionError("key is required")
            stored = self.store.get(key)
            if stored is None:
                raise ToolExecutionError(f"no data found for key: {key}")
            return ToolCallResult.ok(f"Retrieved: {key} = {stored}", {"key": key, "value": stored})

        if action == "list":
            keys = self.store.keys()
            return ToolCallResult.ok(
                f"Stored keys: {', '.join(keys)} (total: {len(keys)})",
                {"keys": keys, "count": len(keys)},
            )

        if action == "delete":
            if not key:
                raise ToolExecutionError("key is required")
            existed = self.store.delete(key)
            text = f"Deleted: {key}" if existed else f"Nothing to delete for key: {key}"
            return ToolCallResult.ok(text, {"key": key, "existed": existed})

        raise ToolExecutionError(f"invalid action: {action}")


def build_tool_registry(
    config: AppConfig,
    memory_store: MemoryStore,
    *,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ToolRegistry:
    """Register the four tools in their advertised order and freeze the registry."""
    registry = ToolRegistry()
    registry.register(
        WeatherTool(
            config.weather,
            timeout_seconds=config.http.request_timeout_seconds,
            transport=http_transport,
        )
    )
    registry.register(CalculatorTool())
    registry.register(UrlFetchTool(config.http, transport=http_transport))
    registry.register(MemoryTool(memory_store))
    return registry.freeze()
