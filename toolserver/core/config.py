from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, constr

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "server.json"


class ServerConfig(BaseModel):
    name: constr(strip_whitespace=True, min_length=1) = "ai-api-server"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    http_port: int = Field(3000, ge=1, le=65535)
    websocket_port: int = Field(3001, ge=1, le=65535)


class WeatherConfig(BaseModel):
    api_key: Optional[str] = Field(
        None,
        description="OpenWeatherMap API key; a synthetic reading is returned when unset",
    )
    base_url: str = "https://api.openweathermap.org/data/2.5/weather"
    units: str = "metric"
    lang: str = "en"
    user_agent: str = "AI-Chat-App/1.0"


class HTTPClientConfig(BaseModel):
    request_timeout_seconds: float = Field(
        30,
        ge=1,
        description="Timeout in seconds for outbound tool HTTP requests",
    )
    max_body_chars: int = Field(1000, ge=1, description="Characters of a fetched body returned to callers")


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    http: HTTPClientConfig = Field(default_factory=HTTPClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def safe_payload(self) -> dict:
        """Return a version of the configuration safe to expose to clients."""
        return {
            "server": self.server.model_dump(),
            "weather": self.weather.model_dump(exclude={"api_key"}),
            "http": self.http.model_dump(),
        }


class ConfigLoaderError(RuntimeError):
    pass


def _read_json(path: Path) -> dict:
    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigLoaderError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigLoaderError(f"Configuration in {path} must be a JSON object")
    return payload


def _apply_env_overrides(config: AppConfig) -> None:
    """Apply environment variable overrides to the loaded configuration."""
    api_key = os.getenv("OPENWEATHER_API_KEY")
    if api_key:
        config.weather.api_key = api_key.strip()

    for env_name, attr in (("PORT", "http_port"), ("MCP_WS_PORT", "websocket_port")):
        raw = os.getenv(env_name)
        if not raw:
            continue
        try:
            setattr(config.server, attr, int(raw))
        except ValueError as exc:
            raise ConfigLoaderError(f"{env_name} must be an integer, got {raw!r}") from exc

    level = os.getenv("LOG_LEVEL")
    if level:
        config.logging.level = level.strip().upper()


def load_app_config(path: Optional[Path] = None) -> AppConfig:
    """Load the server configuration, falling back to defaults when no file exists."""
    if path is None:
        env_path = os.getenv("TOOLSERVER_CONFIG_FILE")
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    raw = _read_json(path) if path.exists() else {}
    try:
        config = AppConfig(**raw)
    except ValidationError as exc:
        raise ConfigLoaderError(str(exc)) from exc

    _apply_env_overrides(config)
    return config
