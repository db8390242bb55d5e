from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..core.config import AppConfig, load_app_config


class ConfigService:
    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._config_path = config_path
        self._config: Optional[AppConfig] = None

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    def load(self) -> AppConfig:
        self._config = load_app_config(self._config_path)
        return self._config

    def get(self) -> AppConfig:
        if self._config is None:
            self.load()
        assert self._config is not None
        return self._config


def create_config_service(config_path: Optional[Path] = None) -> ConfigService:
    return ConfigService(config_path=config_path)
