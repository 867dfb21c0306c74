"""Locate the harvester home and persist the global YAML config."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import GlobalConfig

HOME_ENV_VAR = "IPD_HARVESTER_HOME"
DEFAULT_HOME = Path("~/.ipd-harvester")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"


def harvester_home() -> Path:
    """``$IPD_HARVESTER_HOME`` when set, otherwise ``~/.ipd-harvester``."""

    return Path(os.environ.get(HOME_ENV_VAR) or DEFAULT_HOME).expanduser().resolve()


@dataclass(slots=True)
class ConfigLocator:
    """Paths under the harvester home; directories are created on demand."""

    home: Path = field(default_factory=harvester_home)

    def __post_init__(self) -> None:
        self.home = Path(self.home).expanduser().resolve()

    @property
    def data_dir(self) -> Path:
        return self.home / "data"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Load, validate and cache ``global_config.yaml``."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if not path.exists():
            # First run: materialise the defaults so they can be edited
            self.save_global_config(GlobalConfig())
            return self._global_cache

        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(payload).__name__}")
        try:
            self._global_cache = GlobalConfig.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"invalid settings in {path}: {exc}") from exc
        return self._global_cache

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as stream:
            yaml.safe_dump(config.model_dump(mode="json"), stream, sort_keys=False)
        self._global_cache = config


__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_HOME",
    "GLOBAL_CONFIG_FILENAME",
    "HOME_ENV_VAR",
    "harvester_home",
]
