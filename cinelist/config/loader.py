"""Locate the CineList home directory and persist ``global_config.yaml``."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import GlobalConfig

GLOBAL_CONFIG_FILENAME = "global_config.yaml"
HOME_ENV = "CINELIST_HOME"
SECRET_ENV = {
    "omdb_api_key": "CINELIST_OMDB_API_KEY",
    "radarr_api_key": "CINELIST_RADARR_API_KEY",
}
YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def _package_root() -> Path:
    return Path(__file__).resolve().parents[2]


@dataclass(slots=True)
class ConfigLocator:
    """Home directory layout: ``data/`` for config and SQLite, ``logs/`` for logs.

    ``CINELIST_HOME`` wins over an explicit ``project_root`` so tests and
    deployments can relocate everything with one variable.
    """

    project_root: Path | None = None
    data_dir: Path = field(init=False)
    logs_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        home = os.environ.get(HOME_ENV)
        root = Path(home).expanduser() if home else (self.project_root or _package_root())
        self.project_root = root.resolve()
        self.data_dir = self.project_root / "data"
        self.logs_dir = self.project_root / "logs"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Load, validate and save the global configuration file."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._loaded: GlobalConfig | None = None

    def load_global_config(self) -> GlobalConfig:
        if self._loaded is None:
            path = self.locator.global_config_path()
            if path.exists():
                config = GlobalConfig.model_validate(self._read(path))
            else:
                config = GlobalConfig()
                self._write(path, config)
            self._loaded = self._with_env_secrets(config)
        return self._loaded

    def save_global_config(self, config: GlobalConfig) -> None:
        self._write(self.locator.global_config_path(), config)
        self._loaded = None

    def store_base_dir(self) -> Path:
        """Directory relative SQLite paths are resolved against."""

        assert self.locator.project_root is not None
        return self.locator.project_root

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        text = path.read_text(encoding="utf-8")
        data = (yaml.safe_load(text) or {}) if path.suffix in YAML_SUFFIXES else json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {path}")
        return data

    @staticmethod
    def _write(path: Path, config: GlobalConfig) -> None:
        payload = config.model_dump(mode="json")
        if path.suffix in YAML_SUFFIXES:
            text = yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
        else:
            text = json.dumps(payload, indent=2, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")

    @staticmethod
    def _with_env_secrets(config: GlobalConfig) -> GlobalConfig:
        # secrets from the environment are never written back to disk
        overrides = {key: os.environ[env] for key, env in SECRET_ENV.items() if os.environ.get(env)}
        if not overrides:
            return config
        return config.model_copy(update={"catalog": config.catalog.model_copy(update=overrides)})


__all__ = ["ConfigLocator", "ConfigRepository", "GLOBAL_CONFIG_FILENAME", "HOME_ENV"]
