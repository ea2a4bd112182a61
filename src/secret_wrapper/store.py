"""YAML persistence for configuration documents."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigIoError
from .models import PluginConfig

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "secret-wrapper" / "config.yaml"


def read_document(path: Path) -> dict[str, Any]:
    """Read a YAML mapping from ``path``."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigIoError(path, str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigIoError(path, f"YAML parsing error: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigIoError(path, "top level of a configuration document must be a mapping")
    return data


def write_document(path: Path, document: dict[str, Any]) -> None:
    """Write a mapping to ``path`` as YAML, creating parent directories."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    except OSError as e:
        raise ConfigIoError(path, str(e)) from e


class ConfigStore:
    """Persisted configuration layer backed by one YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load_document(self) -> dict[str, Any]:
        """Return the stored mapping, or an empty one if nothing is stored yet."""
        if not self.exists():
            return {}
        return read_document(self.path)

    def save(self, config: PluginConfig) -> None:
        write_document(self.path, config.to_document())
