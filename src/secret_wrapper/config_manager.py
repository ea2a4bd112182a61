"""Layered configuration resolution and guarded mutation.

Resolution order, later layers overriding earlier ones:

1. built-in defaults (the model defaults)
2. the persisted YAML document
3. process environment variables
4. runtime ``configure`` calls

Every change is validated before it becomes effective; a rejected change
leaves the previous configuration in place.
"""

from __future__ import annotations

import copy
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping

from pydantic import ValidationError

from .exceptions import ConfigEnvironmentError, ConfigIoError, ConfigValidationError
from .models import PluginConfig
from .store import ConfigStore, read_document, write_document
from .types import STYLE_TEMPLATES
from .validation import validate_config

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("secret_wrapper.audit")

ENV_PREFIX = "SECRET_WRAPPER_"
SHOW_UNREDACTED_VAR = "SHOW_UNREDACTED"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            # Waiting writers go first so a steady stream of renders cannot starve a reload
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def merge_documents(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``patch`` onto a copy of ``base``."""
    merged = copy.deepcopy(dict(base))
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_documents(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def flatten_document(document: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys."""
    flat: dict[str, Any] = {}
    for key, value in document.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping) and value:
            flat.update(flatten_document(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def parse_bool(variable: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigEnvironmentError(variable, f"expected a boolean, got '{value}'")


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Translate environment variables into a partial configuration document."""
    redaction: dict[str, Any] = {}
    security: dict[str, Any] = {}

    style_var = f"{ENV_PREFIX}REDACTION_STYLE"
    if style_var in env:
        style = env[style_var]
        if style in STYLE_TEMPLATES:
            redaction["style"] = style
        else:
            redaction["style"] = "custom"
            redaction["custom_text"] = style

    text_var = f"{ENV_PREFIX}CUSTOM_TEXT"
    if text_var in env:
        redaction["custom_text"] = env[text_var]

    type_info_var = f"{ENV_PREFIX}SHOW_TYPE_INFO"
    if type_info_var in env:
        redaction["show_type_info"] = parse_bool(type_info_var, env[type_info_var])

    level_var = f"{ENV_PREFIX}SECURITY_LEVEL"
    if level_var in env:
        level = env[level_var].strip().lower()
        if level not in ("minimal", "standard", "paranoid"):
            raise ConfigEnvironmentError(
                level_var, f"unknown security level '{env[level_var]}'; expected minimal, standard or paranoid"
            )
        security["level"] = level

    partial_var = f"{ENV_PREFIX}ALLOW_PARTIAL_REDACTION"
    if partial_var in env:
        security["allow_partial_redaction"] = parse_bool(partial_var, env[partial_var])

    if SHOW_UNREDACTED_VAR in env and parse_bool(SHOW_UNREDACTED_VAR, env[SHOW_UNREDACTED_VAR]):
        redaction["show_unredacted"] = True

    overrides: dict[str, Any] = {}
    if redaction:
        overrides["redaction"] = redaction
    if security:
        overrides["security"] = security
    return overrides


def build_config(document: Mapping[str, Any]) -> PluginConfig:
    """Parse a resolved document, reporting schema problems as validation errors."""
    try:
        return PluginConfig.model_validate(dict(document))
    except ValidationError as e:
        errors = e.errors()
        violations = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in errors]
        first = errors[0]
        raise ConfigValidationError(
            ".".join(str(p) for p in first["loc"]) or "<root>", first["msg"], violations
        ) from e


class ConfigManager:
    """Single owner of the effective configuration.

    Renders hold the read side of the lock for the duration of one render;
    reload, import, reset and configure hold the write side while they
    validate and swap.
    """

    def __init__(
        self,
        store: ConfigStore | None = None,
        env: Mapping[str, str] | None = None,
        config: PluginConfig | None = None,
    ):
        self.store = store
        self._env = env
        self._lock = ReadWriteLock()
        self._document: dict[str, Any] = {}
        self._runtime_overrides: dict[str, Any] = {}
        if config is not None:
            validate_config(config)
        self._config = config or PluginConfig()

    @classmethod
    def from_path(cls, path: Path, env: Mapping[str, str] | None = None) -> ConfigManager:
        """Create a manager backed by ``path`` and load it."""
        manager = cls(ConfigStore(path), env)
        manager.load()
        return manager

    @property
    def config(self) -> PluginConfig:
        """Current effective configuration snapshot."""
        return self._config

    @contextmanager
    def read(self) -> Iterator[PluginConfig]:
        """Hold the read lock and yield the effective configuration."""
        with self._lock.read():
            yield self._config

    @property
    def environment(self) -> Mapping[str, str]:
        return os.environ if self._env is None else self._env

    def resolve(self, document: Mapping[str, Any] | None = None) -> PluginConfig:
        """Resolve all layers into a configuration without making it effective."""
        return build_config(self._layered_document(document))

    def persistable(self) -> PluginConfig:
        """Defaults, the stored document and runtime changes, without the environment.

        Environment overrides such as ``SHOW_UNREDACTED`` last for the process
        only and are never written to the store or an export.
        """
        return build_config(self._layered_document(include_environment=False))

    def _layered_document(
        self, document: Mapping[str, Any] | None = None, include_environment: bool = True
    ) -> dict[str, Any]:
        resolved = PluginConfig().to_document()
        resolved = merge_documents(resolved, self._document if document is None else document)
        if include_environment:
            resolved = merge_documents(resolved, env_overrides(self.environment))
        return merge_documents(resolved, self._runtime_overrides)

    def load(self) -> PluginConfig:
        """Read the persisted layer and make the resolved configuration effective."""
        document = self.store.load_document() if self.store is not None else self._document
        with self._lock.write():
            new_config = self.resolve(document)
            self._swap(new_config, "load")
            self._document = document
        return new_config

    def reload(self) -> PluginConfig:
        return self.load()

    def validate(self, config: PluginConfig | None = None) -> None:
        """Validate ``config``, or the effective configuration."""
        validate_config(config if config is not None else self._config)

    def configure(self, changes: Mapping[str, Any]) -> PluginConfig:
        """Apply a partial configuration mapping on top of the effective one."""
        with self._lock.write():
            document = merge_documents(self._config.to_document(), changes)
            new_config = build_config(document)
            self._swap(new_config, "configure")
            self._runtime_overrides = merge_documents(self._runtime_overrides, changes)
        return new_config

    def reset_to_defaults(self, persist: bool = False) -> PluginConfig:
        """Drop the persisted and runtime layers, keeping environment overrides."""
        with self._lock.write():
            new_config = build_config(
                merge_documents(PluginConfig().to_document(), env_overrides(self.environment))
            )
            self._swap(new_config, "reset")
            self._document = {}
            self._runtime_overrides = {}
            if persist:
                self._save_locked(PluginConfig())
        return new_config

    def export_config(self, path: Path) -> None:
        """Write the persistable configuration to ``path``."""
        with self._lock.read():
            config = self.persistable()
            validate_config(config)
            write_document(Path(path), config.to_document())
        logger.info("Exported configuration to %s", path)

    def import_config(self, path: Path, persist: bool = False) -> PluginConfig:
        """Replace the persisted layer with the document at ``path``."""
        document = read_document(Path(path))
        with self._lock.write():
            saved_overrides = self._runtime_overrides
            self._runtime_overrides = {}
            try:
                new_config = self.resolve(document)
                self._swap(new_config, "import")
            except Exception:
                self._runtime_overrides = saved_overrides
                raise
            self._document = document
            if persist:
                self._save_locked(self.persistable())
        return new_config

    def save(self) -> None:
        """Persist everything but the environment layer to the store."""
        with self._lock.read():
            self._save_locked(self.persistable())

    def _save_locked(self, config: PluginConfig) -> None:
        if self.store is None:
            raise ConfigIoError("<none>", "no configuration store is attached")
        self.store.save(config)

    def _swap(self, new_config: PluginConfig, action: str) -> None:
        # Caller holds the write lock
        validate_config(new_config)
        old_config = self._config
        self._config = new_config
        self._audit(action, old_config, new_config)

    def _audit(self, action: str, old: PluginConfig, new: PluginConfig) -> None:
        if not (old.security.audit_config_changes or new.security.audit_config_changes):
            return
        before = flatten_document(old.to_document())
        after = flatten_document(new.to_document())
        changed = sorted(k for k in before.keys() | after.keys() if before.get(k) != after.get(k))
        if changed:
            audit_logger.info("Configuration %s changed fields: %s", action, ", ".join(changed))
