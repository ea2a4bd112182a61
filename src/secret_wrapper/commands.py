"""Host-facing call contract bound to one configuration manager."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from .config_manager import ConfigManager
from .exceptions import ConfigIoError, RevealOnNonSecret
from .models import PluginConfig
from .secret import SecretValue, reveal, wrap as wrap_value, wrap_with as wrap_value_with
from .template_parser import Template
from .validation import semantic_validate

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("secret_wrapper.audit")

BACKUP_NAME_FORMAT = "config_backup_%Y%m%d_%H%M%S.yaml"


class SecretCommands:
    """Entry points a host shell dispatches to.

    Every secret created here is bound to ``manager`` so its presentation
    follows the manager's effective configuration.
    """

    def __init__(self, manager: ConfigManager | None = None):
        self.manager = manager or ConfigManager()

    def wrap(self, value: Any, template_override: Template | str | None = None) -> SecretValue:
        secret = wrap_value(value, template_override, self.manager)
        if secret.manager is None:
            secret.bind(self.manager)
        return secret

    def wrap_with(self, value: Any, template_text: str) -> SecretValue:
        if isinstance(value, SecretValue):
            return value.with_template(template_text).bind(self.manager)
        return wrap_value_with(value, template_text, self.manager)

    def unwrap(self, secret: Any) -> Any:
        """Reveal a secret's payload and record the exposure on the audit logger."""
        if secret is None:
            raise RevealOnNonSecret("Empty input: expected a secret value")
        if not isinstance(secret, SecretValue):
            raise RevealOnNonSecret(f"Expected a secret type, got {type(secret).__name__}")
        value = reveal(secret)
        audit_logger.warning("Secret content exposed: unwrapped a %s", secret.kind.type_name)
        return value

    def validate(self, value: Any) -> bool:
        """Whether ``value`` is a secret of a recognized kind."""
        return isinstance(value, SecretValue)

    def type_of(self, secret: Any) -> str:
        if not isinstance(secret, SecretValue):
            raise RevealOnNonSecret(f"Expected a secret type, got {type(secret).__name__}")
        return secret.kind.type_name

    def configure(self, changes: Mapping[str, Any]) -> PluginConfig:
        """Apply and, when a store is attached, persist a partial configuration."""
        config = self.manager.configure(changes)
        if self.manager.store is not None:
            self.manager.save()
        return config

    def config_show(self) -> dict[str, Any]:
        document = self.manager.config.to_document()
        if self.manager.store is not None:
            document["config_file"] = str(self.manager.store.path)
        return document

    def config_reset(self, backup: bool = False) -> Path | None:
        """Reset to defaults, optionally copying the stored configuration file aside first.

        Returns the backup path when one was written.
        """
        backup_path = None
        store = self.manager.store
        if backup and store is not None and store.exists():
            backup_path = store.path.parent / datetime.now().strftime(BACKUP_NAME_FORMAT)
            try:
                shutil.copy2(store.path, backup_path)
            except OSError as e:
                raise ConfigIoError(backup_path, f"failed to create backup: {e}") from e
            logger.info("Backed up configuration to %s", backup_path)
        self.manager.reset_to_defaults(persist=self.manager.store is not None)
        return backup_path

    def config_validate(self) -> list[str]:
        """Violations of the effective configuration; empty when valid."""
        return [str(v) for v in semantic_validate(self.manager.config)]

    def config_export(self, path: Path) -> None:
        self.manager.export_config(Path(path))

    def config_import(self, path: Path) -> PluginConfig:
        return self.manager.import_config(Path(path), persist=self.manager.store is not None)
