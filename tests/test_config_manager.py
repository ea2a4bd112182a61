"""Tests for layered configuration and the configuration manager."""

import logging
import threading

import pytest
import yaml

from secret_wrapper.config_manager import (
    ConfigManager,
    ReadWriteLock,
    env_overrides,
    flatten_document,
    merge_documents,
    parse_bool,
)
from secret_wrapper.exceptions import ConfigEnvironmentError, ConfigIoError, ConfigValidationError
from secret_wrapper.models import PluginConfig
from secret_wrapper.store import ConfigStore, read_document


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


def write_yaml(path, document):
    path.write_text(yaml.safe_dump(document))
    return path


class TestHelpers:
    """Tests for document helpers."""

    def test_merge_documents(self):
        """Nested mappings merge; other values are replaced."""
        base = {"a": {"b": 1, "c": 2}, "d": [1]}
        merged = merge_documents(base, {"a": {"c": 3}, "d": [2]})

        assert merged == {"a": {"b": 1, "c": 3}, "d": [2]}
        assert base == {"a": {"b": 1, "c": 2}, "d": [1]}

    def test_flatten_document(self):
        """Nested keys become dotted names."""
        assert flatten_document({"a": {"b": 1, "c": {}}, "d": 2}) == {"a.b": 1, "a.c": {}, "d": 2}

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False)])
    def test_parse_bool(self, value, expected):
        """Boolean-like strings parse."""
        assert parse_bool("VAR", value) is expected

    def test_parse_bool_invalid(self):
        """Unrecognized values raise with the variable name."""
        with pytest.raises(ConfigEnvironmentError, match="VAR"):
            parse_bool("VAR", "maybe")


class TestEnvOverrides:
    """Tests for the environment layer."""

    def test_empty_environment(self):
        """No variables, no overrides."""
        assert env_overrides({}) == {}

    def test_show_unredacted(self):
        """SHOW_UNREDACTED forces unredacted display."""
        assert env_overrides({"SHOW_UNREDACTED": "1"}) == {"redaction": {"show_unredacted": True}}
        assert env_overrides({"SHOW_UNREDACTED": "0"}) == {}

    def test_style_and_level(self):
        """Named styles and levels map onto their fields."""
        overrides = env_overrides(
            {
                "SECRET_WRAPPER_REDACTION_STYLE": "brackets",
                "SECRET_WRAPPER_SECURITY_LEVEL": "Paranoid",
                "SECRET_WRAPPER_SHOW_TYPE_INFO": "false",
            }
        )

        assert overrides == {
            "redaction": {"style": "brackets", "show_type_info": False},
            "security": {"level": "paranoid"},
        }

    def test_unknown_style_is_custom_text(self):
        """Any other style value is used as custom text."""
        overrides = env_overrides({"SECRET_WRAPPER_REDACTION_STYLE": "[gone]"})

        assert overrides == {"redaction": {"style": "custom", "custom_text": "[gone]"}}

    def test_invalid_level(self):
        """Unknown levels raise."""
        with pytest.raises(ConfigEnvironmentError, match="SECRET_WRAPPER_SECURITY_LEVEL"):
            env_overrides({"SECRET_WRAPPER_SECURITY_LEVEL": "extreme"})


class TestConfigManager:
    """Tests for the configuration manager."""

    def test_defaults_without_store(self):
        """A bare manager holds the defaults."""
        manager = ConfigManager(env={})

        assert manager.config == PluginConfig()

    def test_load_layers(self, config_path):
        """The file layer is applied and the environment wins over it."""
        write_yaml(config_path, {"redaction": {"style": "simple"}, "security": {"max_custom_text_length": 20}})

        manager = ConfigManager.from_path(config_path, env={"SECRET_WRAPPER_REDACTION_STYLE": "asterisks"})

        assert manager.config.redaction.style == "asterisks"
        assert manager.config.security.max_custom_text_length == 20

    def test_missing_file_uses_defaults(self, config_path):
        """A store with no file yet resolves to defaults."""
        manager = ConfigManager.from_path(config_path, env={})

        assert manager.config == PluginConfig()

    def test_show_unredacted_env(self, config_path):
        """The environment override forces unredacted display."""
        manager = ConfigManager.from_path(config_path, env={"SHOW_UNREDACTED": "true"})

        assert manager.config.redaction.show_unredacted is True

    def test_invalid_file_rejected(self, config_path):
        """A document violating a rule fails to load."""
        write_yaml(config_path, {"security": {"level": "paranoid"}, "redaction": {"partial": {"enabled": True}}})

        with pytest.raises(ConfigValidationError):
            ConfigManager.from_path(config_path, env={})

    def test_schema_error_reported_as_validation_error(self, config_path):
        """Schema problems carry the dotted field name."""
        write_yaml(config_path, {"security": {"level": "extreme"}})

        with pytest.raises(ConfigValidationError) as exc_info:
            ConfigManager.from_path(config_path, env={})

        assert exc_info.value.field == "security.level"

    def test_malformed_yaml(self, config_path):
        """Unparseable YAML is an I/O error."""
        config_path.write_text("redaction: [unclosed")

        with pytest.raises(ConfigIoError, match="YAML parsing error"):
            ConfigManager.from_path(config_path, env={})

    def test_reload_keeps_previous_on_failure(self, config_path):
        """A failed reload leaves the effective configuration untouched."""
        write_yaml(config_path, {"redaction": {"style": "brackets"}})
        manager = ConfigManager.from_path(config_path, env={})

        write_yaml(config_path, {"security": {"level": "paranoid"}, "redaction": {"partial": {"enabled": True}}})
        with pytest.raises(ConfigValidationError):
            manager.reload()

        assert manager.config.redaction.style == "brackets"
        assert manager.config.security.level == "standard"

    def test_configure(self):
        """configure merges a partial mapping onto the effective config."""
        manager = ConfigManager(env={})

        config = manager.configure({"redaction": {"style": "simple"}})

        assert config.redaction.style == "simple"
        assert manager.config.redaction.style == "simple"
        assert manager.config.security == PluginConfig().security

    def test_configure_rejects_invalid(self):
        """A rejected change is not applied."""
        manager = ConfigManager(env={})

        with pytest.raises(ConfigValidationError, match="requires allow_partial_redaction"):
            manager.configure({"redaction": {"partial": {"enabled": True, "min_length": 16}}})

        assert manager.config == PluginConfig()

    def test_configure_rejects_bad_template(self):
        """Templates that do not compile are rejected on configure."""
        manager = ConfigManager(env={})

        with pytest.raises(ConfigValidationError, match="does not compile"):
            manager.configure({"redaction": {"redaction_template": "{{ oops("}})

    def test_runtime_changes_survive_reload(self, config_path):
        """configure is re-applied on top of a reloaded file."""
        write_yaml(config_path, {"redaction": {"style": "simple"}})
        manager = ConfigManager.from_path(config_path, env={})
        manager.configure({"security": {"max_custom_text_length": 30}})

        write_yaml(config_path, {"redaction": {"style": "brackets"}})
        manager.reload()

        assert manager.config.redaction.style == "brackets"
        assert manager.config.security.max_custom_text_length == 30

    def test_reset_to_defaults(self, config_path):
        """Reset drops the file and runtime layers."""
        write_yaml(config_path, {"redaction": {"style": "simple"}})
        manager = ConfigManager.from_path(config_path, env={})
        manager.configure({"security": {"max_custom_text_length": 30}})

        manager.reset_to_defaults(persist=True)

        assert manager.config == PluginConfig()
        assert read_document(config_path)["redaction"]["style"] == "typed_brackets"

    def test_export_and_import(self, tmp_path):
        """Exported files import into another manager."""
        source = ConfigManager(env={})
        source.configure({"redaction": {"style": "brackets", "per_type": {"int": "<n>"}}})
        export_path = tmp_path / "exported.yaml"
        source.export_config(export_path)

        target = ConfigManager(env={})
        config = target.import_config(export_path)

        assert config.redaction.style == "brackets"
        assert target.config == source.config

    def test_import_invalid_keeps_previous(self, tmp_path):
        """A rejected import leaves the previous configuration in place."""
        manager = ConfigManager(env={})
        manager.configure({"redaction": {"style": "simple"}})
        bad = write_yaml(
            tmp_path / "bad.yaml",
            {"security": {"level": "paranoid"}, "redaction": {"show_unredacted": True}},
        )

        with pytest.raises(ConfigValidationError):
            manager.import_config(bad)

        assert manager.config.redaction.style == "simple"

    def test_import_persists(self, config_path, tmp_path):
        """persist=True writes the imported document to the store."""
        manager = ConfigManager.from_path(config_path, env={})
        source = write_yaml(tmp_path / "source.yaml", {"redaction": {"style": "asterisks"}})

        manager.import_config(source, persist=True)

        assert ConfigStore(config_path).load_document()["redaction"]["style"] == "asterisks"

    def test_save_excludes_environment(self, config_path):
        """Environment overrides stay in the process and are not saved."""
        manager = ConfigManager.from_path(config_path, env={"SHOW_UNREDACTED": "1"})
        manager.configure({"redaction": {"style": "brackets"}})

        manager.save()

        stored = read_document(config_path)
        assert stored["redaction"]["style"] == "brackets"
        assert stored["redaction"]["show_unredacted"] is False
        assert manager.config.redaction.show_unredacted is True
        assert not ConfigManager.from_path(config_path, env={}).config.redaction.show_unredacted

    def test_export_excludes_environment(self, tmp_path):
        """Exports carry stored and runtime settings but not the environment layer."""
        manager = ConfigManager(env={"SHOW_UNREDACTED": "1", "SECRET_WRAPPER_SECURITY_LEVEL": "minimal"})
        manager.load()
        manager.configure({"redaction": {"style": "asterisks"}})
        export_path = tmp_path / "exported.yaml"

        manager.export_config(export_path)

        exported = read_document(export_path)
        assert exported["redaction"]["style"] == "asterisks"
        assert exported["redaction"]["show_unredacted"] is False
        assert exported["security"]["level"] == "standard"

    def test_save_without_store(self):
        """Saving needs a store."""
        with pytest.raises(ConfigIoError):
            ConfigManager(env={}).save()

    def test_invalid_initial_config(self):
        """An explicit initial configuration is validated."""
        config = PluginConfig.model_validate({"redaction": {"style": "custom"}})

        with pytest.raises(ConfigValidationError):
            ConfigManager(env={}, config=config)

    def test_audit_logging(self, caplog):
        """Changed field names are logged on the audit logger, values are not."""
        manager = ConfigManager(env={})

        with caplog.at_level(logging.INFO, logger="secret_wrapper.audit"):
            manager.configure({"redaction": {"style": "custom", "custom_text": "[gone]"}})

        assert "redaction.custom_text" in caplog.text
        assert "redaction.style" in caplog.text
        assert "[gone]" not in caplog.text

    def test_audit_logging_disabled(self, caplog):
        """No audit record when both old and new configs turn auditing off."""
        manager = ConfigManager(env={})
        manager.configure({"security": {"audit_config_changes": False}})

        with caplog.at_level(logging.INFO, logger="secret_wrapper.audit"):
            manager.configure({"redaction": {"style": "simple"}})

        assert caplog.records == []


class TestReadWriteLock:
    """Tests for the reader/writer lock."""

    def test_concurrent_readers(self):
        """Readers do not block each other."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert not any(thread.is_alive() for thread in threads)
        assert not inside.broken

    def test_writer_excludes_readers(self):
        """A reader waits for an active writer."""
        lock = ReadWriteLock()
        events = []
        writer_entered = threading.Event()
        release_writer = threading.Event()

        def writer():
            with lock.write():
                writer_entered.set()
                release_writer.wait(timeout=5)
                events.append("writer done")

        def reader():
            with lock.read():
                events.append("reader")

        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_entered.wait(timeout=5)

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        reader_thread.join(timeout=0.1)
        assert events == []

        release_writer.set()
        writer_thread.join(timeout=5)
        reader_thread.join(timeout=5)

        assert events == ["writer done", "reader"]
