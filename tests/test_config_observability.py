"""
Tests for the configuration system and structured logging.
"""

import io
import json

import pytest
import yaml

from revreg.config import (
    ConfigError,
    ConfigManager,
    RegistryConfig,
    ValidationError,
    get_config,
    get_config_manager,
)
from revreg.errors import NotAuthorized
from revreg.observability import (
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from revreg.registry import RevocationRegistry, policy_from_config


# =============================================================================
# CONFIGURATION
# =============================================================================

class TestConfig:

    def test_defaults(self):
        manager = ConfigManager()
        assert manager.get("keys.algorithm") == "sha256"
        assert manager.get("validation.strict_holder_ids") is False
        assert manager.get("validation.strict_pointers") is False
        assert manager.get("validation.max_batch_size") == 500
        assert manager.get("storage.state_path") == "revreg-state.json"
        assert manager.get("events.max_undrained") == 10000
        assert manager.get("observability.log_level") == "info"
        assert manager.get("observability.log_format") == "json"

    def test_singleton(self):
        assert ConfigManager() is ConfigManager()
        assert get_config_manager() is ConfigManager()
        assert isinstance(get_config(), RegistryConfig)

    def test_set_coerces_strings(self):
        manager = ConfigManager()
        manager.set("validation.max_batch_size", "100")
        manager.set("validation.strict_pointers", "yes")

        assert manager.get("validation.max_batch_size") == 100
        assert manager.get("validation.strict_pointers") is True

    def test_set_rejects_invalid_values(self):
        manager = ConfigManager()
        with pytest.raises(ValidationError):
            manager.set("keys.algorithm", "md5")
        with pytest.raises(ValidationError):
            manager.set("validation.max_batch_size", 0)
        with pytest.raises(ValidationError):
            manager.set("validation.max_batch_size", "many")
        assert manager.get("keys.algorithm") == "sha256"

    def test_invalid_paths(self):
        manager = ConfigManager()
        with pytest.raises(ConfigError):
            manager.get("keys.nope")
        with pytest.raises(ConfigError):
            manager.get("keys")
        with pytest.raises(ConfigError):
            manager.set("validation", 1)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("REVREG_KEY_ALGORITHM", "sha3_256")
        monkeypatch.setenv("REVREG_MAX_BATCH_SIZE", "25")
        manager = ConfigManager()
        manager.set("keys.algorithm", "sha256")

        assert manager.get("keys.algorithm") == "sha3_256"
        assert manager.get("validation.max_batch_size") == 25

    def test_validate_reports_bad_env(self, monkeypatch):
        monkeypatch.setenv("REVREG_LOG_LEVEL", "verbose")
        errors = ConfigManager().validate()
        assert len(errors) == 1
        assert errors[0].startswith("observability.log_level")

    @pytest.mark.parametrize("env_var, path", [
        ("REVREG_MAX_BATCH_SIZE", "validation.max_batch_size"),
        ("REVREG_EVENTS_MAX_UNDRAINED", "events.max_undrained"),
    ])
    def test_env_value_must_pass_validator(self, monkeypatch, owner, env_var, path):
        monkeypatch.setenv(env_var, "0")
        manager = ConfigManager()

        with pytest.raises(ValidationError):
            manager.get(path)
        with pytest.raises(ValidationError):
            RevocationRegistry.from_config(owner, manager.config)
        assert manager.validate()[0].startswith(path)

    def test_on_change_callback(self):
        manager = ConfigManager()
        changes = []
        manager.config.validation.max_batch_size.on_change(lambda old, new: changes.append((old, new)))

        manager.set("validation.max_batch_size", 10)
        manager.set("validation.max_batch_size", 20)
        assert changes == [(None, 10), (10, 20)]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "revreg.yaml"
        path.write_text(
            "keys:\n  algorithm: sha3_256\n"
            "validation:\n  strict_holder_ids: true\n  max_batch_size: 50\n",
            encoding="utf-8",
        )
        manager = ConfigManager()
        manager.load_from_file(path)

        assert manager.get("keys.algorithm") == "sha3_256"
        assert manager.get("validation.strict_holder_ids") is True
        assert manager.get("validation.max_batch_size") == 50

    @pytest.mark.parametrize("content", [
        "keys:\n  colour: blue\n",
        "- just\n- a list\n",
        "keys: [unterminated\n",
        "keys: sha256\n",
    ])
    def test_load_rejects_bad_files(self, tmp_path, content):
        path = tmp_path / "revreg.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigManager().load_from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigManager().load_from_file(tmp_path / "absent.yaml")

    def test_empty_file_is_noop(self, tmp_path):
        path = tmp_path / "revreg.yaml"
        path.write_text("", encoding="utf-8")
        ConfigManager().load_from_file(path)
        assert ConfigManager().get("keys.algorithm") == "sha256"

    def test_load_defaults_from_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "revreg.yaml").write_text("storage:\n  state_path: custom.json\n", encoding="utf-8")

        manager = ConfigManager()
        manager.load_defaults()
        assert manager.get("storage.state_path") == "custom.json"

    def test_yaml_round_trip(self):
        config = ConfigManager().config
        assert yaml.safe_load(config.to_yaml()) == config.to_dict()

    def test_export_schema(self):
        schema = ConfigManager().export_schema()
        algorithm = schema["properties"]["keys"]["algorithm"]
        assert algorithm["default"] == "sha256"
        assert algorithm["env_var"] == "REVREG_KEY_ALGORITHM"
        assert schema["properties"]["validation"]["max_batch_size"]["type"] == "int"

    def test_registry_from_config(self, owner):
        manager = ConfigManager()
        manager.set("keys.algorithm", "sha3_256")
        manager.set("validation.strict_holder_ids", True)
        manager.set("validation.max_batch_size", 7)

        registry = RevocationRegistry.from_config(owner, manager.config)
        policy = policy_from_config(manager.config)

        assert registry.key_algorithm == "sha3_256"
        assert policy.strict_holder_ids is True
        assert policy.strict_pointers is False
        assert policy.max_batch_size == 7


# =============================================================================
# LOGGING
# =============================================================================

def _lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestLogging:

    def test_json_lines(self):
        stream = io.StringIO()
        configure_logging("debug", "json", stream)
        set_correlation_id("corr-test")

        get_logger("cli").info("hello", holder="x")

        (line,) = _lines(stream)
        assert line["level"] == "info"
        assert line["logger"] == "revreg.cli"
        assert line["message"] == "hello"
        assert line["component"] == "cli"
        assert line["correlation_id"] == "corr-test"
        assert line["context"] == {"holder": "x"}

    def test_level_filtering(self):
        stream = io.StringIO()
        configure_logging("warning", "json", stream)

        log = get_logger("registry")
        log.info("quiet")
        log.warning("loud")

        assert [line["message"] for line in _lines(stream)] == ["loud"]

    def test_text_format(self):
        stream = io.StringIO()
        configure_logging("info", "text", stream)

        get_logger("registry").info("plain message")
        assert "INFO revreg.registry: plain message" in stream.getvalue()

    def test_reconfigure_replaces_handler(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging("info", "json", first)
        configure_logging("info", "json", second)

        get_logger("registry").info("once")
        assert first.getvalue() == ""
        assert len(_lines(second)) == 1

    def test_correlation_id_generated_on_demand(self):
        set_correlation_id("")
        cid = get_correlation_id()
        assert cid.startswith("corr-")
        assert get_correlation_id() == cid

    def test_operations_are_timed(self, registry, owner, stranger):
        stream = io.StringIO()
        configure_logging("info", "json", stream)

        registry.publish(owner, "holder:alice", 20000, "ipfs://cid")
        with pytest.raises(NotAuthorized):
            registry.publish(stranger, "holder:bob", 20000, "ipfs://cid")

        ok, failed = [line for line in _lines(stream) if line.get("operation") == "publish"]
        assert ok["level"] == "info"
        assert ok["message"] == "Operation publish completed"
        assert ok["duration_ms"] >= 0
        assert failed["level"] == "warning"
        assert failed["error_code"] == "NotAuthorized"

    def test_commit_logged_at_debug(self, registry, owner):
        stream = io.StringIO()
        configure_logging("debug", "json", stream)

        registry.publish(owner, "holder:alice", 20000, "ipfs://cid")

        committed = [line for line in _lines(stream) if line["message"] == "committed"]
        assert committed[0]["operation"] == "publish"
        assert committed[0]["context"]["events"] == ["RevocationPublished"]
