"""
Registry Configuration

Layered settings for the registry and its CLI. Each setting is a typed
ConfigValue inside a dataclass section; sections hang off RegistryConfig and
are addressed by dotted path (``validation.max_batch_size``).

Precedence (highest first):
    1. REVREG_* environment variables
    2. Values set at runtime or loaded from YAML (last load wins)
    3. ./revreg.yaml, ./config/revreg.yaml, ~/.revreg/config.yaml
    4. Built-in defaults

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar, Union

import yaml

from revreg.keys import KEY_ALGORITHMS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


class ConfigError(Exception):
    """Bad configuration file, path or value."""
    pass


class ValidationError(ConfigError):
    """A value could not be coerced or failed its setting's validator."""
    pass


def _parse(raw: str, like: Any) -> Any:
    """Turn an env/CLI string into the type of ``like``."""
    if isinstance(like, bool):
        text = raw.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValidationError(f"expected a boolean, got {raw!r}")
    if isinstance(like, int):
        try:
            return int(raw.strip())
        except ValueError:
            raise ValidationError(f"expected an integer, got {raw!r}") from None
    return raw


@dataclass
class ConfigValue(Generic[T]):
    """
    One setting: default, optional env binding, validator and change callbacks.

    Values keep the type of their default; bool and int are not interchangeable.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[Optional[T], T], None]] = field(default_factory=list, repr=False)

    @property
    def value_type(self) -> type:
        return type(self.default)

    def get(self) -> T:
        """Effective value. A bad environment override raises ValidationError."""
        raw = os.environ.get(self.env_var) if self.env_var else None
        if raw is None:
            return self.default if self._value is None else self._value
        value = _parse(raw, self.default)
        if not self.accepts(value):
            raise ValidationError(f"{self.env_var}={raw!r} is not an accepted value")
        return value

    def accepts(self, value: Any) -> bool:
        return self.validator is None or bool(self.validator(value))

    def set(self, value: Any) -> None:
        if isinstance(value, str) and self.value_type is not str:
            value = _parse(value, self.default)
        if type(value) is not self.value_type:
            raise ValidationError(
                f"expected {self.value_type.__name__}, got {type(value).__name__} ({value!r})"
            )
        if not self.accepts(value):
            raise ValidationError(f"Invalid value for config: {value!r}")

        previous, self._value = self._value, value
        for callback in self._callbacks:
            callback(previous, value)

    def reset(self) -> None:
        self._value = None

    def on_change(self, callback: Callable[[Optional[T], T], None]) -> None:
        self._callbacks.append(callback)


@dataclass
class KeysConfig:
    """Holder key derivation."""
    algorithm: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="sha256",
        env_var="REVREG_KEY_ALGORITHM",
        description="Hash used to derive record keys from holder ids (sha256, sha3_256)",
        validator=lambda x: x in KEY_ALGORITHMS,
    ))


@dataclass
class ValidationConfig:
    """Opt-in input format checks."""
    strict_holder_ids: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="REVREG_STRICT_HOLDER_IDS",
        description="Reject holder ids that fail format validation",
    ))
    strict_pointers: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="REVREG_STRICT_POINTERS",
        description="Reject evidence pointers that fail format validation",
    ))
    max_batch_size: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=500,
        env_var="REVREG_MAX_BATCH_SIZE",
        description="Maximum number of holders in one publishBatch call",
        validator=lambda x: x > 0,
    ))


@dataclass
class StorageConfig:
    state_path: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="revreg-state.json",
        env_var="REVREG_STATE_PATH",
        description="Path of the JSON state file used by the CLI",
        validator=lambda x: bool(x.strip()),
    ))


@dataclass
class EventsConfig:
    max_undrained: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=10000,
        env_var="REVREG_EVENTS_MAX_UNDRAINED",
        description="Maximum undrained events kept in the event log",
        validator=lambda x: x > 0,
    ))


@dataclass
class ObservabilityConfig:
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="REVREG_LOG_LEVEL",
        description="Log level (debug, info, warning, error, critical)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="REVREG_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class RegistryConfig:
    """Root of the settings tree."""
    keys: KeysConfig = field(default_factory=KeysConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Effective values as nested dicts."""
        out: Dict[str, Any] = {}
        for path, setting in iter_settings(self):
            section, _, name = path.rpartition(".")
            out.setdefault(section, {})[name] = setting.get()
        return out

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)


def iter_settings(node: Any, prefix: str = "") -> Iterator[Tuple[str, ConfigValue]]:
    """Yield ``(dotted_path, ConfigValue)`` for every setting under ``node``."""
    for f in fields(node):
        child = getattr(node, f.name)
        path = f"{prefix}{f.name}"
        if isinstance(child, ConfigValue):
            yield path, child
        elif is_dataclass(child):
            yield from iter_settings(child, f"{path}.")


def default_config_paths() -> List[Path]:
    """Files read by ``load_defaults``, lowest precedence first."""
    return [
        Path.home() / ".revreg" / "config.yaml",
        Path("config") / "revreg.yaml",
        Path("revreg.yaml"),
    ]


class ConfigManager:
    """
    Process-wide holder of the active RegistryConfig.

    ``ConfigManager()`` always returns the same instance until
    ``reset_instance()`` drops it.
    """

    _instance: Optional["ConfigManager"] = None
    _instance_lock = threading.Lock()

    _config: RegistryConfig
    _sources: List[Path]

    def __new__(cls) -> "ConfigManager":
        with cls._instance_lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._config = RegistryConfig()
                instance._sources = []
                cls._instance = instance
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._instance_lock:
            cls._instance = None

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def sources(self) -> List[Path]:
        """Files loaded so far, in load order."""
        return list(self._sources)

    # ────────────────────────────────────────────────────────────────────
    # Loading
    # ────────────────────────────────────────────────────────────────────

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Apply a YAML mapping of sections to settings."""
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {path}")

        self._apply(self._config, data, "")
        self._sources.append(path)
        logger.debug("loaded config %s", path)

    def load_defaults(self) -> None:
        """Load whichever default files exist; a broken one is skipped with a warning."""
        for path in default_config_paths():
            if not path.is_file():
                continue
            try:
                self.load_from_file(path)
            except ConfigError as e:
                logger.warning("ignoring default config %s: %s", path, e)

    def _apply(self, node: Any, values: Dict[str, Any], prefix: str) -> None:
        known = {f.name for f in fields(node)}
        for key, value in values.items():
            path = f"{prefix}{key}"
            if key not in known:
                raise ConfigError(f"Unknown config key: {path}")
            child = getattr(node, key)
            if isinstance(child, ConfigValue):
                try:
                    child.set(value)
                except ValidationError as e:
                    raise ValidationError(f"{path}: {e}") from e
            elif isinstance(value, dict):
                self._apply(child, value, f"{path}.")
            else:
                raise ConfigError(f"Expected a mapping for config section: {path}")

    # ────────────────────────────────────────────────────────────────────
    # Access by dotted path
    # ────────────────────────────────────────────────────────────────────

    def _lookup(self, path: str) -> Any:
        node: Any = self._config
        for part in path.split("."):
            if not is_dataclass(node) or isinstance(node, ConfigValue) or part not in {
                f.name for f in fields(node)
            }:
                raise ConfigError(f"Invalid config path: {path}")
            node = getattr(node, part)
        return node

    def _setting(self, path: str) -> ConfigValue:
        node = self._lookup(path)
        if not isinstance(node, ConfigValue):
            raise ConfigError(f"Config path is a section, not a value: {path}")
        return node

    def get(self, path: str) -> Any:
        """e.g. ``get("keys.algorithm")``"""
        return self._setting(path).get()

    def set(self, path: str, value: Any) -> None:
        """e.g. ``set("validation.max_batch_size", 100)``"""
        self._setting(path).set(value)

    # ────────────────────────────────────────────────────────────────────
    # Introspection
    # ────────────────────────────────────────────────────────────────────

    def validate(self) -> List[str]:
        """Problems with the effective values (env overrides included)."""
        errors: List[str] = []
        for path, setting in iter_settings(self._config):
            try:
                value = setting.get()
            except ValidationError as e:
                errors.append(f"{path}: {e}")
                continue
            if not setting.accepts(value):
                errors.append(f"{path}: validation failed for value {value!r}")
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Nested description of every setting: type, default, env var."""
        schema: Dict[str, Any] = {"properties": {}}
        for path, setting in iter_settings(self._config):
            section, _, name = path.rpartition(".")
            entry = {
                "type": setting.value_type.__name__,
                "default": setting.default,
                "description": setting.description,
            }
            if setting.env_var:
                entry["env_var"] = setting.env_var
            schema["properties"].setdefault(section, {})[name] = entry
        return schema


def get_config() -> RegistryConfig:
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    return ConfigManager()
