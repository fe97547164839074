"""
Config system - Layered typed configuration with validation.

Merge precedence (later overrides earlier):
defaults < .env file < environment variables < explicit overrides
"""

from dataclasses import dataclass, fields, is_dataclass, MISSING
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, get_args, get_origin, get_type_hints
import json
import logging
import os
import types

from dotenv import dotenv_values

from .faults import ConfigInvalidFault, ConfigMissingFault


logger = logging.getLogger("aviary.config")

C = TypeVar("C")

LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


@dataclass
class ServerConfig:
    """Settings of the process serving a runtime."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    close_grace_delay: float = 5.0
    debug: bool = False

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigInvalidFault("port", f"{self.port} is not a valid TCP port")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigInvalidFault("log_level", f"expected one of {', '.join(LOG_LEVELS)}")
        if self.close_grace_delay < 0:
            raise ConfigInvalidFault("close_grace_delay", "must not be negative")
        self.log_level = self.log_level.lower()


class ConfigLoader:
    """
    Loads and merges configuration from the process environment.

    Environment keys are matched by prefix and nested with ``__``:
    ``AVIARY_SERVER__PORT=9000`` becomes ``{"server": {"port": 9000}}``.
    """

    def __init__(self, env_prefix: str = "AVIARY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "AVIARY_",
        env_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from every source.

        Args:
            env_prefix: Prefix of the variables to pick up
            env_file: Path to a .env file (skipped if it does not exist)
            overrides: Manual overrides (highest precedence)
            environ: Environment to read instead of ``os.environ``

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, dict(overrides))

        return loader

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        env_path = Path(path)
        if not env_path.exists():
            logger.debug(f"No env file at {env_path}")
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]):
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert AVIARY_SERVER__PORT to a nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def get_config(self, section: str, config_class: Type[C]) -> C:
        """
        Instantiate ``config_class`` from one section.

        Root-level scalar keys apply to every section; keys inside the
        section override them.

        Raises:
            ConfigMissingFault: A field without default is not configured
            ConfigInvalidFault: A value has the wrong type
        """
        root_data = {k: v for k, v in self.config_data.items() if not isinstance(v, dict)}
        merged = {**root_data, **self.get(section, {})}
        return self._instantiate_dataclass(config_class, merged)

    def server_config(self) -> ServerConfig:
        return self.get_config("server", ServerConfig)

    def _instantiate_dataclass(self, config_class: Type[C], data: dict) -> C:
        """Instantiate dataclass config with validation."""
        if not is_dataclass(config_class):
            raise TypeError(f"{config_class!r} is not a dataclass")

        hints = get_type_hints(config_class)
        kwargs = {}

        for field_info in fields(config_class):
            field_name = field_info.name
            field_type = hints.get(field_name, Any)

            if field_name in data:
                value = data[field_name]
                if not self._check_type(value, field_type):
                    raise ConfigInvalidFault(
                        field_name,
                        f"expected {getattr(field_type, '__name__', field_type)}, got {type(value).__name__}",
                    )
                if field_type is float and isinstance(value, int):
                    value = float(value)
                if field_type is str and not isinstance(value, str):
                    value = str(value)
                kwargs[field_name] = value
            elif field_info.default is not MISSING:
                kwargs[field_name] = field_info.default
            elif field_info.default_factory is not MISSING:
                kwargs[field_name] = field_info.default_factory()
            else:
                raise ConfigMissingFault(field_name)

        return config_class(**kwargs)

    def _check_type(self, value: Any, expected_type: Any) -> bool:
        """Basic type checking."""
        if expected_type is Any:
            return True

        origin = get_origin(expected_type)
        if origin is types.UnionType or str(origin) == "typing.Union":
            if value is None:
                return True
            return any(self._check_type(value, arg) for arg in get_args(expected_type) if arg is not type(None))

        if origin:
            return isinstance(value, origin)

        if expected_type is float:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if expected_type is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected_type is str:
            # Numeric-looking strings (e.g. a secret of digits) arrive parsed.
            return isinstance(value, (str, int, float)) and not isinstance(value, bool)

        return isinstance(value, expected_type)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.config_data)
