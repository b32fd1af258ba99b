"""Configuration loader for stateful.

Parses configuration into kernel config models. Supports two sources:

1. **kind: Config YAML**, loaded via explicit path or the
   ``STATEFUL_CONFIG_PATH`` env var.
2. **pyproject.toml [tool.stateful]**, the auto-discovery fallback.

The kernel never touches config file formats directly.
"""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

import yaml

from stateful.kernel.config.models import LoggingConfig, StatefulConfig
from stateful.kernel.config.runtime import set_runtime_config
from stateful.kernel.exceptions import ConfigurationError
from stateful.kernel.logging import get_logger

_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("console", "json", "structured", "dual", "rich")

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str) -> StatefulConfig:
    """Cached configuration loader."""
    return ConfigLoader()._load_and_parse(Path(path_str))


class ConfigLoader:
    """Loads and processes stateful configuration files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def load_config_file(self, path: str | Path | None = None) -> StatefulConfig:
        """Load configuration from YAML or pyproject.toml.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        """
        config_path = self._find_config_file(path)
        return _load_and_parse_cached(str(config_path.absolute()))

    def _load_and_parse(self, config_path: Path) -> StatefulConfig:
        logger.info("Loading configuration from {path}", path=config_path)

        if config_path.suffix in (".yaml", ".yml"):
            return self._load_yaml_config(config_path)
        return self._load_toml_config(config_path)

    def _load_yaml_config(self, config_path: Path) -> StatefulConfig:
        """Load and parse a kind: Config YAML file.

        Raises
        ------
        ConfigurationError
            If the YAML file is not a valid kind: Config manifest
        """
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(
                config_path.name, f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                config_path.name, f"config files must use 'kind: Config', got 'kind: {kind}'"
            )

        spec = data.get("spec") or {}
        if not isinstance(spec, dict):
            raise ConfigurationError(config_path.name, "'spec' must be a mapping")

        return self._parse_config(self._substitute_env_vars(spec))

    def _load_toml_config(self, config_path: Path) -> StatefulConfig:
        """Load and parse a TOML config file (pyproject.toml or a flat file)."""
        with config_path.open("rb") as f:
            data = tomllib.load(f)

        if config_path.name == "pyproject.toml":
            section = data.get("tool", {}).get("stateful", {})
            if not section:
                logger.warning("No [tool.stateful] section found in pyproject.toml, using defaults")
                return get_default_config()
        elif "stateful" in data.get("tool", {}):
            section = data["tool"]["stateful"]
        else:
            section = data

        return self._parse_config(self._substitute_env_vars(section))

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``STATEFUL_CONFIG_PATH`` env var
        3. ``pyproject.toml`` in CWD
        4. ``pyproject.toml`` in parent directories (with ``[tool.stateful]``)

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv("STATEFUL_CONFIG_PATH"):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from STATEFUL_CONFIG_PATH: {}", config_path)
                return config_path
            logger.warning("STATEFUL_CONFIG_PATH set but file not found: {}", config_path)

        if Path("pyproject.toml").exists():
            return Path("pyproject.toml")

        current = Path.cwd()
        while current != current.parent:
            pyproject = current / "pyproject.toml"
            if pyproject.exists():
                with pyproject.open("rb") as f:
                    data = tomllib.load(f)
                if "stateful" in data.get("tool", {}):
                    return pyproject
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Provide a kind: Config YAML path, "
            "set STATEFUL_CONFIG_PATH, or add [tool.stateful] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively replace ``${VAR}`` with environment values.

        Unknown variables keep their placeholder.
        """
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    logger.debug(
                        "Environment variable ${{{var_name}}} not found, keeping placeholder",
                        var_name=var_name,
                    )
                    return match.group(0)
                return value

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> StatefulConfig:
        """Parse format-agnostic configuration data into StatefulConfig."""
        fallback = data.get("strict_persist_fallback", False)
        if isinstance(fallback, str):
            fallback = _parse_bool_env(fallback)

        return StatefulConfig(
            default_attribute=data.get("default_attribute", "state"),
            strict_persist_fallback=bool(fallback),
            logging=self._parse_logging_config(data.get("logging") or {}),
        )

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration with environment variable overrides.

        Environment variables take precedence over config file values:
        - STATEFUL_LOG_LEVEL: Log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - STATEFUL_LOG_FORMAT: Output format (console, json, structured, rich, dual)
        - STATEFUL_LOG_FILE: Optional file path for log output
        - STATEFUL_LOG_COLOR: Use color output (true/false)
        - STATEFUL_LOG_TIMESTAMP: Include timestamp (true/false)
        - STATEFUL_LOG_STDLIB_BRIDGE: Enable stdlib logging bridge (true/false)
        - STATEFUL_LOG_BACKTRACE: Enable backtrace in logs (true/false)
        - STATEFUL_LOG_DIAGNOSE: Enable diagnose mode (true/false)
        """
        level = str(logging_data.get("level", "WARNING")).upper()
        format_type = str(logging_data.get("format", "structured")).lower()
        output_file = logging_data.get("output_file")
        flags = {
            "use_color": logging_data.get("use_color", True),
            "include_timestamp": logging_data.get("include_timestamp", True),
            "enable_stdlib_bridge": logging_data.get("enable_stdlib_bridge", False),
            "backtrace": logging_data.get("backtrace", True),
            "diagnose": logging_data.get("diagnose", True),
        }

        if env_level := os.getenv("STATEFUL_LOG_LEVEL"):
            level = env_level.upper()
            logger.debug("Overriding log level from env: {}", level)

        if env_format := os.getenv("STATEFUL_LOG_FORMAT"):
            format_type = env_format.lower()
            logger.debug("Overriding log format from env: {}", format_type)

        if env_file := os.getenv("STATEFUL_LOG_FILE"):
            output_file = env_file
            logger.debug("Overriding log file from env: {}", output_file)

        env_flags = {
            "use_color": "STATEFUL_LOG_COLOR",
            "include_timestamp": "STATEFUL_LOG_TIMESTAMP",
            "enable_stdlib_bridge": "STATEFUL_LOG_STDLIB_BRIDGE",
            "backtrace": "STATEFUL_LOG_BACKTRACE",
            "diagnose": "STATEFUL_LOG_DIAGNOSE",
        }
        for flag, env_var in env_flags.items():
            if env_value := os.getenv(env_var):
                try:
                    flags[flag] = _parse_bool_env(env_value)
                    logger.debug("Overriding {} from env: {}", flag, flags[flag])
                except ValueError as e:
                    logger.warning("Invalid {} value: {}", env_var, e)

        if level not in _LOG_LEVELS:
            raise ConfigurationError("logging", f"unknown log level {level!r}")
        if format_type not in _LOG_FORMATS:
            raise ConfigurationError("logging", f"unknown log format {format_type!r}")

        return LoggingConfig(
            level=cast("Any", level),
            format=cast("Any", format_type),
            output_file=output_file,
            **{flag: bool(value) for flag, value in flags.items()},
        )


@lru_cache(maxsize=32)
def _cached_load_config(path_str: str | None) -> StatefulConfig:
    try:
        return ConfigLoader().load_config_file(Path(path_str) if path_str else None)
    except FileNotFoundError:
        logger.info("No configuration file found, using defaults")
        return get_default_config()


def load_config(path: str | Path | None = None) -> StatefulConfig:
    """Load configuration from file, or defaults when none is found.

    An explicit ``path`` that does not exist still raises FileNotFoundError.
    """
    if path is not None and not Path(path).exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    return _cached_load_config(str(path) if path is not None else None)


def clear_config_cache() -> None:
    """Clear all configuration caches.

    Useful for testing or when configuration files have been modified.
    """
    _cached_load_config.cache_clear()
    _load_and_parse_cached.cache_clear()


def get_default_config() -> StatefulConfig:
    return StatefulConfig()


def configure(path: str | Path | None = None) -> StatefulConfig:
    """Load configuration and make it the runtime configuration.

    Examples
    --------
    Example usage::

        from stateful.compiler import configure

        configure()  # discovers [tool.stateful] in pyproject.toml
    """
    config = load_config(path)
    set_runtime_config(config)
    return config
