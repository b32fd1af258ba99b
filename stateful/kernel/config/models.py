"""Configuration data models for stateful."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from stateful.kernel.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration.

    Attributes
    ----------
    level : str, default="WARNING"
        Log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, dual, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    enable_stdlib_bridge : bool, default=False
        Route stdlib logging through Loguru
    backtrace : bool, default=True
        Extended tracebacks
    diagnose : bool, default=True
        Show variable values in tracebacks (disable in production)

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.stateful.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export STATEFUL_LOG_LEVEL=DEBUG
    export STATEFUL_LOG_FORMAT=json
    export STATEFUL_LOG_FILE=/var/log/app/stateful.log
    ```
    """

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["console", "json", "structured", "dual", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True
    enable_stdlib_bridge: bool = False
    backtrace: bool = True
    diagnose: bool = True


@dataclass(frozen=True, slots=True)
class StatefulConfig:
    """Runtime configuration of the library.

    Attributes
    ----------
    default_attribute : str
        Attribute used by the entity shortcuts when none is named
    strict_persist_fallback : bool
        Let strict changes use ``persist_state``/``save`` when the host
        has no strict persistence method
    logging : LoggingConfig
        Logging configuration

    Examples
    --------
    TOML configuration in pyproject.toml:

    ```toml
    [tool.stateful]
    default_attribute = "status"
    strict_persist_fallback = true

    [tool.stateful.logging]
    level = "DEBUG"
    ```
    """

    default_attribute: str = "state"
    strict_persist_fallback: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if not self.default_attribute:
            raise ValidationError("default_attribute", "cannot be empty")
