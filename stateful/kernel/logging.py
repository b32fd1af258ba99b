"""Logging for the stateful library, built on Loguru.

Library modules obtain loggers through :func:`get_logger`. Records from
the ``stateful`` package are disabled on import, so a host application
sees nothing until logging is switched on, either explicitly through
:func:`configure_logging` or from the ``STATEFUL_LOG_LEVEL`` and
``STATEFUL_LOG_FORMAT`` environment variables the first time a logger
is requested.

Examples
--------
>>> from stateful.kernel.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.debug("Compiled state tree", attribute="state")

Configure logging globally::

    from stateful.kernel.logging import configure_logging
    configure_logging(level="DEBUG", format="rich")
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import suppress
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from loguru import logger
from rich.logging import RichHandler

if TYPE_CHECKING:
    import types

    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json", "structured", "rich", "dual"]

_CURRENT_CONFIG: dict | None = None
_HANDLER_IDS: list[int] = []

logger.disable("stateful")


def _rich_sink(include_timestamp: bool) -> RichHandler:
    return RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=include_timestamp,
        show_level=True,
        show_path=True,
    )


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    use_color: bool = True,
    include_timestamp: bool = True,
    force_reconfigure: bool = False,
    enable_stdlib_bridge: bool = False,
    backtrace: bool = True,
    diagnose: bool = True,
) -> None:
    """Enable the library's records and configure its log sinks.

    Calling this repeatedly with the same arguments is a no-op. Only the
    handlers added by this function are replaced on reconfiguration, so
    sinks installed by the host application are left alone.

    Parameters
    ----------
    level : LogLevel, default="INFO"
        Minimum log level to output
    format : LogFormat, default="structured"
        - "console": plain single-line output
        - "json": serialized records on stderr
        - "structured": colored single-line output with call site
        - "rich": Rich console handler
        - "dual": Rich on stderr plus JSON on stdout
    output_file : str | Path | None, default=None
        Optional JSON log file, rotated at 10 MB
    use_color : bool, default=True
        Use ANSI colors in the structured format (disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamps in console output
    force_reconfigure : bool, default=False
        Reconfigure even when the settings did not change
    enable_stdlib_bridge : bool, default=False
        Route stdlib ``logging`` records through Loguru
    backtrace : bool, default=True
        Extended tracebacks
    diagnose : bool, default=True
        Show variable values in tracebacks (disable in production)
    """
    global _CURRENT_CONFIG

    current_config = {
        "level": level,
        "format": format,
        "output_file": str(output_file) if output_file else None,
        "use_color": use_color,
        "include_timestamp": include_timestamp,
        "enable_stdlib_bridge": enable_stdlib_bridge,
        "backtrace": backtrace,
        "diagnose": diagnose,
    }

    logger.enable("stateful")

    if not force_reconfigure and current_config == _CURRENT_CONFIG:
        return

    for handler_id in _HANDLER_IDS:
        with suppress(ValueError):
            logger.remove(handler_id)
    _HANDLER_IDS.clear()

    if format == "dual":
        _HANDLER_IDS.append(
            logger.add(
                sink=_rich_sink(include_timestamp),
                level=level,
                format="{message}",
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )
        _HANDLER_IDS.append(
            logger.add(
                sink=sys.stdout,
                level=level,
                serialize=True,
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    elif format == "rich":
        _HANDLER_IDS.append(
            logger.add(
                sink=_rich_sink(include_timestamp),
                level=level,
                format="{message}",
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    elif format == "json":
        _HANDLER_IDS.append(
            logger.add(
                sink=sys.stderr,
                level=level,
                serialize=True,
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    elif format == "structured":
        colorize = use_color and sys.stderr.isatty()
        timestamp_fmt = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> " if include_timestamp else ""
        color_level = "<level>{level: <8}</level>" if colorize else "{level: <8}"
        structured_format = (
            f"{timestamp_fmt}[{color_level}]"
            "<cyan>{name}:{function}:{line}</cyan> | <level>{message}</level>"
        )
        _HANDLER_IDS.append(
            logger.add(
                sink=sys.stderr,
                level=level,
                format=structured_format,
                colorize=colorize,
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    else:  # console
        timestamp_fmt = "{time:YYYY-MM-DD HH:mm:ss} " if include_timestamp else ""
        _HANDLER_IDS.append(
            logger.add(
                sink=sys.stderr,
                level=level,
                format=f"{timestamp_fmt}{{level: <8}} | {{name}} | {{message}}",
                colorize=False,
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _HANDLER_IDS.append(
            logger.add(
                sink=output_path,
                level=level,
                serialize=True,
                rotation="10 MB",
                retention="1 week",
                backtrace=backtrace,
                diagnose=diagnose,
            )
        )

    if enable_stdlib_bridge:
        enable_stdlib_logging_bridge()

    _CURRENT_CONFIG = current_config


@lru_cache(maxsize=256)
def get_logger(name: str) -> Logger:
    """Get a logger bound with the module name (cached).

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__`` of the calling module

    Returns
    -------
    loguru.Logger
        Logger instance bound with ``module=name``
    """
    _ensure_configured()
    return logger.bind(module=name)


@lru_cache(maxsize=128)
def get_logger_for_component(component_type: str, component_name: str) -> Logger:
    """Get a logger for one declared component, e.g. ``("attribute", "Kata.state")``."""
    _ensure_configured()
    return logger.bind(
        module=f"stateful.{component_type}.{component_name}",
        component_type=component_type,
        component_name=component_name,
    )


def enable_stdlib_logging_bridge() -> None:
    """Redirect stdlib ``logging`` records to Loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            level: str | int
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            frame: types.FrameType | None = sys._getframe(6)
            depth = 6
            while frame and frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def reset_logging() -> None:
    """Remove the handlers added by :func:`configure_logging` and silence the library again."""
    global _CURRENT_CONFIG

    for handler_id in _HANDLER_IDS:
        with suppress(ValueError):
            logger.remove(handler_id)
    _HANDLER_IDS.clear()
    _CURRENT_CONFIG = None
    logger.disable("stateful")


def _ensure_configured() -> None:
    """Apply the ``STATEFUL_LOG_*`` environment variables on first use.

    Without either variable the library stays disabled.
    """
    if _CURRENT_CONFIG is not None:
        return
    level = os.getenv("STATEFUL_LOG_LEVEL")
    format_type = os.getenv("STATEFUL_LOG_FORMAT")
    if level is None and format_type is None:
        return
    configure_logging(
        level=(level or "WARNING").upper(),  # type: ignore[arg-type]
        format=(format_type or "structured").lower(),  # type: ignore[arg-type]
    )
