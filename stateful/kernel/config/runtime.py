"""The configuration currently in effect."""

from __future__ import annotations

from stateful.kernel.config.models import StatefulConfig
from stateful.kernel.logging import configure_logging

_ACTIVE_CONFIG: StatefulConfig | None = None


def get_runtime_config() -> StatefulConfig:
    """Configuration in effect; defaults until :func:`set_runtime_config` runs."""
    return _ACTIVE_CONFIG if _ACTIVE_CONFIG is not None else StatefulConfig()


def set_runtime_config(config: StatefulConfig | None, *, apply_logging: bool = True) -> None:
    """Install ``config`` (``None`` restores defaults) and apply its logging section."""
    global _ACTIVE_CONFIG

    _ACTIVE_CONFIG = config
    if config is not None and apply_logging:
        log = config.logging
        configure_logging(
            level=log.level,
            format=log.format,
            output_file=log.output_file,
            use_color=log.use_color,
            include_timestamp=log.include_timestamp,
            enable_stdlib_bridge=log.enable_stdlib_bridge,
            backtrace=log.backtrace,
            diagnose=log.diagnose,
        )
