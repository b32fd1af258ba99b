"""Configuration models and the configuration currently in effect."""

from stateful.kernel.config.models import LoggingConfig, StatefulConfig
from stateful.kernel.config.runtime import get_runtime_config, set_runtime_config

__all__ = [
    "LoggingConfig",
    "StatefulConfig",
    "get_runtime_config",
    "set_runtime_config",
]
