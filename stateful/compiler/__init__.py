"""Compiler layer: turns configuration files and YAML manifests into kernel models."""

from stateful.compiler.config_loader import (
    ConfigLoader,
    clear_config_cache,
    configure,
    get_default_config,
    load_config,
)
from stateful.compiler.definition_loader import (
    StateMachineLoader,
    clear_definition_cache,
    load_state_attributes,
    load_state_machines,
    state_attribute_from_yaml,
)

__all__ = [
    "ConfigLoader",
    "StateMachineLoader",
    "clear_config_cache",
    "clear_definition_cache",
    "configure",
    "get_default_config",
    "load_config",
    "load_state_attributes",
    "load_state_machines",
    "state_attribute_from_yaml",
]
