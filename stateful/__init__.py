"""Stateful: hierarchical state attributes with transition hooks.

Declare a state attribute on a class, query and change it, and attach
hooks that run at fixed points of every transition::

    from stateful import Phase, StateAttribute, Stateful

    class Kata(Stateful):
        state = StateAttribute(
            default="draft",
            states={
                "draft": "beta",
                "beta": {"needs_testing": "needs_approval", "needs_approval": "approved"},
                "approved": None,
            },
        )

        @state.hook(Phase.AFTER_COMMIT, to="approved")
        def announce(self, from_state, to_state): ...
"""

# Version is defined in pyproject.toml and read dynamically
try:
    from importlib.metadata import version

    __version__ = version("stateful")
except Exception:
    __version__ = "0.0.0.dev0"  # Fallback for development installs

from stateful.api import (
    EventBinding,
    HookDeclaration,
    StateAttribute,
    StateAttributeController,
    Stateful,
)
from stateful.compiler import (
    configure,
    load_config,
    load_state_attributes,
    state_attribute_from_yaml,
)
from stateful.kernel.context import acting_as, set_current_actor, unprotected
from stateful.kernel.domain import AttributeOptions, StateNode, StateTree, build_state_tree
from stateful.kernel.exceptions import (
    ConfigurationError,
    DefinitionLoaderError,
    ProtectedTransitionError,
    ReservedStateNameError,
    StateChangeError,
    StatefulError,
    UnknownStateError,
    ValidationError,
)
from stateful.kernel.logging import configure_logging, get_logger
from stateful.kernel.pipeline import AUTO, CallbackPipeline, PipelineStage
from stateful.kernel.rules import ANY_EVENT, NON_EVENT, Phase, WhenTransition

__all__ = [
    "ANY_EVENT",
    "AUTO",
    "NON_EVENT",
    "AttributeOptions",
    "CallbackPipeline",
    "ConfigurationError",
    "DefinitionLoaderError",
    "EventBinding",
    "HookDeclaration",
    "Phase",
    "PipelineStage",
    "ProtectedTransitionError",
    "ReservedStateNameError",
    "StateAttribute",
    "StateAttributeController",
    "StateChangeError",
    "StateNode",
    "StateTree",
    "Stateful",
    "StatefulError",
    "UnknownStateError",
    "ValidationError",
    "WhenTransition",
    "__version__",
    "acting_as",
    "build_state_tree",
    "configure",
    "configure_logging",
    "get_logger",
    "load_config",
    "load_state_attributes",
    "set_current_actor",
    "state_attribute_from_yaml",
    "unprotected",
]
