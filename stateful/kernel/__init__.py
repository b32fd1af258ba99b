"""Kernel of the stateful library: state trees, hook rules and the transition pipeline.

The kernel knows nothing about how entities declare their attributes; the
``stateful.api`` layer builds on it.
"""

from stateful.kernel.context import acting_as, is_unprotected, set_current_actor, unprotected
from stateful.kernel.domain import StateNode, StateTree, TransitionRecord, build_state_tree
from stateful.kernel.exceptions import (
    ConfigurationError,
    ProtectedTransitionError,
    StateChangeError,
    StatefulError,
    UnknownStateError,
)
from stateful.kernel.pipeline import CallbackPipeline, PipelineStage
from stateful.kernel.rules import Phase, TransitionRuleStore, WhenTransition

__all__ = [
    "CallbackPipeline",
    "ConfigurationError",
    "Phase",
    "PipelineStage",
    "ProtectedTransitionError",
    "StateChangeError",
    "StateNode",
    "StateTree",
    "StatefulError",
    "TransitionRecord",
    "TransitionRuleStore",
    "UnknownStateError",
    "WhenTransition",
    "acting_as",
    "build_state_tree",
    "is_unprotected",
    "set_current_actor",
    "unprotected",
]
