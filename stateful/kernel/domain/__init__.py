"""Domain models: state nodes, state trees, options and transition records."""

from stateful.kernel.domain.options import AttributeOptions
from stateful.kernel.domain.state_node import NO_STATE, WILDCARD, StateNode
from stateful.kernel.domain.state_tree import StateTree, build_state_tree, state_key
from stateful.kernel.domain.transition import TrackingRecord, TransitionRecord

__all__ = [
    "NO_STATE",
    "WILDCARD",
    "AttributeOptions",
    "StateNode",
    "StateTree",
    "TrackingRecord",
    "TransitionRecord",
    "build_state_tree",
    "state_key",
]
