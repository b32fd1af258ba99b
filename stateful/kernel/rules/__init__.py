"""Transition hook declaration and storage."""

from stateful.kernel.rules.builder import FromTransition, WhenTransition, add_entity_error
from stateful.kernel.rules.phases import ANY_EVENT, NON_EVENT, EventScope, Phase, coerce_phase
from stateful.kernel.rules.store import CallbackHandle, TransitionRuleStore

__all__ = [
    "ANY_EVENT",
    "NON_EVENT",
    "CallbackHandle",
    "EventScope",
    "FromTransition",
    "Phase",
    "TransitionRuleStore",
    "WhenTransition",
    "add_entity_error",
    "coerce_phase",
]
