"""Declaration API: the ``Stateful`` base class and ``StateAttribute`` descriptor."""

from stateful.api.attribute import HookDeclaration, StateAttribute
from stateful.api.controller import StateAttributeController
from stateful.api.entity import Stateful
from stateful.api.events import EventBinding, get_active_event

__all__ = [
    "EventBinding",
    "HookDeclaration",
    "StateAttribute",
    "StateAttributeController",
    "Stateful",
    "get_active_event",
]
