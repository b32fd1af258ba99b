"""Named events: methods whose state changes are tagged with an event name.

While an event method runs, ``entity.transition_to(state)`` routes
through ``change`` (or ``change_strict`` for the ``_strict`` variant) with
the event name attached, so hooks scoped with ``.on(event)`` fire in
addition to the unscoped ones.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stateful.api.attribute import StateAttribute

_ACTIVE_EVENTS_ATTR = "_stateful_active_events"


@dataclass(frozen=True, slots=True)
class ActiveEvent:
    """An event method currently running on an entity."""

    attribute: str
    name: str
    strict: bool


def active_events(entity: Any) -> list[ActiveEvent]:
    """Events running on ``entity``, outermost first."""
    return vars(entity).setdefault(_ACTIVE_EVENTS_ATTR, [])


def get_active_event(entity: Any, attribute: str | None = None) -> ActiveEvent | None:
    """Innermost running event, optionally limited to one attribute."""
    for active in reversed(vars(entity).get(_ACTIVE_EVENTS_ATTR, ())):
        if attribute is None or active.attribute == attribute:
            return active
    return None


@contextmanager
def event_scope(entity: Any, attribute: str, event: str, strict: bool) -> Iterator[ActiveEvent]:
    """Mark ``event`` as running for ``attribute`` until the block exits."""
    events = active_events(entity)
    current = ActiveEvent(attribute, event, strict)
    events.append(current)
    try:
        yield current
    finally:
        events.pop()


class EventBinding:
    """Descriptor wrapping an event method of a state attribute."""

    def __init__(
        self,
        attribute: StateAttribute,
        method: Callable[..., Any],
        *,
        event: str | None = None,
        strict: bool = False,
    ) -> None:
        self.attribute = attribute
        self.method = method
        self.event = event
        self.strict = strict
        functools.update_wrapper(self, method)

    def __repr__(self) -> str:
        kind = "strict " if self.strict else ""
        return f"<{kind}event {self.event!r} of {self.attribute.name!r}>"

    def __set_name__(self, owner: type, name: str) -> None:
        if self.event is None:
            self.event = name
        if self.strict:
            return
        strict_name = f"{name}_strict"
        if strict_name not in vars(owner):
            setattr(
                owner,
                strict_name,
                EventBinding(self.attribute, self.method, event=self.event, strict=True),
            )

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return functools.partial(self.__call__, instance)

    def __call__(self, instance: Any, *args: Any, **kwargs: Any) -> Any:
        with event_scope(instance, self.attribute.name, str(self.event), self.strict):
            return self.method(instance, *args, **kwargs)
