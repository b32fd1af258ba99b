"""Declaring a state attribute on a class with ``StateAttribute``.

Example::

    class Ticket(Stateful):
        status = StateAttribute(
            default="open",
            states={
                "open": ["in_progress", "closed"],
                "active": {"in_progress": ["blocked", "resolved"], "blocked": "in_progress"},
                "resolved": ["open", "closed"],
                "closed": None,
            },
            track=["resolved"],
        )

        @status.hook(Phase.AFTER_COMMIT, to="resolved")
        def notify_reporter(self, from_state, to_state): ...

The state tree is compiled when the declaration is evaluated, so a bad
declaration fails while the class body runs.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from stateful.kernel.domain.options import AttributeOptions
from stateful.kernel.domain.state_node import WILDCARD
from stateful.kernel.domain.state_tree import StateTree, build_state_tree
from stateful.kernel.exceptions import ConfigurationError
from stateful.kernel.logging import get_logger_for_component
from stateful.kernel.rules.phases import ANY_EVENT, Phase, coerce_phase

if TYPE_CHECKING:
    from stateful.api.events import EventBinding
    from stateful.kernel.rules.builder import StateSelector


_HOOKS_ATTR = "__stateful_hooks__"
_PREDICATE_ATTR = "__stateful_predicate__"


@dataclass(frozen=True, slots=True)
class HookDeclaration:
    """A hook declared with ``StateAttribute.hook`` in a class body.

    Registered into the class's rule store when the class is created.
    """

    attribute: StateAttribute
    phase: Phase
    from_states: StateSelector = WILDCARD
    to_states: StateSelector = WILDCARD
    event: str = ANY_EVENT
    run_once: bool | None = None
    protected: bool = False


def declared_hooks(fn: Any) -> list[HookDeclaration]:
    """Hook declarations attached to a class-body function."""
    return list(getattr(fn, _HOOKS_ATTR, ()))


def _make_predicate(attribute_name: str, state: str) -> Callable[[Any], bool]:
    def predicate(self: Any) -> bool:
        return self.state_controller(attribute_name).in_state(state)

    predicate.__doc__ = f"True when {attribute_name} is {state!r} or nested under it."
    setattr(predicate, _PREDICATE_ATTR, True)
    return predicate


class StateAttribute:
    """Data descriptor declaring one state attribute.

    Class access returns the declaration; instance access returns the
    stored value, or ``default`` when nothing was stored.
    """

    def __init__(
        self,
        states: dict[str, Any] | None = None,
        *,
        options: AttributeOptions | None = None,
        **kwargs: Any,
    ) -> None:
        if options is None:
            if states is not None:
                kwargs["states"] = states
            options = AttributeOptions.parse(kwargs)
        elif states is not None or kwargs:
            raise ConfigurationError(options.name, "pass either options or keyword options")

        self.options = options
        self.name = options.name
        self.owner: type | None = None
        self.tree = self._compile(options)

    def __repr__(self) -> str:
        owner = self.owner.__qualname__ if self.owner else None
        return f"StateAttribute({self.name!r}, owner={owner!r})"

    @staticmethod
    def _compile(options: AttributeOptions) -> StateTree:
        tree = build_state_tree(options.name, options.states, options.track)
        if options.default is not None:
            node = tree.require(options.default)
            if node.is_group:
                raise ConfigurationError(
                    options.name, f"default {options.default!r} is a group, not a state"
                )
        for event in options.events:
            for target in options.event_targets(event):
                tree.require(target)
        return tree

    # ------------------------------------------------------------------
    # Descriptor protocol
    # ------------------------------------------------------------------

    def __set_name__(self, owner: type, name: str) -> None:
        self.owner = owner
        if name != self.name:
            self.options = self.options.model_copy(update={"name": name})
            self.name = name
            self.tree = self._compile(self.options)
        self._define_predicates(owner)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        value = vars(instance).get(self.name)
        return self.options.default if value is None else value

    def __set__(self, instance: Any, value: str | None) -> None:
        old = self.__get__(instance)
        vars(instance)[self.name] = value
        note_change = getattr(instance, "_note_attribute_change", None)
        if note_change is not None:
            note_change(self.name, old, value)

    def _define_predicates(self, owner: type) -> None:
        prefix = self.options.predicate_prefix
        log = get_logger_for_component("attribute", f"{owner.__qualname__}.{self.name}")
        for state in self.tree.names():
            method = f"is_{prefix}{state}"
            existing = getattr(owner, method, None)
            if existing is not None and not getattr(existing, _PREDICATE_ATTR, False):
                log.warning(
                    "{owner}.{method} already exists; predicate for {state} not generated",
                    owner=owner.__qualname__,
                    method=method,
                    state=state,
                )
                continue
            setattr(owner, method, _make_predicate(self.name, state))

    # ------------------------------------------------------------------
    # Declaration helpers
    # ------------------------------------------------------------------

    @property
    def default(self) -> str | None:
        return self.options.default

    @property
    def events(self) -> dict[str, Any]:
        return dict(self.options.events)

    @property
    def values(self) -> list[str]:
        """Every declared state and group name."""
        return self.tree.names()

    def hook(
        self,
        phase: Phase | str,
        *,
        from_: StateSelector = WILDCARD,
        to: StateSelector = WILDCARD,
        event: str = ANY_EVENT,
        run_once: bool | None = None,
        protected: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorate a method as a transition hook of this attribute.

        The method is called as ``method(self, from_state, to_state)``.
        Use ``@Base.status.hook(...)`` in a subclass body to add hooks for
        an inherited attribute.
        """
        declaration = HookDeclaration(
            attribute=self,
            phase=coerce_phase(phase),
            from_states=from_,
            to_states=to,
            event=event,
            run_once=run_once,
            protected=protected,
        )

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            hooks = list(getattr(fn, _HOOKS_ATTR, ()))
            hooks.append(declaration)
            setattr(fn, _HOOKS_ATTR, hooks)
            return fn

        return decorator

    def event(
        self, fn: Callable[..., Any] | None = None, *, name: str | None = None
    ) -> Any:
        """Decorate a method as an event of this attribute.

        Inside the method, ``self.transition_to(state)`` changes this
        attribute tagged with the event name. A ``<method>_strict``
        variant using the strict entry point is generated alongside.
        """
        from stateful.api.events import EventBinding

        def decorator(method: Callable[..., Any]) -> EventBinding:
            return EventBinding(self, method, event=name)

        return decorator(fn) if fn is not None else decorator
