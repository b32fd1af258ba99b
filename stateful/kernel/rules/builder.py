"""Fluent DSL for declaring transition hooks.

Example::

    (
        Kata.when_transition("state")
        .from_("draft")
        .to("published")
        .forbid_if(lambda kata, old, new: kata.ready_score < 10)
        .after_commit(notify_reviewers)
    )

    Kata.before_transition_from("state", "*").to("approved", callback=stamp)

State names are expanded against the attribute's tree as soon as they are
given: the wildcard becomes every leaf (and, on the *from* side, the
never-set pseudo-state), a group becomes its leaves. Self-loops produced
by the expansion are dropped when the hook is registered.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from stateful.kernel.domain.state_node import WILDCARD
from stateful.kernel.exceptions import ConfigurationError, ProtectedTransitionError
from stateful.kernel.logging import get_logger
from stateful.kernel.ports.host import SupportsErrors
from stateful.kernel.rules.phases import ANY_EVENT, RUN_ONCE_PHASES, Phase, coerce_phase
from stateful.kernel.rules.store import CallbackHandle, HookCallable, TransitionRuleStore

if TYPE_CHECKING:
    from stateful.kernel.domain.state_tree import StateTree

logger = get_logger(__name__)

StateSelector = str | None | Iterable[str | None]


def _flatten(states: tuple[StateSelector, ...]) -> list[str | None]:
    flat: list[str | None] = []
    for state in states:
        if state is None or isinstance(state, str):
            flat.append(state)
        else:
            flat.extend(state)
    return flat


def add_entity_error(entity: Any, field: str, message: str) -> None:
    """Append a validation error to the host entity."""
    if not isinstance(entity, SupportsErrors):
        raise ConfigurationError(
            type(entity).__name__, "entity does not collect validation errors (add_error)"
        )
    entity.add_error(field, message)


class WhenTransition:
    """Two-stage builder: select states, then attach hooks for a phase."""

    def __init__(self, store: TransitionRuleStore, tree: StateTree, attribute: str) -> None:
        self._store = store
        self._tree = tree
        self._attribute = attribute
        self._from_states = tree.expand([WILDCARD], include_sentinel=True)
        self._to_states = tree.expand([WILDCARD])
        self._event: str = ANY_EVENT

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def from_(self, *states: StateSelector) -> WhenTransition:
        """Select source states; resets the target selection to "any"."""
        self._from_states = self._tree.expand(_flatten(states), include_sentinel=True)
        self._to_states = self._tree.expand([WILDCARD])
        return self

    def to(self, *states: StateSelector) -> WhenTransition:
        """Select target states."""
        self._to_states = self._tree.expand(_flatten(states))
        return self

    def on(self, event: str) -> WhenTransition:
        """Restrict hooks to one event name, ``ANY_EVENT`` or ``NON_EVENT``."""
        self._event = event
        return self

    # ------------------------------------------------------------------
    # Terminals
    # ------------------------------------------------------------------

    def add_callback(
        self,
        phase: Phase | str,
        callback: HookCallable,
        *,
        run_once: bool | None = None,
        protected: bool = False,
    ) -> WhenTransition:
        """Register ``callback`` for the selected pairs in ``phase``."""
        phase = coerce_phase(phase)
        handle = CallbackHandle(
            callback=callback,
            phase=phase,
            event=self._event,
            run_once=phase in RUN_ONCE_PHASES if run_once is None else run_once,
            protected=protected,
        )
        pairs = self._store.add(self._attribute, self._from_states, self._to_states, handle)
        logger.debug(
            "Registered {phase} hook {hook} on {owner}.{attribute} for {pairs} transitions",
            phase=phase.value,
            hook=handle.name,
            owner=self._store.owner,
            attribute=self._attribute,
            pairs=pairs,
        )
        return self

    def before_change(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.BEFORE_CHANGE, callback)

    def before_validation(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.BEFORE_VALIDATION, callback)

    def validate(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.VALIDATE, callback)

    def after_validation(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.AFTER_VALIDATION, callback)

    def before_commit(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.BEFORE_COMMIT, callback)

    def after_commit(self, callback: HookCallable) -> WhenTransition:
        """Register a hook that runs once per (from, to) pair per entity."""
        return self.add_callback(Phase.AFTER_COMMIT, callback)

    def after_change(self, callback: HookCallable) -> WhenTransition:
        return self.add_callback(Phase.AFTER_CHANGE, callback)

    before = before_save = before_commit
    after = after_save = after_commit

    def forbid_if(self, predicate: Callable[[Any, str | None, str], Any]) -> WhenTransition:
        """Add a validation error whenever ``predicate`` returns a truthy value.

        A string result is used as the error message.
        """
        attribute = self._attribute

        def forbid(entity: Any, from_state: str | None, to_state: str) -> None:
            result = predicate(entity, from_state, to_state)
            if result:
                message = (
                    result
                    if isinstance(result, str)
                    else f"Cannot transition from {from_state} to {to_state}"
                )
                add_entity_error(entity, attribute, message)

        forbid.__qualname__ = f"forbid_if({getattr(predicate, '__qualname__', 'predicate')})"
        return self.add_callback(Phase.VALIDATE, forbid)

    def protect(
        self,
        callback: HookCallable | None = None,
        phase: Phase | str = Phase.BEFORE_COMMIT,
    ) -> WhenTransition:
        """Guard the selected transitions unless run inside ``unprotected()``.

        Without ``callback`` the guard raises ProtectedTransitionError;
        with one, the callback runs and may raise its own error.
        """
        attribute = self._attribute

        def guard(entity: Any, from_state: str | None, to_state: str) -> Any:
            if callback is not None:
                return callback(entity, from_state, to_state)
            raise ProtectedTransitionError(attribute, from_state, to_state)

        guard.__qualname__ = f"protect({getattr(callback, '__qualname__', attribute)})"
        return self.add_callback(phase, guard, protected=True)


class FromTransition:
    """Single-phase builder returned by ``transition_from``.

    ``to(*states, callback=fn)`` registers ``fn``; without ``callback`` it
    returns a decorator.
    """

    def __init__(self, builder: WhenTransition, phase: Phase | str) -> None:
        self._builder = builder
        self._phase = coerce_phase(phase)

    def to(self, *states: StateSelector, callback: HookCallable | None = None) -> Any:
        self._builder.to(*states)
        if callback is None:

            def decorator(fn: HookCallable) -> HookCallable:
                self._builder.add_callback(self._phase, fn)
                return fn

            return decorator
        self._builder.add_callback(self._phase, callback)
        return self
