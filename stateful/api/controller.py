"""Per-entity, per-attribute API over the state tree, rules and pipeline."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from stateful.kernel.config import get_runtime_config
from stateful.kernel.context import is_unprotected
from stateful.kernel.domain.transition import TransitionRecord
from stateful.kernel.pipeline import AUTO, CallbackPipeline
from stateful.kernel.ports.host import SupportsChanges
from stateful.kernel.rules.builder import add_entity_error
from stateful.kernel.rules.phases import Phase, coerce_phase

if TYPE_CHECKING:
    from stateful.api.attribute import StateAttribute
    from stateful.kernel.domain.state_node import StateNode
    from stateful.kernel.rules.store import TransitionRuleStore


class StateAttributeController:
    """Operations on one state attribute of one entity.

    Obtained through ``entity.state_controller(name)``; cheap to create.
    """

    def __init__(self, entity: Any, attribute: StateAttribute, store: TransitionRuleStore) -> None:
        self.entity = entity
        self.attribute = attribute
        self.store = store

    def __repr__(self) -> str:
        return f"StateAttributeController({self.name!r}, value={self.value!r})"

    @property
    def name(self) -> str:
        return self.attribute.name

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def value(self) -> str | None:
        """The current stored value (or the default)."""
        return self.attribute.__get__(self.entity)

    @property
    def info(self) -> StateNode | None:
        """Node of the current value, None when the value is unknown."""
        return self.attribute.tree.get(self.value)

    @property
    def is_valid(self) -> bool:
        """True when the current value is a known leaf (never-set included)."""
        node = self.info
        return node is not None and node.is_leaf

    @property
    def events(self) -> dict[str, Any]:
        return self.attribute.events

    def in_state(self, name: str) -> bool:
        """True if the current value is ``name`` or nested under group ``name``."""
        node = self.info
        return node is not None and node.is_within(name)

    def can_transition_to(self, to_state: str | None) -> bool:
        return self.attribute.tree.can_transition(self.value, to_state)

    def allowable_events(self) -> list[str]:
        """Events whose every target is reachable from the current value.

        A group target requires all of its leaves to be reachable; events
        declared without a target are never listed.
        """
        tree = self.attribute.tree
        allowed = []
        for event in self.attribute.options.events:
            targets = self.attribute.options.event_targets(event)
            if not targets:
                continue
            if all(
                self.can_transition_to(leaf)
                for target in targets
                for leaf in tree.collect_leaf_states(target)
            ):
                allowed.append(event)
        return allowed

    @property
    def previous_value(self) -> str | None:
        """Value before the pending, unpersisted change (None when unchanged)."""
        change = self._pending_change()
        return change[0] if change else None

    @property
    def previous_info(self) -> StateNode | None:
        change = self._pending_change()
        return self.attribute.tree.get(change[0]) if change else None

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def change(
        self,
        to_state: str,
        event: str | None = None,
        *,
        callback: Callable[[str | None], Any] | None = None,
        persist_method: str | None = AUTO,
    ) -> bool:
        """Change the state; False on a no-op, an illegal target or failed persistence."""
        return self._run(to_state, event, callback, persist_method, strict=False)

    def change_strict(
        self,
        to_state: str,
        event: str | None = None,
        *,
        callback: Callable[[str | None], Any] | None = None,
        persist_method: str | None = AUTO,
    ) -> bool:
        """Change the state; raises StateChangeError on an illegal target."""
        return self._run(to_state, event, callback, persist_method, strict=True)

    def _run(
        self,
        to_state: str,
        event: str | None,
        callback: Callable[[str | None], Any] | None,
        persist_method: str | None,
        *,
        strict: bool,
    ) -> bool:
        record = TransitionRecord(
            attribute=self.name,
            from_state=self.value,
            to_state=to_state,
            event=event,
            callback=callback,
            strict=strict,
            unprotected=is_unprotected(),
        )
        pipeline = CallbackPipeline(
            self.entity,
            self.attribute.tree,
            self.store,
            record,
            persist_method=persist_method,
            persist_fallback=get_runtime_config().strict_persist_fallback,
        )
        return pipeline.run()

    # ------------------------------------------------------------------
    # Host lifecycle support
    # ------------------------------------------------------------------

    def _pending_change(self) -> tuple[Any, Any] | None:
        if not isinstance(self.entity, SupportsChanges):
            return None
        change = self.entity.attribute_change(self.name)
        if not change or change[0] == change[1]:
            return None
        return change

    def validate(self) -> bool:
        """Add inclusion and pending-transition errors to the entity.

        Returns True when no error was added.
        """
        options = self.attribute.options
        valid = True
        value = self.value
        if not self.is_valid or (value is None and not options.allow_none):
            add_entity_error(self.entity, self.name, options.message)
            valid = False

        if options.validate_on_change:
            change = self._pending_change()
            if change and not self.attribute.tree.can_transition(change[0], change[1]):
                add_entity_error(
                    self.entity,
                    self.name,
                    f"{change[1]} is not a valid transition state from {change[0]}",
                )
                valid = False
        return valid

    def process_transition_from_changes(self, phase: Phase | str) -> bool:
        """Run the hooks of ``phase`` for the pending change pair.

        For hosts that drive hooks from their own save lifecycle instead of
        ``change``. Entering a tracked state is recorded after
        the BEFORE_COMMIT hooks ran. Returns False when there is no pending change.
        """
        change = self._pending_change()
        if change is None:
            return False
        phase = coerce_phase(phase)
        record = TransitionRecord(
            attribute=self.name,
            from_state=change[0],
            to_state=change[1],
            unprotected=is_unprotected(),
        )
        pipeline = CallbackPipeline(self.entity, self.attribute.tree, self.store, record)
        pipeline.run_phase(phase)
        if phase is Phase.BEFORE_COMMIT:
            pipeline.track()
        return True
