"""The transition pipeline: the protocol run on every state change attempt.

Stages::

    REQUESTED -> VALIDATING -> COMMITTING -> AFTER_COMMIT -> DONE
                     |             |
                     +-> ABORTED <-+

1. REQUESTED: a change to the current value is a no-op (``False``).
2. VALIDATING: legality check (strict runs raise StateChangeError, lenient
   runs abort), then BEFORE_CHANGE, BEFORE_VALIDATION, VALIDATE and
   AFTER_VALIDATION hooks. Validation errors are collected by the host;
   they do not stop the pipeline.
3. COMMITTING: the attribute is set, the caller's callback receives the
   previous value, BEFORE_COMMIT hooks run, tracked states are stamped and
   persistence is delegated to the host. A ``False`` result aborts.
4. AFTER_COMMIT: AFTER_COMMIT hooks (run-once per pair) then AFTER_CHANGE.

Nothing is rolled back on abort or on a hook error: the attribute keeps
its new value and hook exceptions propagate unchanged.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from stateful.kernel.context import get_current_actor
from stateful.kernel.domain.transition import TrackingRecord, TransitionRecord
from stateful.kernel.exceptions import StateChangeError
from stateful.kernel.logging import get_logger
from stateful.kernel.ports.host import SupportsCurrentActor, find_persist_method
from stateful.kernel.rules.phases import Phase

if TYPE_CHECKING:
    from stateful.kernel.domain.state_tree import StateTree
    from stateful.kernel.rules.store import CallbackHandle, TransitionRuleStore

logger = get_logger(__name__)

#: Sentinel for "discover the persistence method from the host's protocols".
AUTO = "auto"

_RAN_HOOKS_ATTR = "_stateful_ran_hooks"


class PipelineStage(StrEnum):
    """Where a pipeline run currently is, or where it ended."""

    REQUESTED = "requested"
    VALIDATING = "validating"
    COMMITTING = "committing"
    AFTER_COMMIT = "after_commit"
    DONE = "done"
    ABORTED = "aborted"


def ran_hooks(entity: Any) -> dict[tuple[str, str, str], set[int]]:
    """Run-once bookkeeping of an entity: (attribute, from, to) -> handle ids."""
    return vars(entity).setdefault(_RAN_HOOKS_ATTR, {})


def current_actor_for(entity: Any) -> Any:
    """The actor supplied by the entity, else the ambient current actor."""
    if isinstance(entity, SupportsCurrentActor):
        actor = entity.current_actor
        actor = actor() if callable(actor) else actor
        if actor is not None:
            return actor
    return get_current_actor()


class CallbackPipeline:
    """Run one :class:`TransitionRecord` against an entity.

    Parameters
    ----------
    entity : Any
        Host object holding the attribute
    tree : StateTree
        Compiled states of the attribute
    store : TransitionRuleStore
        Hook table of the entity's class (ancestors are merged on lookup)
    record : TransitionRecord
        The requested change
    persist_method : str | None
        ``AUTO`` to discover a persistence method, a method name to call,
        or ``None`` to skip persistence
    persist_fallback : bool
        Let strict runs fall back to lenient persistence methods
    """

    def __init__(
        self,
        entity: Any,
        tree: StateTree,
        store: TransitionRuleStore,
        record: TransitionRecord,
        *,
        persist_method: str | None = AUTO,
        persist_fallback: bool = False,
    ) -> None:
        self.entity = entity
        self.tree = tree
        self.store = store
        self.record = record
        self.persist_method = persist_method
        self.persist_fallback = persist_fallback
        self.stage = PipelineStage.REQUESTED
        self.abort_reason: str | None = None
        self.tracking: TrackingRecord | None = None

    def __repr__(self) -> str:
        record = self.record
        return (
            f"CallbackPipeline({record.attribute}: {record.from_state} -> {record.to_state}, "
            f"stage={self.stage.value})"
        )

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    def run(self) -> bool:
        """Drive the record through every stage. Returns True on success."""
        record = self.record
        if record.to_state == record.from_state:
            return self._abort("no-op")

        self.stage = PipelineStage.VALIDATING
        if not self.tree.can_transition(record.from_state, record.to_state):
            if record.strict:
                self.stage = PipelineStage.ABORTED
                self.abort_reason = "disallowed"
                raise StateChangeError(record.attribute, record.from_state, record.to_state)
            return self._abort("disallowed")

        logger.debug(
            "Transition {attribute}: {from_state} -> {to_state} (event={event})",
            attribute=record.attribute,
            from_state=record.from_state,
            to_state=record.to_state,
            event=record.event,
        )
        self._run_phase(Phase.BEFORE_CHANGE)
        self._run_phase(Phase.BEFORE_VALIDATION)
        self._run_phase(Phase.VALIDATE)
        self._run_phase(Phase.AFTER_VALIDATION)

        self.stage = PipelineStage.COMMITTING
        setattr(self.entity, record.attribute, record.to_state)
        if record.callback is not None:
            record.callback(record.from_state)
        self._run_phase(Phase.BEFORE_COMMIT)
        self.tracking = self.track()
        if not self._persist():
            logger.warning(
                "Persistence failed for {attribute}: {from_state} -> {to_state}",
                attribute=record.attribute,
                from_state=record.from_state,
                to_state=record.to_state,
            )
            return self._abort("persistence failed")

        self.stage = PipelineStage.AFTER_COMMIT
        self._run_phase(Phase.AFTER_COMMIT)
        self._run_phase(Phase.AFTER_CHANGE)

        self.stage = PipelineStage.DONE
        return True

    def run_phase(self, phase: Phase) -> None:
        """Run the hooks of a single phase, outside the full protocol.

        Used by hosts that drive phases from their own save lifecycle.
        """
        self._run_phase(phase)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _abort(self, reason: str) -> bool:
        self.stage = PipelineStage.ABORTED
        self.abort_reason = reason
        logger.debug(
            "Transition {attribute}: {from_state} -> {to_state} aborted ({reason})",
            attribute=self.record.attribute,
            from_state=self.record.from_state,
            to_state=self.record.to_state,
            reason=reason,
        )
        return False

    def _handles(self, phase: Phase) -> list[CallbackHandle]:
        record = self.record
        return self.store.lookup(
            record.attribute, phase, record.from_key, record.to_state, record.event
        )

    def _run_phase(self, phase: Phase) -> None:
        record = self.record
        for handle in self._handles(phase):
            if handle.protected and record.unprotected:
                logger.debug("Skipping protected hook {hook}", hook=handle.name)
                continue
            if handle.run_once:
                ran = ran_hooks(self.entity).setdefault(
                    (record.attribute, record.from_key, record.to_state), set()
                )
                if handle.id in ran:
                    continue
                ran.add(handle.id)
            handle.invoke(self.entity, record)

    def track(self) -> TrackingRecord | None:
        """Stamp the entity when the destination (or an enclosing group) is tracked."""
        node = self.tree.get(self.record.to_state)
        tracked = node.tracked_node() if node is not None else None
        if tracked is None:
            return None

        tracking = TrackingRecord(
            field=tracked.name,
            at=datetime.now(UTC),
            by=current_actor_for(self.entity),
            value=self.record.to_state if tracked.is_group else None,
        )
        for name, value in tracking.as_attributes().items():
            setattr(self.entity, name, value)
        return tracking

    def _persist(self) -> bool:
        method = self.persist_method
        if method == AUTO:
            method = find_persist_method(self.entity, self.record.strict, self.persist_fallback)
        if method is None:
            return True
        return getattr(self.entity, method)() is not False
