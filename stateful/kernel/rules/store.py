"""Per-class tables of transition hooks.

Every class using the library owns one :class:`TransitionRuleStore`. A
store maps ``attribute -> phase -> from -> to -> [CallbackHandle]`` and
records a link to the store of its nearest ancestor class. Under multiple
inheritance the owning class passes every ancestor store explicitly, in
reversed MRO order. Stores are append-only; a subclass never writes into
its parent's store.

Lookups walk the ancestor chain root-most first, so a base class's hooks
for a given phase and state pair always run before the subclass's.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from stateful.kernel.domain.transition import TransitionRecord
from stateful.kernel.rules.phases import ANY_EVENT, NON_EVENT, Phase

HookCallable = Callable[[Any, str | None, str], Any]

_handle_ids = itertools.count(1)


@dataclass(frozen=True, slots=True)
class CallbackHandle:
    """A registered hook plus the metadata the pipeline needs to run it.

    Attributes
    ----------
    callback : HookCallable
        Called as ``callback(entity, from_state, to_state)``
    phase : Phase
        Pipeline phase the hook belongs to
    event : str
        Event name, ``ANY_EVENT`` or ``NON_EVENT``
    run_once : bool
        Run at most once per (attribute, from, to) pair per entity
    protected : bool
        Skipped while an unprotected scope is active
    id : int
        Stable identity used for run-once bookkeeping
    """

    callback: HookCallable
    phase: Phase
    event: str = ANY_EVENT
    run_once: bool = False
    protected: bool = False
    id: int = field(default_factory=lambda: next(_handle_ids))

    def matches_event(self, event: str | None) -> bool:
        if self.event == ANY_EVENT:
            return True
        if self.event == NON_EVENT:
            return event is None
        return self.event == event

    def invoke(self, entity: Any, record: TransitionRecord) -> Any:
        return self.callback(entity, record.from_state, record.to_state)

    @property
    def name(self) -> str:
        return getattr(self.callback, "__qualname__", repr(self.callback))


_Table = dict[str, dict[Phase, dict[str, dict[str, list[CallbackHandle]]]]]


class TransitionRuleStore:
    """Hook table of one class, linked to its parent class's table."""

    def __init__(
        self,
        owner: str,
        parent: TransitionRuleStore | None = None,
        *,
        ancestors: Iterable[TransitionRuleStore] | None = None,
    ) -> None:
        self.owner = owner
        self.parent = parent
        self._ancestors = tuple(ancestors) if ancestors is not None else None
        self._table: _Table = {}

    def __repr__(self) -> str:
        parent = self.parent.owner if self.parent else None
        return f"TransitionRuleStore({self.owner!r}, parent={parent!r}, hooks={len(self)})"

    def __len__(self) -> int:
        return sum(1 for _ in self.handles())

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(
        self,
        attribute: str,
        from_states: Iterable[str],
        to_states: Iterable[str],
        handle: CallbackHandle,
    ) -> int:
        """Append ``handle`` for every (from, to) pair, skipping self-loops.

        State names must already be expanded to leaves. Returns the number
        of pairs the handle was registered for.
        """
        targets = list(to_states)
        by_from = self._table.setdefault(attribute, {}).setdefault(handle.phase, {})
        added = 0
        for from_state in from_states:
            by_to = by_from.setdefault(from_state, {})
            for to_state in targets:
                if to_state == from_state:
                    continue
                by_to.setdefault(to_state, []).append(handle)
                added += 1
        return added

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def own(self, attribute: str, phase: Phase, from_state: str, to_state: str) -> list[CallbackHandle]:
        """Handles declared on this store only."""
        return (
            self._table.get(attribute, {}).get(phase, {}).get(from_state, {}).get(to_state, [])
        )

    @cached_property
    def chain(self) -> tuple[TransitionRuleStore, ...]:
        """This store and its ancestors, root-most first."""
        if self._ancestors is not None:
            return (*self._ancestors, self)
        stores: list[TransitionRuleStore] = []
        store: TransitionRuleStore | None = self
        while store is not None:
            stores.append(store)
            store = store.parent
        return tuple(reversed(stores))

    def lookup(
        self,
        attribute: str,
        phase: Phase,
        from_state: str,
        to_state: str,
        event: str | None = None,
    ) -> list[CallbackHandle]:
        """Ancestor-merged handles for one transition, in execution order."""
        return [
            handle
            for store in self.chain
            for handle in store.own(attribute, phase, from_state, to_state)
            if handle.matches_event(event)
        ]

    def handles(self) -> Iterator[CallbackHandle]:
        """Every handle declared on this store (duplicates per pair included)."""
        for phases in self._table.values():
            for by_from in phases.values():
                for by_to in by_from.values():
                    for handles in by_to.values():
                        yield from handles

    def has_rules(self) -> bool:
        return any(store._table for store in self.chain)
