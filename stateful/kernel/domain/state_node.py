"""A single node of a state tree: a leaf state or a group of states."""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING

from stateful.kernel.exceptions import ConfigurationError, ReservedStateNameError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stateful.kernel.domain.state_tree import StateTree

#: Name of the pseudo-state held by an attribute that was never set.
NO_STATE = "none"

#: Wildcard marker meaning "every other leaf state".
WILDCARD = "*"

RESERVED_NAMES = frozenset({"new", WILDCARD})


class StateNode:
    """Node in a named state tree.

    A node is either a leaf, which may declare outgoing transitions, or a
    group, which owns child nodes and never declares transitions itself.
    Only leaves can be held as attribute values; groups exist for
    transition expansion and ``is_within`` queries.

    Attributes
    ----------
    name : str
        Identifier, unique within the tree
    attribute : str
        Name of the state attribute owning the tree
    children : list[StateNode]
        Child nodes in declaration order (empty for leaves)
    declared_transitions : tuple[str, ...]
        Targets as written in the declaration; may contain the wildcard
        and group names
    tracked : bool
        Whether entering this node (or a leaf below it) is recorded
    """

    __slots__ = (
        "__weakref__",
        "_parent",
        "_resolved",
        "attribute",
        "children",
        "declared_transitions",
        "group",
        "name",
        "tracked",
    )

    def __init__(
        self,
        name: str,
        *,
        attribute: str = "state",
        parent: StateNode | None = None,
        group: bool = False,
        declared_transitions: tuple[str, ...] = (),
        tracked: bool = False,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ConfigurationError(attribute, f"state names must be non-empty strings, got {name!r}")
        if name in RESERVED_NAMES:
            raise ReservedStateNameError(name, attribute)
        if name == NO_STATE and (group or parent is not None):
            raise ReservedStateNameError(name, attribute)
        if group and declared_transitions:
            raise ConfigurationError(
                attribute, f"group {name!r} cannot declare transitions of its own"
            )

        self.name = name
        self.attribute = attribute
        self.group = group
        self.declared_transitions = declared_transitions
        self.tracked = tracked
        self.children: list[StateNode] = []
        self._resolved: tuple[str, ...] | None = None
        self._parent: weakref.ReferenceType[StateNode] | None = None

        if parent is not None:
            if not parent.group:
                raise ConfigurationError(attribute, f"{parent.name!r} is not a group")
            self._parent = weakref.ref(parent)
            parent.children.append(self)

    def __repr__(self) -> str:
        kind = "group" if self.group else "leaf"
        return f"StateNode({self.name!r}, {kind})"

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def parent(self) -> StateNode | None:
        """The owning group, or None for a top-level node."""
        return self._parent() if self._parent is not None else None

    @property
    def is_group(self) -> bool:
        return self.group

    @property
    def is_leaf(self) -> bool:
        return not self.group

    @property
    def is_sentinel(self) -> bool:
        """True for the never-set pseudo-state."""
        return self.name == NO_STATE

    def ancestors(self) -> Iterator[StateNode]:
        """Yield the enclosing groups, nearest first."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def is_within(self, name: str) -> bool:
        """True if this node is ``name`` or nested (at any depth) under it."""
        if self.name == name:
            return True
        return any(ancestor.name == name for ancestor in self.ancestors())

    def collect_leaf_states(self) -> list[str]:
        """Names of the leaves at or below this node, in declaration order."""
        if not self.group:
            return [self.name]
        return [leaf for child in self.children for leaf in child.collect_leaf_states()]

    def tracked_node(self) -> StateNode | None:
        """This node if tracked, else the nearest tracked ancestor group."""
        if self.tracked:
            return self
        return next((ancestor for ancestor in self.ancestors() if ancestor.tracked), None)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @property
    def is_resolved(self) -> bool:
        return self._resolved is not None

    @property
    def resolved_transitions(self) -> tuple[str, ...]:
        """Leaf states reachable from this node, after expansion."""
        if self._resolved is None:
            raise ConfigurationError(self.attribute, f"transitions of {self.name!r} not resolved")
        return self._resolved

    def resolve(self, tree: StateTree) -> None:
        """Expand declared transitions into concrete leaf names.

        The wildcard becomes every other leaf; a group becomes its
        descendant leaves. The node itself is never a target. Calling this
        again after the first resolution does nothing.
        """
        if self._resolved is not None:
            return
        if self.group:
            self._resolved = ()
            return

        expanded: list[str] = []
        for target in self.declared_transitions:
            if target == WILDCARD:
                expanded.extend(tree.leaf_names())
            else:
                expanded.extend(tree.require(target).collect_leaf_states())

        # dict preserves declaration order while dropping duplicates
        self._resolved = tuple(dict.fromkeys(t for t in expanded if t != self.name))

    def can_transition_to(self, name: str | None) -> bool:
        """True if ``name`` is a leaf reachable from this leaf."""
        if self.group or name is None:
            return False
        return name in self.resolved_transitions
