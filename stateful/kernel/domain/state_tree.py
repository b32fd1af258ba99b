"""State trees compiled from nested declarations.

A declaration maps state names to their outgoing transitions::

    {
        "draft": "beta",                       # single target
        "beta": {                              # group
            "needs_testing": "needs_approval",
            "needs_approval": ["draft", "approved"],   # list of targets
        },
        "approved": "*",                       # every other leaf
        "retired": None,                       # no transitions
    }

Targets may name leaves, groups (expanded to their leaves) or the
wildcard. The never-set pseudo-state ``"none"`` is always present; it may
be declared explicitly to restrict the initial transitions and otherwise
defaults to the wildcard.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from stateful.kernel.domain.state_node import NO_STATE, WILDCARD, StateNode
from stateful.kernel.exceptions import ConfigurationError, UnknownStateError
from stateful.kernel.logging import get_logger

logger = get_logger(__name__)

StatesConfig = Mapping[str, Any]


def state_key(value: str | None) -> str:
    """Map a stored attribute value to its node name (``None`` is the sentinel)."""
    return NO_STATE if value is None else value


class StateTree:
    """All state nodes of one attribute, indexed by name.

    Built once through :func:`build_state_tree` and read-only afterwards.
    """

    def __init__(self, attribute: str = "state") -> None:
        self.attribute = attribute
        self._nodes: dict[str, StateNode] = {}
        self._resolved = False

    def __repr__(self) -> str:
        return f"StateTree({self.attribute!r}, {len(self._nodes)} nodes)"

    # ------------------------------------------------------------------
    # Collection interface
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._nodes or (name is None and NO_STATE in self._nodes)

    def __iter__(self) -> Iterator[StateNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def add(self, node: StateNode) -> StateNode:
        if self._resolved:
            raise ConfigurationError(self.attribute, "state tree is already resolved")
        if node.name in self._nodes:
            raise ConfigurationError(self.attribute, f"state {node.name!r} is declared twice")
        self._nodes[node.name] = node
        return node

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def sentinel(self) -> StateNode:
        return self._nodes[NO_STATE]

    def get(self, value: str | None) -> StateNode | None:
        """Node for a stored value, or None when the value is unknown."""
        return self._nodes.get(state_key(value))

    def require(self, value: str | None) -> StateNode:
        """Node for a stored value; raise UnknownStateError when unknown."""
        node = self.get(value)
        if node is None:
            raise UnknownStateError(value, self.attribute)
        return node

    def names(self) -> list[str]:
        """Every declared leaf and group name (the sentinel excluded)."""
        return [name for name in self._nodes if name != NO_STATE]

    def leaf_names(self) -> list[str]:
        """Every real leaf state, in declaration order."""
        return [node.name for node in self if node.is_leaf and not node.is_sentinel]

    def group_names(self) -> list[str]:
        return [node.name for node in self if node.is_group]

    def is_within(self, value: str | None, ancestor: str) -> bool:
        """True if ``value`` names ``ancestor`` or a state nested under it."""
        node = self.get(value)
        return node is not None and node.is_within(ancestor)

    def collect_leaf_states(self, name: str) -> list[str]:
        return self.require(name).collect_leaf_states()

    def can_transition(self, from_value: str | None, to_value: str | None) -> bool:
        """Legality check: both ends leaves and ``to`` declared from ``from``."""
        source = self.get(from_value)
        target = self.get(to_value)
        if source is None or target is None or target.is_group:
            return False
        return source.can_transition_to(target.name)

    def expand(self, names: Iterable[str | None], *, include_sentinel: bool = False) -> list[str]:
        """Expand wildcards and groups into leaf names, dropping duplicates.

        Raises
        ------
        UnknownStateError
            If a name is not in the tree
        """
        expanded: list[str] = []
        for name in names:
            if name == WILDCARD:
                if include_sentinel:
                    expanded.append(NO_STATE)
                expanded.extend(self.leaf_names())
            else:
                expanded.extend(self.require(name).collect_leaf_states())
        return list(dict.fromkeys(expanded))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    def resolve(self) -> None:
        """Expand every node's declared transitions. Runs once per tree."""
        if self._resolved:
            return
        for node in self:
            node.resolve(self)
        self._resolved = True


def _normalize_targets(attribute: str, name: str, config: Any) -> tuple[str, ...]:
    if config is None:
        return ()
    if isinstance(config, str):
        targets: tuple[Any, ...] = (config,)
    elif isinstance(config, (list, tuple, set, frozenset)):
        targets = tuple(config)
    else:
        raise ConfigurationError(
            attribute, f"transitions of {name!r} must be a name, a list or a mapping"
        )
    for target in targets:
        if not isinstance(target, str):
            raise ConfigurationError(attribute, f"transition target {target!r} is not a name")
    # "none" as a target reads as "no transitions"
    return tuple(target for target in targets if target != NO_STATE)


def _build_nodes(
    tree: StateTree,
    config: StatesConfig,
    parent: StateNode | None,
    tracked: frozenset[str],
) -> None:
    for name, value in config.items():
        if isinstance(value, Mapping):
            if not value:
                raise ConfigurationError(tree.attribute, f"group {name!r} has no states")
            node = tree.add(
                StateNode(
                    name,
                    attribute=tree.attribute,
                    parent=parent,
                    group=True,
                    tracked=name in tracked,
                )
            )
            _build_nodes(tree, value, node, tracked)
        else:
            tree.add(
                StateNode(
                    name,
                    attribute=tree.attribute,
                    parent=parent,
                    declared_transitions=_normalize_targets(tree.attribute, name, value),
                    tracked=name in tracked,
                )
            )


def build_state_tree(
    attribute: str,
    states: StatesConfig,
    track: Iterable[str] = (),
) -> StateTree:
    """Compile a nested state declaration into a resolved tree.

    Parameters
    ----------
    attribute : str
        Name of the state attribute (used in error messages)
    states : Mapping[str, Any]
        Nested declaration, see the module docstring
    track : Iterable[str]
        Leaf or group names whose entry is recorded

    Raises
    ------
    ConfigurationError
        On malformed declarations, duplicate names or reserved names
    UnknownStateError
        If a transition target or tracked name does not exist
    """
    if not isinstance(states, Mapping) or not states:
        raise ConfigurationError(attribute, "states must be a non-empty mapping")

    tracked = frozenset(track)
    tree = StateTree(attribute)
    declared = dict(states)
    # never-set values may move anywhere unless declared otherwise
    declared.setdefault(NO_STATE, WILDCARD)
    _build_nodes(tree, declared, None, tracked)

    for name in tracked:
        tree.require(name)

    tree.resolve()
    logger.debug(
        "Compiled state tree for {attribute}: {leaves} leaves, {groups} groups",
        attribute=attribute,
        leaves=len(tree.leaf_names()),
        groups=len(tree.group_names()),
    )
    return tree
