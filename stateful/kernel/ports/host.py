"""Host entity ports: capabilities the pipeline consumes from an entity.

An entity implements only the protocols it supports; the pipeline checks
capabilities at runtime with ``isinstance(entity, SupportsXxx)``.

Capability matrix
-----------------
+-------------------------+-------------------------------------------------+
| Protocol                | Used for                                        |
+=========================+=================================================+
| SupportsPersistState    | lenient persistence, preferred                  |
| SupportsSave            | lenient persistence, fallback                   |
| SupportsStrictPersist   | strict persistence, preferred (raises)          |
| SupportsStrictSave      | strict persistence, fallback (raises)           |
| SupportsErrors          | validation errors keyed by attribute            |
| SupportsChanges         | pending (old, new) pair of an attribute         |
| SupportsCurrentActor    | actor recorded by state tracking                |
+-------------------------+-------------------------------------------------+

A persistence method reports failure by returning ``False``; any other
result, ``None`` included, counts as success.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@runtime_checkable
class SupportsPersistState(Protocol):
    """Persist the entity after a state change and report success."""

    @abstractmethod
    def persist_state(self) -> bool | None: ...


@runtime_checkable
class SupportsSave(Protocol):
    """Generic save reporting success, e.g. an active-record ``save()``."""

    @abstractmethod
    def save(self) -> Any: ...


@runtime_checkable
class SupportsStrictPersist(Protocol):
    """Persist the entity after a state change, raising on failure."""

    @abstractmethod
    def persist_state_strict(self) -> Any: ...


@runtime_checkable
class SupportsStrictSave(Protocol):
    """Generic save that raises on failure."""

    @abstractmethod
    def save_strict(self) -> Any: ...


LENIENT_PERSISTENCE: tuple[tuple[type, str], ...] = (
    (SupportsPersistState, "persist_state"),
    (SupportsSave, "save"),
)

STRICT_PERSISTENCE: tuple[tuple[type, str], ...] = (
    (SupportsStrictPersist, "persist_state_strict"),
    (SupportsStrictSave, "save_strict"),
)


# ---------------------------------------------------------------------------
# Validation and bookkeeping
# ---------------------------------------------------------------------------


@runtime_checkable
class SupportsErrors(Protocol):
    """Collects validation errors keyed by attribute name."""

    @abstractmethod
    def add_error(self, field: str, message: str) -> None: ...


@runtime_checkable
class SupportsChanges(Protocol):
    """Reports the unpersisted ``(old, new)`` pair of an attribute."""

    @abstractmethod
    def attribute_change(self, name: str) -> tuple[Any, Any] | None: ...


@runtime_checkable
class SupportsCurrentActor(Protocol):
    """Supplies the actor performing the current change."""

    @abstractmethod
    def current_actor(self) -> Any: ...


def find_persist_method(entity: object, strict: bool, fallback: bool = False) -> str | None:
    """Name of the first persistence method ``entity`` supports, or None.

    With ``fallback`` the strict lookup continues into the lenient methods.
    """
    candidates = STRICT_PERSISTENCE if strict else LENIENT_PERSISTENCE
    if strict and fallback:
        candidates = STRICT_PERSISTENCE + LENIENT_PERSISTENCE
    for protocol, method in candidates:
        if isinstance(entity, protocol):
            return method
    return None


__all__ = [
    "LENIENT_PERSISTENCE",
    "STRICT_PERSISTENCE",
    "SupportsChanges",
    "SupportsCurrentActor",
    "SupportsErrors",
    "SupportsPersistState",
    "SupportsSave",
    "SupportsStrictPersist",
    "SupportsStrictSave",
    "find_persist_method",
]
