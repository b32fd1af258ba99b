"""Ports the library consumes from host entities."""

from stateful.kernel.ports.host import (
    SupportsChanges,
    SupportsCurrentActor,
    SupportsErrors,
    SupportsPersistState,
    SupportsSave,
    SupportsStrictPersist,
    SupportsStrictSave,
    find_persist_method,
)

__all__ = [
    "SupportsChanges",
    "SupportsCurrentActor",
    "SupportsErrors",
    "SupportsPersistState",
    "SupportsSave",
    "SupportsStrictPersist",
    "SupportsStrictSave",
    "find_persist_method",
]
