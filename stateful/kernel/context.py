"""Ambient context for state transitions.

Two values travel with the current thread or async task rather than with
an entity:

- the *unprotected* depth: while it is above zero, hooks registered with
  ``protect`` are skipped by every pipeline started in this context;
- the *current actor*: recorded as ``<state>_by`` when a tracked state
  is entered and the host entity does not supply an actor itself.

Both are ContextVars, so concurrent requests never observe each other's
values. The pipeline reads them once, when a transition starts, and hands
them to hooks through the transition record.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_unprotected_depth: ContextVar[int] = ContextVar("stateful_unprotected_depth", default=0)

_current_actor: ContextVar[Any | None] = ContextVar("stateful_current_actor", default=None)


# ============================================================================
# Unprotected scope
# ============================================================================


@contextmanager
def unprotected() -> Iterator[None]:
    """Skip protected hooks for every transition started inside the block.

    Scopes nest; the depth is restored on every exit path, including
    exceptions.

    Examples
    --------
    Example usage::

        with unprotected():
            kata.change_state_strict("approved")
    """
    token = _unprotected_depth.set(_unprotected_depth.get() + 1)
    try:
        yield
    finally:
        _unprotected_depth.reset(token)


def is_unprotected() -> bool:
    """Return True while at least one unprotected scope is active."""
    return _unprotected_depth.get() > 0


# ============================================================================
# Current actor
# ============================================================================


def set_current_actor(actor: Any | None) -> None:
    """Set the actor recorded by state tracking in the current context."""
    _current_actor.set(actor)


def get_current_actor() -> Any | None:
    """Get the actor for the current context, or None."""
    return _current_actor.get()


@contextmanager
def acting_as(actor: Any) -> Iterator[Any]:
    """Temporarily set the current actor.

    Examples
    --------
    Example usage::

        with acting_as(request.user):
            ticket.change_state("resolved")
    """
    token = _current_actor.set(actor)
    try:
        yield actor
    finally:
        _current_actor.reset(token)


__all__ = [
    "acting_as",
    "get_current_actor",
    "is_unprotected",
    "set_current_actor",
    "unprotected",
]
