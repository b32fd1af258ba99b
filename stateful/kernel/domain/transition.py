"""Records describing one transition attempt."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from stateful.kernel.domain.state_tree import state_key


@dataclass(slots=True)
class TransitionRecord:
    """One requested state change, alive for a single pipeline run.

    ``from_state`` is the raw stored value (``None`` when never set);
    ``from_key`` is the matching node name used for rule lookups.
    ``unprotected`` is captured from the ambient scope when the record
    is created, so protected hooks see one consistent answer for the
    whole run.
    """

    attribute: str
    from_state: str | None
    to_state: str
    event: str | None = None
    callback: Callable[[str | None], Any] | None = None
    strict: bool = False
    unprotected: bool = False

    @property
    def from_key(self) -> str:
        return state_key(self.from_state)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_key, self.to_state)


@dataclass(frozen=True, slots=True)
class TrackingRecord:
    """Bookkeeping written to the host when a tracked state is entered.

    Attributes
    ----------
    field : str
        Name of the tracked node; the host receives ``<field>_at``,
        ``<field>_by`` and, for groups, ``<field>_value``
    at : datetime
        When the transition was committed (UTC)
    by : Any
        The current actor, if one was available
    value : str | None
        The destination leaf when the tracked node is a group
    """

    field: str
    at: datetime
    by: Any = None
    value: str | None = None

    def as_attributes(self) -> dict[str, Any]:
        """Host attribute names and values for this record."""
        attributes: dict[str, Any] = {f"{self.field}_at": self.at}
        if self.by is not None:
            attributes[f"{self.field}_by"] = self.by
        if self.value is not None:
            attributes[f"{self.field}_value"] = self.value
        return attributes
