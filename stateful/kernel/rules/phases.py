"""Hook phases of the transition pipeline and event-scope markers."""

from __future__ import annotations

from enum import StrEnum

from stateful.kernel.exceptions import ConfigurationError


class Phase(StrEnum):
    """Fixed points of the transition pipeline at which hooks run.

    Listed in the order a successful transition visits them.
    """

    BEFORE_CHANGE = "before_change"
    BEFORE_VALIDATION = "before_validation"
    VALIDATE = "validate"
    AFTER_VALIDATION = "after_validation"
    BEFORE_COMMIT = "before_commit"
    AFTER_COMMIT = "after_commit"
    AFTER_CHANGE = "after_change"


#: Common aliases accepted wherever a phase name is given as a string.
PHASE_ALIASES: dict[str, Phase] = {
    "before_save": Phase.BEFORE_COMMIT,
    "before": Phase.BEFORE_COMMIT,
    "after_save": Phase.AFTER_COMMIT,
    "after": Phase.AFTER_COMMIT,
}

#: Phases whose hooks run once per (from, to) pair per entity by default.
RUN_ONCE_PHASES = frozenset({Phase.AFTER_COMMIT})


def coerce_phase(value: Phase | str) -> Phase:
    """Accept a Phase, its value, or an alias such as ``"after_save"``."""
    if isinstance(value, Phase):
        return value
    if value in PHASE_ALIASES:
        return PHASE_ALIASES[value]
    try:
        return Phase(value)
    except ValueError:
        known = ", ".join([*Phase, *PHASE_ALIASES])
        raise ConfigurationError("phase", f"unknown phase {value!r} (known: {known})") from None


class EventScope(StrEnum):
    """Event filters that are not a concrete event name."""

    ANY = "*"
    NONE = "-"


#: Rule fires for every transition, tagged or not.
ANY_EVENT = EventScope.ANY

#: Rule fires only for transitions started without an event.
NON_EVENT = EventScope.NONE
