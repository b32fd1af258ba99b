"""Declaration options for a state attribute.

These models are the single source of truth for what a ``StateAttribute``
accepts, whether it is declared in Python or loaded from a YAML manifest.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from stateful.kernel.exceptions import ValidationError

EventTargets = str | list[str] | None


class AttributeOptions(BaseModel):
    """Options of one declared state attribute."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(default="state", min_length=1, description="Attribute name")
    states: dict[str, Any] = Field(description="Nested state declaration")
    default: str | None = Field(default=None, description="Value of a never-set attribute")
    events: dict[str, EventTargets] = Field(
        default_factory=dict,
        description="Event name to target state(s); a plain list declares events without targets",
    )
    track: list[str] = Field(
        default_factory=list,
        description="States or groups whose entry records <name>_at / _by / _value",
    )
    validate_on_change: bool = Field(
        default=False,
        description="Check the pending change pair during validate_states()",
    )
    prefix: str | None = Field(
        default=None,
        description="Prefix of generated is_<prefix><state>() predicates",
    )
    allow_none: bool = Field(default=False, description="Accept None as a valid value")
    message: str = Field(default="has invalid value", description="Inclusion error message")

    @field_validator("events", mode="before")
    @classmethod
    def _normalize_events(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, (list, tuple)):
            return dict.fromkeys(value)
        return value

    @field_validator("track", mode="before")
    @classmethod
    def _normalize_track(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @property
    def predicate_prefix(self) -> str:
        """Prefix for generated predicates: ``""`` for ``state``, else ``"<name>_"``."""
        if self.prefix is not None:
            return self.prefix
        return "" if self.name == "state" else f"{self.name}_"

    @classmethod
    def parse(cls, data: dict[str, Any]) -> Self:
        """Validate raw options, reporting failures as :class:`ValidationError`."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "options"
            raise ValidationError(field, first["msg"], first.get("input")) from exc

    def event_targets(self, event: str) -> list[str]:
        """Declared targets of ``event`` as a list (empty when none)."""
        targets = self.events.get(event)
        if targets is None:
            return []
        return [targets] if isinstance(targets, str) else list(targets)
