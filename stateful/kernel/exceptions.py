"""Core exception hierarchy for the stateful library.

All stateful exceptions inherit from StatefulError for easy exception
handling. Configuration errors surface while a class is being declared;
StateChangeError surfaces at runtime from the strict entry points.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class StatefulError(Exception):
    """Base exception for all stateful errors.

    Catch this to handle every error raised by the library.
    """

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(StatefulError):
    """Raised when a state declaration or rule declaration is invalid.

    Examples
    --------
    Example usage::

        raise ConfigurationError("state", "group 'published' has no children")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the attribute or component being declared
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class UnknownStateError(ConfigurationError):
    """Raised when a declaration references a state that does not exist.

    Examples
    --------
    Example usage::

        raise UnknownStateError("archived", "state")
    """

    def __init__(self, state: str | None, attribute: str = "state") -> None:
        """Initialize unknown state error.

        Args
        ----
            state: The offending identifier
            attribute: The state attribute the identifier was looked up in
        """
        super().__init__(attribute, f"unknown state reference {state!r}")
        self.state = state
        self.attribute = attribute


class ReservedStateNameError(ConfigurationError):
    """Raised when a reserved identifier is used as a state name."""

    def __init__(self, state: str, attribute: str = "state") -> None:
        super().__init__(attribute, f"{state!r} is reserved and cannot be used as a state name")
        self.state = state
        self.attribute = attribute


class ValidationError(StatefulError):
    """Raised when declaration options fail validation.

    Examples
    --------
    Example usage::

        raise ValidationError("events", "must be a mapping or a list", value=3)
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the option that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


class DefinitionLoaderError(StatefulError):
    """YAML state machine manifest loading errors."""

    pass


# ============================================================================
# Runtime Errors
# ============================================================================


class StateChangeError(StatefulError):
    """Raised when a strict state change is not allowed.

    Also raised when ``transition_to`` is called while no event of the
    attribute is running.
    """

    def __init__(
        self,
        attribute: str,
        from_state: str | None,
        to_state: str | None,
        reason: str | None = None,
    ) -> None:
        """Initialize state change error.

        Args
        ----
            attribute: The state attribute being changed
            from_state: Current value of the attribute
            to_state: Requested value
            reason: Optional override for the default message
        """
        msg = reason or f"transition from {from_state} to {to_state} not allowed for {attribute}"
        super().__init__(msg)
        self.attribute = attribute
        self.from_state = from_state
        self.to_state = to_state


class ProtectedTransitionError(StateChangeError):
    """Raised by a protected hook running outside an unprotected scope."""

    def __init__(self, attribute: str, from_state: str | None, to_state: str | None) -> None:
        super().__init__(
            attribute,
            from_state,
            to_state,
            f"transition from {from_state} to {to_state} on {attribute} is protected",
        )


__all__ = [
    # Base
    "StatefulError",
    # Configuration & Validation
    "ConfigurationError",
    "UnknownStateError",
    "ReservedStateNameError",
    "ValidationError",
    "DefinitionLoaderError",
    # Runtime
    "StateChangeError",
    "ProtectedTransitionError",
]
