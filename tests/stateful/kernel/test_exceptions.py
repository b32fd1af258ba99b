"""Tests for the stateful exception hierarchy."""

from __future__ import annotations

import pytest

from stateful.kernel.exceptions import (
    ConfigurationError,
    DefinitionLoaderError,
    ProtectedTransitionError,
    ReservedStateNameError,
    StateChangeError,
    StatefulError,
    UnknownStateError,
    ValidationError,
)


class TestConfigurationErrors:
    def test_configuration_error(self) -> None:
        error = ConfigurationError("state", "group 'beta' has no states")
        assert "state" in str(error)
        assert error.component == "state"
        assert error.reason == "group 'beta' has no states"
        assert isinstance(error, StatefulError)

    def test_unknown_state_error(self) -> None:
        error = UnknownStateError("archived", "merge_status")
        assert "unknown state reference 'archived'" in str(error)
        assert error.state == "archived"
        assert error.attribute == "merge_status"
        assert isinstance(error, ConfigurationError)

    def test_reserved_name_error(self) -> None:
        error = ReservedStateNameError("new")
        assert "'new' is reserved" in str(error)
        assert isinstance(error, ConfigurationError)

    def test_validation_error_with_value(self) -> None:
        error = ValidationError("events", "must be a mapping", value=3)
        assert str(error) == "Validation failed for 'events': must be a mapping (got 3)"

    def test_validation_error_without_value(self) -> None:
        error = ValidationError("events", "must be a mapping")
        assert str(error) == "Validation failed for 'events': must be a mapping"
        assert error.value is None

    def test_definition_loader_error(self) -> None:
        with pytest.raises(StatefulError):
            raise DefinitionLoaderError("bad manifest")


class TestStateChangeError:
    def test_default_message(self) -> None:
        error = StateChangeError("state", "draft", "retired")
        assert str(error) == "transition from draft to retired not allowed for state"
        assert (error.attribute, error.from_state, error.to_state) == ("state", "draft", "retired")

    def test_reason_overrides_message(self) -> None:
        error = StateChangeError("state", "draft", "beta", "no event running")
        assert str(error) == "no event running"

    def test_protected_transition_error(self) -> None:
        error = ProtectedTransitionError("state", "needs_approval", "approved")
        assert isinstance(error, StateChangeError)
        assert "is protected" in str(error)
        assert error.to_state == "approved"
