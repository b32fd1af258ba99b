"""``Stateful``: base class for entities with state attributes.

Subclassing ``Stateful`` gives a class:

- its own transition rule store, linked to every ancestor's store;
- registration of ``@attribute.hook(...)`` methods declared in its body;
- the rule DSL as classmethods (``when_transition``, ``transition_from``,
  ``before_change``/``after_change``);
- instance shortcuts over :class:`StateAttributeController`;
- in-memory error collection and change tracking, which hosts backed by
  an ORM usually replace with their own.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager
from typing import Any, ClassVar

from stateful.api.attribute import StateAttribute, declared_hooks
from stateful.api.controller import StateAttributeController
from stateful.api.events import get_active_event
from stateful.kernel import context
from stateful.kernel.config import get_runtime_config
from stateful.kernel.domain.state_node import WILDCARD, StateNode
from stateful.kernel.exceptions import ConfigurationError, StateChangeError
from stateful.kernel.logging import get_logger
from stateful.kernel.pipeline import AUTO
from stateful.kernel.rules.builder import FromTransition, StateSelector, WhenTransition
from stateful.kernel.rules.phases import ANY_EVENT, Phase
from stateful.kernel.rules.store import HookCallable, TransitionRuleStore

logger = get_logger(__name__)

_ERRORS_ATTR = "_stateful_errors"
_CHANGES_ATTR = "_stateful_changes"


class Stateful:
    """Base class for entities declaring :class:`StateAttribute` members."""

    __state_attributes__: ClassVar[dict[str, StateAttribute]] = {}
    _transition_rules: ClassVar[TransitionRuleStore] = TransitionRuleStore("Stateful")

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        ancestors = [
            klass.__dict__["_transition_rules"]
            for klass in reversed(cls.__mro__[1:])
            if "_transition_rules" in klass.__dict__
        ]
        cls._transition_rules = TransitionRuleStore(
            cls.__qualname__, ancestors[-1], ancestors=ancestors
        )

        attributes: dict[str, StateAttribute] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, StateAttribute):
                    attributes[name] = value
        cls.__state_attributes__ = attributes

        for member in list(vars(cls).values()):
            for hook in declared_hooks(member):
                (
                    cls.when_transition(hook.attribute.name)
                    .from_(hook.from_states)
                    .to(hook.to_states)
                    .on(hook.event)
                    .add_callback(
                        hook.phase, member, run_once=hook.run_once, protected=hook.protected
                    )
                )

        if attributes:
            logger.debug(
                "Declared {owner} with state attributes {names}",
                owner=cls.__qualname__,
                names=sorted(attributes),
            )

    # ------------------------------------------------------------------
    # Class-level declarations
    # ------------------------------------------------------------------

    @classmethod
    def state_attributes(cls) -> dict[str, StateAttribute]:
        return dict(cls.__state_attributes__)

    @classmethod
    def state_attribute(cls, name: str | None = None) -> StateAttribute:
        """Declaration of ``name`` (the configured default attribute if omitted)."""
        name = name or get_runtime_config().default_attribute
        try:
            return cls.__state_attributes__[name]
        except KeyError:
            raise ConfigurationError(
                cls.__qualname__, f"no state attribute named {name!r}"
            ) from None

    @classmethod
    def transition_rules(cls) -> TransitionRuleStore:
        return cls._transition_rules

    @classmethod
    def when_transition(cls, attribute: str | None = None) -> WhenTransition:
        """Start a rule declaration for ``attribute`` on this class."""
        declaration = cls.state_attribute(attribute)
        return WhenTransition(cls._transition_rules, declaration.tree, declaration.name)

    @classmethod
    def transition_from(
        cls,
        phase: Phase | str,
        attribute: str | None = None,
        from_states: StateSelector = WILDCARD,
    ) -> FromTransition:
        """Single-phase form: ``transition_from(phase, attr, "draft").to("beta", callback=fn)``."""
        return FromTransition(cls.when_transition(attribute).from_(from_states), phase)

    @classmethod
    def _shorthand_from(
        cls,
        phase: Phase,
        args: tuple[StateSelector, ...],
        attribute: str | None,
        from_states: StateSelector,
    ) -> FromTransition:
        if len(args) == 1:
            from_states = args[0]
        elif len(args) == 2:
            attribute, from_states = args  # type: ignore[assignment]
        elif args:
            raise TypeError(f"expected at most 2 positional arguments, got {len(args)}")
        return cls.transition_from(phase, attribute, from_states)

    @classmethod
    def before_transition_from(
        cls,
        *args: StateSelector,
        attribute: str | None = None,
        from_states: StateSelector = WILDCARD,
    ) -> FromTransition:
        """Before-commit shorthand of :meth:`transition_from`.

        One positional argument is the from state of the default attribute
        (``before_transition_from("draft")``); two are ``(attribute, from_states)``.
        """
        return cls._shorthand_from(Phase.BEFORE_COMMIT, args, attribute, from_states)

    @classmethod
    def after_transition_from(
        cls,
        *args: StateSelector,
        attribute: str | None = None,
        from_states: StateSelector = WILDCARD,
    ) -> FromTransition:
        """After-commit shorthand; arguments as :meth:`before_transition_from`."""
        return cls._shorthand_from(Phase.AFTER_COMMIT, args, attribute, from_states)

    @classmethod
    def validate_transition_from(
        cls,
        *args: StateSelector,
        attribute: str | None = None,
        from_states: StateSelector = WILDCARD,
    ) -> FromTransition:
        return cls._shorthand_from(Phase.VALIDATE, args, attribute, from_states)

    @classmethod
    def before_change(
        cls, callback: HookCallable, *, attribute: str | None = None, event: str = ANY_EVENT
    ) -> HookCallable:
        """Run ``callback`` before every change of ``attribute`` (optionally per event)."""
        cls.when_transition(attribute).on(event).before_change(callback)
        return callback

    @classmethod
    def after_change(
        cls, callback: HookCallable, *, attribute: str | None = None, event: str = ANY_EVENT
    ) -> HookCallable:
        """Run ``callback`` after every successful change of ``attribute``."""
        cls.when_transition(attribute).on(event).after_change(callback)
        return callback

    # ------------------------------------------------------------------
    # Host collaborators (in-memory defaults)
    # ------------------------------------------------------------------

    @property
    def errors(self) -> dict[str, list[str]]:
        """Validation errors keyed by attribute name."""
        return vars(self).setdefault(_ERRORS_ATTR, {})

    def add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def clear_errors(self) -> None:
        self.errors.clear()

    def _note_attribute_change(self, name: str, old: Any, new: Any) -> None:
        changes: dict[str, tuple[Any, Any]] = vars(self).setdefault(_CHANGES_ATTR, {})
        original = changes[name][0] if name in changes else old
        if new == original:
            changes.pop(name, None)
        else:
            changes[name] = (original, new)

    def attribute_change(self, name: str) -> tuple[Any, Any] | None:
        """Pending ``(original, current)`` pair of an attribute, if changed."""
        return vars(self).get(_CHANGES_ATTR, {}).get(name)

    @property
    def changes(self) -> dict[str, tuple[Any, Any]]:
        return dict(vars(self).get(_CHANGES_ATTR, {}))

    def clear_changes(self) -> None:
        """Forget pending change pairs, e.g. once the entity was persisted."""
        vars(self).pop(_CHANGES_ATTR, None)

    # ------------------------------------------------------------------
    # Instance shortcuts
    # ------------------------------------------------------------------

    def state_controller(self, attribute: str | None = None) -> StateAttributeController:
        return StateAttributeController(
            self, type(self).state_attribute(attribute), type(self).transition_rules()
        )

    def state_info(self, attribute: str | None = None) -> StateNode | None:
        return self.state_controller(attribute).info

    def state_valid(self, attribute: str | None = None) -> bool:
        return self.state_controller(attribute).is_valid

    def in_state(self, name: str, attribute: str | None = None) -> bool:
        return self.state_controller(attribute).in_state(name)

    def can_transition_to(self, to_state: str | None, attribute: str | None = None) -> bool:
        return self.state_controller(attribute).can_transition_to(to_state)

    def allowable_events(self, attribute: str | None = None) -> list[str]:
        return self.state_controller(attribute).allowable_events()

    def previous_state(self, attribute: str | None = None) -> str | None:
        return self.state_controller(attribute).previous_value

    def change_state(
        self,
        to_state: str,
        event: str | None = None,
        *,
        attribute: str | None = None,
        callback: Callable[[str | None], Any] | None = None,
        persist_method: str | None = AUTO,
    ) -> bool:
        """Lenient change: False when not allowed, a no-op, or not persisted."""
        return self.state_controller(attribute).change(
            to_state, event, callback=callback, persist_method=persist_method
        )

    def change_state_strict(
        self,
        to_state: str,
        event: str | None = None,
        *,
        attribute: str | None = None,
        callback: Callable[[str | None], Any] | None = None,
        persist_method: str | None = AUTO,
    ) -> bool:
        """Strict change: raises StateChangeError when not allowed."""
        return self.state_controller(attribute).change_strict(
            to_state, event, callback=callback, persist_method=persist_method
        )

    def transition_to(
        self,
        to_state: str,
        *,
        attribute: str | None = None,
        callback: Callable[[str | None], Any] | None = None,
    ) -> bool:
        """Change state as part of the event method currently running.

        Without ``attribute`` the innermost running event decides which
        attribute changes.
        """
        name = type(self).state_attribute(attribute).name if attribute is not None else None
        active = get_active_event(self, name)
        if active is None:
            target = name or get_runtime_config().default_attribute
            declaration = self.__state_attributes__.get(target)
            raise StateChangeError(
                target,
                declaration.__get__(self) if declaration is not None else None,
                to_state,
                f"transition_to can only be called while a {target} event is running",
            )
        controller = self.state_controller(active.attribute)
        change = controller.change_strict if active.strict else controller.change
        return change(to_state, active.name, callback=callback)

    def active_event(self, attribute: str | None = None) -> str | None:
        """Name of the innermost running event, optionally for one ``attribute``."""
        name = type(self).state_attribute(attribute).name if attribute is not None else None
        active = get_active_event(self, name)
        return active.name if active else None

    def validate_states(self) -> bool:
        """Validate every state attribute; errors go to :attr:`errors`."""
        results = [self.state_controller(name).validate() for name in self.__state_attributes__]
        return all(results)

    def process_transition_from_changes(
        self, phase: Phase | str, attribute: str | None = None
    ) -> bool:
        return self.state_controller(attribute).process_transition_from_changes(phase)

    @staticmethod
    def unprotected() -> AbstractContextManager[None]:
        """Skip protected hooks inside the block (scope is the current context)."""
        return context.unprotected()

    def iter_states(self) -> Iterator[tuple[str, str | None]]:
        """(attribute, value) for every state attribute."""
        for name, declaration in self.__state_attributes__.items():
            yield name, declaration.__get__(self)
