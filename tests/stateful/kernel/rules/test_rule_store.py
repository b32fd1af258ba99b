"""Tests for transition rule stores, phases and the rule DSL."""

from __future__ import annotations

from typing import Any

import pytest

from stateful.kernel.domain.state_tree import StateTree, build_state_tree
from stateful.kernel.exceptions import ConfigurationError, UnknownStateError
from stateful.kernel.rules.builder import FromTransition, WhenTransition, add_entity_error
from stateful.kernel.rules.phases import ANY_EVENT, NON_EVENT, Phase, coerce_phase
from stateful.kernel.rules.store import CallbackHandle, TransitionRuleStore


def _noop(entity: Any, from_state: str | None, to_state: str) -> None:
    return None


@pytest.fixture
def tree() -> StateTree:
    return build_state_tree(
        "state",
        {
            "draft": "beta",
            "beta": {"needs_testing": "needs_approval", "needs_approval": "approved"},
            "approved": "*",
        },
    )


class TestPhases:
    def test_aliases(self) -> None:
        assert coerce_phase("before_save") is Phase.BEFORE_COMMIT
        assert coerce_phase("after") is Phase.AFTER_COMMIT
        assert coerce_phase("validate") is Phase.VALIDATE
        assert coerce_phase(Phase.AFTER_CHANGE) is Phase.AFTER_CHANGE

    def test_unknown_phase(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown phase 'sometime'") as exc_info:
            coerce_phase("sometime")
        assert exc_info.value.component == "phase"


class TestCallbackHandle:
    def test_event_matching(self) -> None:
        any_event = CallbackHandle(_noop, Phase.VALIDATE, event=ANY_EVENT)
        non_event = CallbackHandle(_noop, Phase.VALIDATE, event=NON_EVENT)
        named = CallbackHandle(_noop, Phase.VALIDATE, event="publish")

        assert any_event.matches_event(None) is True
        assert any_event.matches_event("publish") is True
        assert non_event.matches_event(None) is True
        assert non_event.matches_event("publish") is False
        assert named.matches_event("publish") is True
        assert named.matches_event("retire") is False
        assert named.matches_event(None) is False

    def test_ids_are_unique(self) -> None:
        first = CallbackHandle(_noop, Phase.VALIDATE)
        second = CallbackHandle(_noop, Phase.VALIDATE)
        assert first.id != second.id
        assert first.name == "_noop"


class TestTransitionRuleStore:
    def test_add_skips_self_loops(self) -> None:
        store = TransitionRuleStore("Kata")
        handle = CallbackHandle(_noop, Phase.BEFORE_COMMIT)
        added = store.add("state", ["a", "b"], ["a", "b"], handle)
        assert added == 2
        assert store.own("state", Phase.BEFORE_COMMIT, "a", "a") == []
        assert store.own("state", Phase.BEFORE_COMMIT, "a", "b") == [handle]
        assert len(store) == 2

    def test_declaration_order_is_kept(self) -> None:
        store = TransitionRuleStore("Kata")
        first = CallbackHandle(_noop, Phase.VALIDATE)
        second = CallbackHandle(_noop, Phase.VALIDATE)
        store.add("state", ["a"], ["b"], first)
        store.add("state", ["a"], ["b"], second)
        assert store.lookup("state", Phase.VALIDATE, "a", "b") == [first, second]

    def test_lookup_merges_root_most_first(self) -> None:
        base = TransitionRuleStore("Base")
        middle = TransitionRuleStore("Middle", base)
        leaf = TransitionRuleStore("Leaf", middle)
        h_leaf = CallbackHandle(_noop, Phase.BEFORE_COMMIT)
        h_base = CallbackHandle(_noop, Phase.BEFORE_COMMIT)
        h_middle = CallbackHandle(_noop, Phase.BEFORE_COMMIT)
        leaf.add("state", ["a"], ["b"], h_leaf)
        base.add("state", ["a"], ["b"], h_base)
        middle.add("state", ["a"], ["b"], h_middle)

        assert leaf.chain == (base, middle, leaf)
        assert leaf.lookup("state", Phase.BEFORE_COMMIT, "a", "b") == [h_base, h_middle, h_leaf]
        assert base.lookup("state", Phase.BEFORE_COMMIT, "a", "b") == [h_base]

    def test_subclass_never_writes_parent(self) -> None:
        base = TransitionRuleStore("Base")
        child = TransitionRuleStore("Child", base)
        child.add("state", ["a"], ["b"], CallbackHandle(_noop, Phase.VALIDATE))
        assert len(base) == 0
        assert base.has_rules() is False
        assert child.has_rules() is True

    def test_lookup_filters_by_event(self) -> None:
        store = TransitionRuleStore("Kata")
        unscoped = CallbackHandle(_noop, Phase.VALIDATE)
        scoped = CallbackHandle(_noop, Phase.VALIDATE, event="publish")
        store.add("state", ["a"], ["b"], unscoped)
        store.add("state", ["a"], ["b"], scoped)
        assert store.lookup("state", Phase.VALIDATE, "a", "b") == [unscoped]
        assert store.lookup("state", Phase.VALIDATE, "a", "b", "publish") == [unscoped, scoped]


class TestWhenTransition:
    def test_defaults_cover_every_pair(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").before_commit(_noop)
        handles = store.lookup("state", Phase.BEFORE_COMMIT, "none", "draft")
        assert len(handles) == 1
        assert store.lookup("state", Phase.BEFORE_COMMIT, "approved", "draft") == handles

    def test_group_and_wildcard_expansion(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").from_("beta").to("*").validate(_noop)
        assert store.lookup("state", Phase.VALIDATE, "needs_testing", "approved")
        assert store.lookup("state", Phase.VALIDATE, "needs_approval", "draft")
        assert store.lookup("state", Phase.VALIDATE, "needs_testing", "needs_testing") == []
        assert store.lookup("state", Phase.VALIDATE, "draft", "approved") == []

    def test_wildcard_to_excludes_sentinel(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").to("*").validate(_noop)
        assert store.lookup("state", Phase.VALIDATE, "draft", "none") == []

    def test_list_selectors(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").from_(["draft", "approved"]).to("needs_testing").validate(_noop)
        assert store.lookup("state", Phase.VALIDATE, "draft", "needs_testing")
        assert store.lookup("state", Phase.VALIDATE, "approved", "needs_testing")
        assert store.lookup("state", Phase.VALIDATE, "needs_approval", "needs_testing") == []

    def test_unknown_state_rejected(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        with pytest.raises(UnknownStateError):
            WhenTransition(store, tree, "state").from_("published")

    def test_after_commit_is_run_once(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        builder = WhenTransition(store, tree, "state").from_("draft").to("needs_testing")
        builder.after_commit(_noop).before_commit(_noop)
        (after,) = store.lookup("state", Phase.AFTER_COMMIT, "draft", "needs_testing")
        (before,) = store.lookup("state", Phase.BEFORE_COMMIT, "draft", "needs_testing")
        assert after.run_once is True
        assert before.run_once is False

    def test_aliases(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        builder = WhenTransition(store, tree, "state").from_("draft").to("needs_testing")
        builder.before_save(_noop).after_save(_noop)
        assert store.lookup("state", Phase.BEFORE_COMMIT, "draft", "needs_testing")
        assert store.lookup("state", Phase.AFTER_COMMIT, "draft", "needs_testing")

    def test_on_event(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").on("submit").before_change(_noop)
        assert store.lookup("state", Phase.BEFORE_CHANGE, "draft", "needs_testing") == []
        assert store.lookup("state", Phase.BEFORE_CHANGE, "draft", "needs_testing", "submit")

    def test_protect_registers_protected_guard(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        WhenTransition(store, tree, "state").to("approved").protect()
        (guard,) = store.lookup("state", Phase.BEFORE_COMMIT, "needs_approval", "approved")
        assert guard.protected is True


class TestFromTransition:
    def test_callback_form(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        builder = WhenTransition(store, tree, "state").from_("draft")
        FromTransition(builder, Phase.BEFORE_COMMIT).to("beta", callback=_noop)
        assert store.lookup("state", Phase.BEFORE_COMMIT, "draft", "needs_approval")

    def test_decorator_form(self, tree: StateTree) -> None:
        store = TransitionRuleStore("Kata")
        builder = WhenTransition(store, tree, "state").from_("draft")

        @FromTransition(builder, "after_save").to("needs_testing")
        def stamp(entity: Any, from_state: str | None, to_state: str) -> None:
            return None

        (handle,) = store.lookup("state", Phase.AFTER_COMMIT, "draft", "needs_testing")
        assert handle.callback is stamp


class TestAddEntityError:
    def test_requires_error_collection(self) -> None:
        with pytest.raises(ConfigurationError, match="add_error"):
            add_entity_error(object(), "state", "bad")
