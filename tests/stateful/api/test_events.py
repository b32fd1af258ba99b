"""Tests for event methods and ``transition_to``."""

from __future__ import annotations

import pytest

from stateful.api.attribute import StateAttribute
from stateful.api.entity import Stateful
from stateful.api.events import EventBinding, get_active_event
from stateful.kernel.exceptions import StateChangeError
from stateful.kernel.rules.phases import NON_EVENT


class Article(Stateful):
    state = StateAttribute(
        default="draft",
        states={"draft": "review", "review": ["published", "draft"], "published": None},
        events={"submit": "review", "publish": "published"},
    )

    def __init__(self) -> None:
        self.seen: list[str] = []

    @state.event
    def submit(self) -> bool:
        self.seen.append(f"submit active={self.active_event()}")
        return self.transition_to("review")

    @state.event
    def publish(self, note: str = "") -> bool:
        if note:
            self.seen.append(note)
        return self.transition_to("published")

    @state.event(name="send_back")
    def reject(self) -> bool:
        return self.transition_to("draft")


Article.when_transition().on("publish").after_commit(
    lambda article, old, new: article.seen.append("published hook")
)
Article.when_transition().on(NON_EVENT).before_commit(
    lambda article, old, new: article.seen.append("plain change")
)
Article.when_transition().on("send_back").before_commit(
    lambda article, old, new: article.seen.append("sent back")
)


class TestEventMethods:
    def test_binding_on_class(self) -> None:
        assert isinstance(Article.__dict__["submit"], EventBinding)
        assert isinstance(Article.__dict__["submit_strict"], EventBinding)
        assert Article.__dict__["submit_strict"].strict is True
        assert Article.__dict__["reject"].event == "send_back"

    def test_event_tags_the_change(self) -> None:
        article = Article()
        assert article.submit() is True
        assert article.state == "review"
        assert article.seen == ["submit active=submit"]

    def test_event_scoped_hooks_fire(self) -> None:
        article = Article()
        article.submit()
        assert article.publish("ready") is True
        assert article.seen == ["submit active=submit", "ready", "published hook"]

    def test_plain_change_runs_non_event_hooks(self) -> None:
        article = Article()
        article.change_state("review")
        assert article.seen == ["plain change"]

    def test_custom_event_name(self) -> None:
        article = Article()
        article.submit()
        article.reject()
        assert article.state == "draft"
        assert article.seen[-1] == "sent back"

    def test_lenient_event_returns_false(self) -> None:
        article = Article()
        assert article.publish() is False
        assert article.state == "draft"

    def test_strict_variant_raises(self) -> None:
        article = Article()
        with pytest.raises(StateChangeError, match="from draft to published"):
            article.publish_strict()

    def test_event_cleared_after_method(self) -> None:
        article = Article()
        article.submit()
        assert article.active_event() is None
        assert get_active_event(article, "state") is None

    def test_event_cleared_after_error(self) -> None:
        article = Article()
        with pytest.raises(StateChangeError):
            article.publish_strict()
        assert article.active_event() is None


class TestTransitionTo:
    def test_outside_event_raises(self) -> None:
        article = Article()
        with pytest.raises(StateChangeError, match="can only be called while a state event is running") as exc_info:
            article.transition_to("review")
        assert exc_info.value.from_state == "draft"
        assert exc_info.value.to_state == "review"
        assert article.state == "draft"

    def test_nested_events_restore_outer(self) -> None:
        class Flow(Stateful):
            state = StateAttribute(states={"a": "b", "b": "c", "c": None}, default="a")

            def __init__(self) -> None:
                self.active: list[str | None] = []

            @state.event
            def outer(self) -> None:
                self.inner()
                self.active.append(self.active_event())
                self.transition_to("c")

            @state.event
            def inner(self) -> None:
                self.active.append(self.active_event())
                self.transition_to("b")

        flow = Flow()
        flow.outer()
        assert flow.active == ["inner", "outer"]
        assert flow.state == "c"


class MergeRequest(Stateful):
    merge_status = StateAttribute(
        default="na",
        states={"na": "pending", "pending": ["merged", "na"], "merged": None},
    )
    review_status = StateAttribute(
        default="open",
        states={"open": "approved", "approved": None},
    )

    @merge_status.event
    def merge(self) -> bool:
        return self.transition_to("pending")

    @review_status.event
    def approve(self) -> bool:
        return self.transition_to("approved")

    @merge_status.event
    def approve_and_merge(self) -> bool:
        self.approve()
        return self.transition_to("pending")


class TestEventsOnOtherAttributes:
    def test_event_changes_its_own_attribute(self) -> None:
        request = MergeRequest()
        assert request.merge() is True
        assert request.merge_status == "pending"
        assert request.review_status == "open"

    def test_event_name_is_attached(self) -> None:
        events: list[str | None] = []

        class Hooked(MergeRequest):
            pass

        Hooked.when_transition("merge_status").on("merge").before_commit(
            lambda request, old, new: events.append(request.active_event("merge_status"))
        )
        Hooked().merge()
        assert events == ["merge"]

    def test_nested_event_on_another_attribute(self) -> None:
        request = MergeRequest()
        assert request.approve_and_merge() is True
        assert request.review_status == "approved"
        assert request.merge_status == "pending"
        assert request.active_event() is None

    def test_active_event_per_attribute(self) -> None:
        seen: list[tuple[str | None, str | None, str | None]] = []

        class Tracked(MergeRequest):
            @MergeRequest.review_status.event
            def approve(self) -> bool:
                seen.append(
                    (
                        self.active_event(),
                        self.active_event("merge_status"),
                        self.active_event("review_status"),
                    )
                )
                return self.transition_to("approved")

        Tracked().approve_and_merge()
        assert seen == [("approve", "approve_and_merge", "approve")]

    def test_explicit_attribute_needs_matching_event(self) -> None:
        class Mismatched(MergeRequest):
            @MergeRequest.merge_status.event
            def merge(self) -> bool:
                return self.transition_to("approved", attribute="review_status")

        request = Mismatched()
        with pytest.raises(StateChangeError, match="while a review_status event is running"):
            request.merge()
        assert request.review_status == "open"
        assert request.merge_status == "na"

    def test_outside_event_without_default_attribute(self) -> None:
        with pytest.raises(StateChangeError, match="while a state event is running") as exc_info:
            MergeRequest().transition_to("pending")
        assert exc_info.value.from_state is None
