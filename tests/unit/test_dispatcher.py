"""
Unit tests for CoachingDispatcher.

Tests:
- Cooldown gating and adaptive cooldown
- Strict FIFO backlog and capacity
- Expiry, dismissal and the event outbox
"""

import pytest

from src.tutoring.dispatcher import CoachingDispatcher, DispatcherConfig
from src.tutoring.models import CoachingCategory, CoachingMessage, MessageType, Priority

CATEGORY = CoachingCategory("Strategy", "🎯", "#f59e0b", "Strategic advice")


def message(title, duration=8.0, dismissible=True, priority=Priority.MEDIUM):
    return CoachingMessage(
        type=MessageType.STRATEGY,
        priority=priority,
        title=title,
        message=title,
        timing=0.0,
        duration=duration,
        dismissible=dismissible,
        category=CATEGORY,
    )


@pytest.fixture
def dispatcher(clock):
    return CoachingDispatcher(DispatcherConfig(), clock=clock)


@pytest.fixture
def open_dispatcher(clock):
    """No cooldown, so only capacity gates admission."""
    return CoachingDispatcher(DispatcherConfig(cooldown_seconds=0.0), clock=clock)


class TestCooldown:
    def test_first_message_displays(self, dispatcher, clock):
        first = message("first")
        assert dispatcher.display(first) is True
        assert first.displayed_at == clock.now
        assert first.expires_at == clock.now + 8.0
        assert dispatcher.last_intervention_time == clock.now

    def test_second_message_waits_for_cooldown(self, dispatcher, clock):
        dispatcher.display(message("first"))
        assert dispatcher.display(message("second")) is False
        assert [m.title for m in dispatcher.backlog] == ["second"]

        clock.advance(29)
        dispatcher.pump()
        assert [m.title for m in dispatcher.active_messages] == []

        clock.advance(1)
        dispatcher.pump()
        assert [m.title for m in dispatcher.active_messages] == ["second"]

    def test_urgent_messages_respect_cooldown(self, dispatcher):
        dispatcher.display(message("first"))
        assert dispatcher.display(message("urgent", priority=Priority.URGENT)) is False

    @pytest.mark.parametrize(
        "stress,engagement,expected",
        [
            (0.7, 0.8, 45.0),
            (0.7, 0.3, 45.0),
            (0.3, 0.4, 20.0),
            (0.3, 0.8, 30.0),
            (0.6, 0.5, 30.0),
        ],
    )
    def test_adapt_cooldown(self, dispatcher, stress, engagement, expected):
        assert dispatcher.adapt_cooldown(stress, engagement) == expected
        assert dispatcher.cooldown == expected


class TestCapacity:
    def test_capacity_and_fifo(self, open_dispatcher):
        a, b, c, d = (message(t, duration=100) for t in "abcd")
        assert open_dispatcher.display(a) is True
        assert open_dispatcher.display(b) is True
        assert open_dispatcher.display(c) is False
        assert open_dispatcher.display(d) is False

        assert open_dispatcher.dismiss(a.id) is True
        assert [m.title for m in open_dispatcher.active_messages] == ["b", "c"]
        assert [m.title for m in open_dispatcher.backlog] == ["d"]

    def test_new_message_queues_behind_backlog(self, clock):
        dispatcher = CoachingDispatcher(DispatcherConfig(cooldown_seconds=10.0), clock=clock)
        dispatcher.display(message("a", duration=2))
        dispatcher.display(message("b"))

        clock.advance(5)
        # a has expired, so there is room, but b is still waiting on cooldown
        assert dispatcher.display(message("c")) is False
        assert [m.title for m in dispatcher.backlog] == ["b", "c"]

        clock.advance(5)
        dispatcher.pump()
        assert [m.title for m in dispatcher.active_messages] == ["b"]


class TestExpiryAndDismissal:
    def test_expiry_emits_dismiss_event(self, dispatcher, clock):
        first = message("first")
        dispatcher.display(first)
        clock.advance(8)
        dispatcher.pump()

        events = dispatcher.drain_events()
        assert [(e.kind, e.reason) for e in events] == [("display", ""), ("dismiss", "expired")]
        assert events[1].timestamp == clock.now
        assert dispatcher.drain_events() == []

    def test_non_dismissible(self, dispatcher):
        pinned = message("pinned", dismissible=False)
        dispatcher.display(pinned)
        assert dispatcher.dismiss(pinned.id) is False
        assert dispatcher.dismiss(pinned.id, force=True) is True
        assert dispatcher.active_messages == []

    def test_dismiss_unknown(self, dispatcher):
        assert dispatcher.dismiss("missing") is False

    def test_clear(self, dispatcher):
        dispatcher.display(message("a"))
        dispatcher.display(message("b"))
        dispatcher.clear()

        assert dispatcher.active_messages == []
        assert dispatcher.backlog == []
        assert dispatcher.drain_events()[-1].reason == "cleared"
