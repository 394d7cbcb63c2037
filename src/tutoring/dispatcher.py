"""
Coaching Message Dispatcher.

Rate-limited, strictly FIFO admission of coaching messages into a bounded
active set. Displays and dismissals are queued as DispatchEvents that the
caller drains; auto-dismiss is an expiry timestamp checked on every call.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from src.tutoring.models import CoachingMessage


@dataclass
class DispatcherConfig:
    max_concurrent_messages: int = 2
    cooldown_seconds: float = 30.0
    calm_cooldown_seconds: float = 45.0
    nudge_cooldown_seconds: float = 20.0


@dataclass(frozen=True)
class DispatchEvent:
    """Outbound notification for the UI boundary."""

    kind: str  # "display" or "dismiss"
    message: CoachingMessage
    timestamp: float
    reason: str = ""


class CoachingDispatcher:
    """Admission control for coaching messages."""

    def __init__(self, config: DispatcherConfig | None = None, clock: Callable[[], float] = time.time):
        self.config = config or DispatcherConfig()
        self._clock = clock
        self._active: dict[str, CoachingMessage] = {}
        self._backlog: deque[CoachingMessage] = deque()
        self._outbox: list[DispatchEvent] = []
        self.cooldown = self.config.cooldown_seconds
        self.last_intervention_time: float | None = None

    @property
    def active_messages(self) -> list[CoachingMessage]:
        return list(self._active.values())

    @property
    def backlog(self) -> list[CoachingMessage]:
        return list(self._backlog)

    def adapt_cooldown(self, stress_level: float, engagement_level: float) -> float:
        """Calmer when stressed, chattier when disengaged."""
        if stress_level > 0.6:
            self.cooldown = self.config.calm_cooldown_seconds
        elif engagement_level < 0.5:
            self.cooldown = self.config.nudge_cooldown_seconds
        else:
            self.cooldown = self.config.cooldown_seconds
        return self.cooldown

    def _cooling_down(self, now: float) -> bool:
        if self.last_intervention_time is None:
            return False
        return now - self.last_intervention_time < self.cooldown

    def _has_room(self) -> bool:
        return len(self._active) < self.config.max_concurrent_messages

    def _admit(self, message: CoachingMessage, now: float) -> None:
        message.displayed_at = now
        message.expires_at = now + message.duration
        self._active[message.id] = message
        self.last_intervention_time = now
        self._outbox.append(DispatchEvent("display", message, now))
        logger.debug("Displayed coaching message {} ({})", message.title, message.priority.value)

    def _remove(self, message_id: str, now: float, reason: str) -> CoachingMessage | None:
        message = self._active.pop(message_id, None)
        if message is not None:
            self._outbox.append(DispatchEvent("dismiss", message, now, reason))
            logger.debug("Dismissed coaching message {} ({})", message.title, reason)
        return message

    def _expire(self, now: float) -> None:
        expired = [m.id for m in self._active.values() if m.expires_at is not None and m.expires_at <= now]
        for message_id in expired:
            self._remove(message_id, now, "expired")

    def _drain(self, now: float) -> None:
        while self._backlog and self._has_room() and not self._cooling_down(now):
            self._admit(self._backlog.popleft(), now)

    def pump(self) -> None:
        """Expire due messages and admit from the backlog if allowed."""
        now = self._clock()
        self._expire(now)
        self._drain(now)

    def display(self, message: CoachingMessage) -> bool:
        """
        Submit a message.

        Returns:
            True if displayed immediately, False if queued
        """
        now = self._clock()
        self._expire(now)
        self._drain(now)

        if self._backlog or not self._has_room() or self._cooling_down(now):
            self._backlog.append(message)
            logger.debug("Queued coaching message {} (backlog={})", message.title, len(self._backlog))
            return False

        self._admit(message, now)
        return True

    def dismiss(self, message_id: str, force: bool = False) -> bool:
        """Remove an active message, then try the backlog."""
        now = self._clock()
        message = self._active.get(message_id)
        if message is None:
            return False
        if not message.dismissible and not force:
            logger.debug("Message {} is not dismissible", message_id)
            return False
        self._remove(message_id, now, "dismissed")
        self._expire(now)
        self._drain(now)
        return True

    def clear(self) -> None:
        """Drop everything; used when the session ends."""
        now = self._clock()
        for message_id in list(self._active):
            self._remove(message_id, now, "cleared")
        self._backlog.clear()

    def drain_events(self) -> list[DispatchEvent]:
        events, self._outbox = self._outbox, []
        return events
