"""
Builders that turn engine output into CoachingMessages.
"""

from __future__ import annotations

from src.tutoring.models import (
    ActionType,
    CoachingCategory,
    CoachingMessage,
    MessageType,
    PacingGuidance,
    Priority,
    TutoringAction,
    UrgencyLevel,
)
from src.tutoring.pacing import StressManagement

ACTION_MESSAGE_TYPES: dict[ActionType, MessageType] = {
    ActionType.HINT: MessageType.STRATEGY,
    ActionType.ENCOURAGEMENT: MessageType.ENCOURAGEMENT,
    ActionType.STRATEGY: MessageType.STRATEGY,
    ActionType.BREAK: MessageType.STRESS_RELIEF,
    ActionType.DIFFICULTY_ADJUST: MessageType.STRATEGY,
    ActionType.REVIEW: MessageType.STRATEGY,
}

ACTION_TITLES: dict[ActionType, str] = {
    ActionType.HINT: "Helpful Hint",
    ActionType.ENCOURAGEMENT: "Keep Going",
    ActionType.STRATEGY: "Strategy Tip",
    ActionType.BREAK: "Take a Moment",
    ActionType.DIFFICULTY_ADJUST: "Difficulty Adjustment",
    ActionType.REVIEW: "Quick Review",
}

ACTION_CATEGORIES: dict[ActionType, CoachingCategory] = {
    ActionType.HINT: CoachingCategory("Strategy", "💡", "#3b82f6", "Strategic guidance"),
    ActionType.ENCOURAGEMENT: CoachingCategory("Motivation", "🌟", "#10b981", "Encouragement"),
    ActionType.STRATEGY: CoachingCategory("Strategy", "🎯", "#f59e0b", "Strategic advice"),
    ActionType.BREAK: CoachingCategory("Wellness", "😌", "#8b5cf6", "Break and wellness"),
    ActionType.DIFFICULTY_ADJUST: CoachingCategory("Adaptation", "⚖️", "#6366f1", "Difficulty adjustment"),
    ActionType.REVIEW: CoachingCategory("Review", "🔁", "#0ea5e9", "Concept review"),
}

WELCOME_CATEGORY = CoachingCategory("Welcome", "🌿", "#22c55e", "Session start")
PACING_URGENT_CATEGORY = CoachingCategory("Pacing", "⏰", "#f59e0b", "Time management guidance")
PACING_CATEGORY = CoachingCategory("Pacing", "📊", "#3b82f6", "Pace monitoring")
PERFORMANCE_CATEGORY = CoachingCategory("Performance", "📊", "#f59e0b", "Performance optimization")

PERFORMANCE_ALERTS: dict[str, tuple[str, str, Priority]] = {
    "accuracy": (
        "Performance Focus",
        "Consider slowing down to improve accuracy. Quality over speed.",
        Priority.MEDIUM,
    ),
    "pacing": (
        "Pace Adjustment",
        "You may need to pick up the pace to finish on time.",
        Priority.HIGH,
    ),
}


class MessageFactory:
    """Formats coaching messages with durations in seconds."""

    def __init__(self, durations: dict[str, float], welcome_seconds: float = 6.0):
        self.durations = durations
        self.welcome_seconds = welcome_seconds

    def duration_for(self, priority: Priority) -> float:
        return self.durations.get(priority.value, self.durations.get("medium", 8.0))

    def from_action(
        self,
        action: TutoringAction,
        now: float,
        stress: StressManagement | None = None,
    ) -> CoachingMessage:
        items: list[str] = []
        if action.type is ActionType.BREAK and stress is not None:
            items = list(stress.action_items)

        return CoachingMessage(
            type=ACTION_MESSAGE_TYPES[action.type],
            priority=action.priority,
            title=ACTION_TITLES[action.type],
            message=action.content,
            timing=now,
            duration=self.duration_for(action.priority),
            dismissible=action.priority is not Priority.URGENT,
            category=ACTION_CATEGORIES[action.type],
            action_items=items,
            source_action=action.type,
        )

    def welcome(self, now: float) -> CoachingMessage:
        return CoachingMessage(
            id="welcome",
            type=MessageType.ENCOURAGEMENT,
            priority=Priority.MEDIUM,
            title="Coach Ready",
            message="I'm here to help you perform your best. Stay focused and trust your preparation!",
            timing=now,
            duration=self.welcome_seconds,
            dismissible=True,
            category=WELCOME_CATEGORY,
        )

    def pacing(self, guidance: PacingGuidance, now: float) -> CoachingMessage | None:
        if guidance.urgency is UrgencyLevel.URGENT:
            return CoachingMessage(
                type=MessageType.WARNING,
                priority=Priority.URGENT,
                title="Time Management Alert",
                message=(
                    f"You're {guidance.questions_behind:.0f} questions behind pace. "
                    f"{guidance.recovery_strategy}"
                ),
                timing=now,
                duration=self.duration_for(Priority.URGENT),
                dismissible=False,
                category=PACING_URGENT_CATEGORY,
                action_items=[
                    "Skip difficult questions and return later",
                    "Focus on questions you can solve quickly",
                    "Use elimination strategies",
                ],
            )
        if guidance.urgency is UrgencyLevel.ATTENTION:
            return CoachingMessage(
                type=MessageType.PACING,
                priority=Priority.MEDIUM,
                title="Pacing Check",
                message=(
                    f"Current pace: {guidance.current_pace:.1f} q/min. "
                    f"Target: {guidance.recommended_pace:.1f} q/min"
                ),
                timing=now,
                duration=self.duration_for(Priority.MEDIUM),
                dismissible=True,
                category=PACING_CATEGORY,
            )
        return None

    def performance_alert(self, kind: str, now: float) -> CoachingMessage:
        title, text, priority = PERFORMANCE_ALERTS[kind]
        return CoachingMessage(
            type=MessageType.STRATEGY,
            priority=priority,
            title=title,
            message=text,
            timing=now,
            duration=self.duration_for(Priority.HIGH),
            dismissible=True,
            category=PERFORMANCE_CATEGORY,
        )
