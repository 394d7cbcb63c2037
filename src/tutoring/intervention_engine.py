"""
Intervention Decision Engine.

Each decision cycle evaluates every rule trigger against the current
StudentState and also draws from the RL selector. Rule candidates win when
any fired; the best one is picked by priority rank, then trigger confidence.
RL output is used only on cycles where no rule fired.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from src.tutoring.models import ActionType, Priority, StudentState, TutoringAction
from src.tutoring.rl_agent import NO_ACTION, QLearningAgent, RLDecision

RuleTrigger = Callable[[StudentState, float], "TutoringAction | None"]

# Ordered registry, populated by @rule_trigger
RULE_TRIGGERS: dict[str, RuleTrigger] = {}

HIGH_STRESS = 0.7
LOW_ENGAGEMENT = 0.4
LOW_CONFIDENCE = 0.3
SLOW_RESPONSE_MS = 180_000
STREAK_WINDOW = 3


def rule_trigger(name: str):
    """Decorator to register a rule trigger."""

    def decorator(func: RuleTrigger) -> RuleTrigger:
        RULE_TRIGGERS[name] = func
        return func

    return decorator


@rule_trigger("stress")
def check_stress(state: StudentState, now: float) -> TutoringAction | None:
    if state.stress_level <= HIGH_STRESS:
        return None
    return TutoringAction(
        type=ActionType.BREAK,
        content="Take a moment to breathe and relax. High stress can impact performance.",
        priority=Priority.HIGH,
        reasoning=f"Stress level detected at {state.stress_level * 100:.1f}%",
        confidence=0.8,
        timing=now,
        expected_outcome="Reduced stress and improved focus",
        trigger="stress",
    )


@rule_trigger("engagement")
def check_engagement(state: StudentState, now: float) -> TutoringAction | None:
    if state.engagement_level >= LOW_ENGAGEMENT:
        return None
    return TutoringAction(
        type=ActionType.ENCOURAGEMENT,
        content="Stay focused! You're making progress. Each question is a step toward your goal.",
        priority=Priority.MEDIUM,
        reasoning=f"Low engagement detected at {state.engagement_level * 100:.1f}%",
        confidence=0.7,
        timing=now,
        expected_outcome="Increased motivation and engagement",
        trigger="engagement",
    )


@rule_trigger("difficulty")
def check_difficulty(state: StudentState, now: float) -> TutoringAction | None:
    recent = state.recent(STREAK_WINDOW)
    if len(recent) < STREAK_WINDOW or any(r.correct for r in recent):
        return None
    return TutoringAction(
        type=ActionType.DIFFICULTY_ADJUST,
        content="Let's try some easier questions to build confidence before tackling harder ones.",
        priority=Priority.HIGH,
        reasoning="Three consecutive incorrect answers detected",
        confidence=0.9,
        timing=now,
        expected_outcome="Improved success rate and confidence",
        trigger="difficulty",
    )


@rule_trigger("time")
def check_response_time(state: StudentState, now: float) -> TutoringAction | None:
    recent = state.recent(STREAK_WINDOW)
    if len(recent) < STREAK_WINDOW:
        return None
    average_ms = sum(r.response_time_ms for r in recent) / len(recent)
    if average_ms <= SLOW_RESPONSE_MS:
        return None
    return TutoringAction(
        type=ActionType.STRATEGY,
        content="Try eliminating obviously wrong answers first to narrow your choices.",
        priority=Priority.MEDIUM,
        reasoning=f"Average response time increased to {average_ms / 1000:.1f} seconds",
        confidence=0.6,
        timing=now,
        expected_outcome="Faster decision making",
        trigger="time",
    )


@rule_trigger("confidence")
def check_confidence(state: StudentState, now: float) -> TutoringAction | None:
    if state.confidence_level >= LOW_CONFIDENCE:
        return None
    return TutoringAction(
        type=ActionType.ENCOURAGEMENT,
        content="Remember your preparation! Trust your knowledge and reasoning.",
        priority=Priority.MEDIUM,
        reasoning=f"Low confidence detected at {state.confidence_level * 100:.1f}%",
        confidence=0.7,
        timing=now,
        expected_outcome="Increased self-confidence",
        trigger="confidence",
    )


def evaluate_triggers(state: StudentState, now: float) -> list[TutoringAction]:
    """Run every registered trigger; registration order is preserved."""
    return [action for check in RULE_TRIGGERS.values() if (action := check(state, now)) is not None]


def select_best(candidates: list[TutoringAction]) -> TutoringAction | None:
    """Highest priority rank first, then highest trigger confidence."""
    if not candidates:
        return None
    return sorted(candidates, key=lambda a: (-a.priority.rank, -a.confidence))[0]


def critical_stress_action(level: float, now: float) -> TutoringAction:
    """Immediate break for an instantaneous stress reading above the critical threshold."""
    return TutoringAction(
        type=ActionType.BREAK,
        content="High stress detected. Consider taking a short break to reset your focus.",
        priority=Priority.URGENT,
        reasoning=f"Stress reading {level * 100:.1f}% exceeded critical threshold",
        confidence=0.9,
        timing=now,
        expected_outcome="Stress reduction and improved performance",
        source="stress_event",
        trigger="critical_stress",
    )


def attention_action(lapses: int, now: float) -> TutoringAction:
    return TutoringAction(
        type=ActionType.STRATEGY,
        content="Stay focused on the current question. Try reading it aloud to improve concentration.",
        priority=Priority.MEDIUM,
        reasoning=f"Multiple attention lapses detected ({lapses})",
        confidence=0.6,
        timing=now,
        expected_outcome="Improved focus and attention",
        source="attention",
        trigger="attention",
    )


@dataclass(frozen=True)
class Decision:
    """Result of one decision cycle."""

    action: TutoringAction | None
    rl: RLDecision
    candidates: tuple[TutoringAction, ...] = field(default_factory=tuple)

    @property
    def executed(self) -> str:
        """Action label credited by the Q update."""
        return self.action.type.value if self.action is not None else NO_ACTION


class InterventionEngine:
    """Arbitrates rule triggers and the RL selector."""

    def __init__(self, agent: QLearningAgent):
        self.agent = agent

    def decide(self, state: StudentState, now: float) -> Decision:
        candidates = evaluate_triggers(state, now)
        rl = self.agent.choose(state)

        if candidates:
            action = select_best(candidates)
            logger.debug(
                "Rule trigger {} won over {} candidate(s); RL pick {} ignored",
                action.trigger,
                len(candidates),
                rl.action,
            )
        else:
            action = self.agent.build_action(rl, now)

        return Decision(action=action, rl=rl, candidates=tuple(candidates))
