"""
Epsilon-greedy tabular Q-learning over coaching actions.

State keys quantize stress, engagement and cognitive load into five buckets
each plus the number of correct answers among the last three attempts:
``s{stress}_e{engagement}_c{load}_p{correct}``.

Exploration uses an injected random.Random so runs are reproducible.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from loguru import logger

from src.tutoring.models import (
    ActionType,
    PerformanceRecord,
    Priority,
    StudentState,
    TutoringAction,
)

NO_ACTION = "none"

RL_ACTIONS: tuple[str, ...] = (
    ActionType.HINT.value,
    ActionType.ENCOURAGEMENT.value,
    ActionType.STRATEGY.value,
    ActionType.BREAK.value,
    ActionType.DIFFICULTY_ADJUST.value,
    NO_ACTION,
)

ACTION_TEMPLATES: dict[str, str] = {
    "hint": "Consider breaking this problem into smaller steps.",
    "encouragement": "You're doing well! Keep up the good work.",
    "strategy": "Try eliminating incorrect answers first.",
    "break": "Take a moment to relax and refocus.",
    "difficulty_adjust": "Let's adjust the difficulty to match your current level.",
}

RL_ACTION_CONFIDENCE = 0.7
FAST_RESPONSE_MS = 60_000


@dataclass
class RLConfig:
    """Q-learning hyperparameters."""

    epsilon: float = 0.1
    alpha: float = 0.1
    gamma: float = 0.9


@dataclass(frozen=True)
class RLDecision:
    """Outcome of one epsilon-greedy draw."""

    state_key: str
    action: str
    explored: bool

    @property
    def is_none(self) -> bool:
        return self.action == NO_ACTION


def _bucket(value: float) -> int:
    return max(0, min(4, int(value * 5)))


def state_key(state: StudentState) -> str:
    """Discretized key for the Q-table."""
    correct = sum(1 for r in state.recent(3) if r.correct)
    return (
        f"s{_bucket(state.stress_level)}"
        f"_e{_bucket(state.engagement_level)}"
        f"_c{_bucket(state.cognitive_load)}"
        f"_p{correct}"
    )


def attempt_reward(record: PerformanceRecord) -> float:
    """1 for a correct answer, +0.5 under a minute, +0.3 when confident."""
    reward = 0.0
    if record.correct:
        reward += 1.0
    if record.response_time_ms < FAST_RESPONSE_MS:
        reward += 0.5
    if record.confidence > 0.7:
        reward += 0.3
    return reward


class QLearningAgent:
    """Per-engine Q-table and epsilon-greedy policy."""

    def __init__(self, config: RLConfig | None = None, rng: random.Random | None = None):
        self.config = config or RLConfig()
        self.rng = rng or random.Random()
        self._table: dict[str, dict[str, float]] = {}

    def q_values(self, key: str) -> dict[str, float]:
        """Action values for a state key, zero-initialised on first visit."""
        values = self._table.get(key)
        if values is None:
            values = {action: 0.0 for action in RL_ACTIONS}
            self._table[key] = values
        return values

    def best_action(self, key: str) -> str:
        # Later actions win ties, so an untrained state prefers "none".
        values = self.q_values(key)
        best = RL_ACTIONS[0]
        for action in RL_ACTIONS:
            if values[action] >= values[best]:
                best = action
        return best

    def choose(self, state: StudentState) -> RLDecision:
        key = state_key(state)
        self.q_values(key)
        if self.rng.random() < self.config.epsilon:
            return RLDecision(key, self.rng.choice(RL_ACTIONS), explored=True)
        return RLDecision(key, self.best_action(key), explored=False)

    def update(self, key: str, action: str, reward: float, next_key: str) -> float:
        """Q(s,a) += alpha * (r + gamma * max Q(s') - Q(s,a))."""
        if action not in RL_ACTIONS:
            logger.debug("Skipping Q update for non-RL action {}", action)
            return 0.0
        values = self.q_values(key)
        target = reward + self.config.gamma * max(self.q_values(next_key).values())
        values[action] += self.config.alpha * (target - values[action])
        return values[action]

    def build_action(self, decision: RLDecision, now: float) -> TutoringAction | None:
        if decision.is_none:
            return None
        return TutoringAction(
            type=ActionType(decision.action),
            content=ACTION_TEMPLATES[decision.action],
            priority=Priority.MEDIUM,
            reasoning="Exploratory RL pick" if decision.explored else "RL agent recommendation",
            confidence=RL_ACTION_CONFIDENCE,
            timing=now,
            expected_outcome="Improved performance",
            source="rl",
            trigger=decision.state_key,
        )

    def export_table(self) -> dict[str, dict[str, float]]:
        return {key: dict(values) for key, values in self._table.items()}

    def load_table(self, table: dict[str, dict[str, float]]) -> None:
        for key, values in table.items():
            merged = self.q_values(key)
            merged.update({a: float(v) for a, v in values.items() if a in RL_ACTIONS})
