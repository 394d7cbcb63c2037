"""
Student State Aggregator.

Derives cognitive load, stress, engagement, confidence and learning velocity
from the attempt log and the external stress-indicator feed. Every derived
value is recomputed from the history tail plus the new record; the only
carried accumulators are the stress EMA and the cognitive-load level.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from src.tutoring.events import StressIndicatorSample
from src.tutoring.models import PerformanceRecord, StudentState, clamp

STRESS_WEIGHTS: dict[str, float] = {
    "facial_tension": 0.3,
    "response_latency": 0.2,
    "error_rate": 0.2,
    "keyboard_dynamics": 0.15,
    "mouse_dynamics": 0.1,
    "attention_lapses": 0.05,
}

BASE_RESPONSE_MS = 30_000
RESPONSE_MS_PER_DIFFICULTY = 45_000

VELOCITY_WINDOW = 5
CONFIDENCE_WINDOW = 3


@dataclass
class AggregatorConfig:
    """Tunables for state aggregation."""

    stress_smoothing: float = 0.2
    stress_event_threshold: float = 0.6
    critical_stress_threshold: float = 0.8
    attention_lapse_limit: int = 3
    max_cognitive_load: float = 1.0
    min_cognitive_load: float = 0.1
    load_step_up: float = 0.1
    load_step_down: float = 0.05


def expected_response_ms(difficulty: float) -> float:
    """Expected time to answer: 30s base plus 45s scaled by difficulty."""
    return BASE_RESPONSE_MS + RESPONSE_MS_PER_DIFFICULTY * difficulty


def stress_score(sample: StressIndicatorSample) -> float:
    """Weighted blend of the normalized indicator channels, in [0, 1]."""
    return clamp(
        sample.facial_tension * STRESS_WEIGHTS["facial_tension"]
        + sample.response_latency * STRESS_WEIGHTS["response_latency"]
        + sample.error_rate * STRESS_WEIGHTS["error_rate"]
        + sample.keyboard_dynamics * STRESS_WEIGHTS["keyboard_dynamics"]
        + sample.mouse_dynamics * STRESS_WEIGHTS["mouse_dynamics"]
        + min(1.0, sample.attention_lapses / 10) * STRESS_WEIGHTS["attention_lapses"]
    )


def _accuracy(records: list[PerformanceRecord]) -> float:
    return sum(1 for r in records if r.correct) / len(records)


class StudentStateAggregator:
    """Owns the single mutable StudentState for one student."""

    def __init__(
        self,
        student_id: str,
        config: AggregatorConfig | None = None,
        clock: Callable[[], float] = time.time,
        state: StudentState | None = None,
    ):
        self.config = config or AggregatorConfig()
        self._clock = clock
        self._state = state or StudentState(id=student_id, session_start=clock())

    @property
    def state(self) -> StudentState:
        return self._state

    # ------------------------------------------------------------------
    # Attempt path
    # ------------------------------------------------------------------

    def refresh(self, record: PerformanceRecord, blend_stress: bool = True) -> StudentState:
        """
        Append one attempt and recompute the derived state.

        Args:
            record: The new attempt
            blend_stress: Fold the record's indicator vector into the stress
                EMA. False when the vector was already blended on arrival.
        """
        state = self._state
        state.append_record(record)

        self._update_cognitive_load(record)
        if blend_stress:
            self.blend_stress(stress_score(record.stress_indicators))
        self._update_learning_velocity()
        self._update_confidence()
        state.time_on_task = max(0.0, record.timestamp - state.session_start)
        return state

    def _update_cognitive_load(self, record: PerformanceRecord) -> None:
        cfg = self.config
        ratio = record.response_time_ms / expected_response_ms(record.difficulty_level)
        if ratio > 1.5:
            self._state.cognitive_load = min(cfg.max_cognitive_load, self._state.cognitive_load + cfg.load_step_up)
        elif ratio < 0.7:
            self._state.cognitive_load = max(cfg.min_cognitive_load, self._state.cognitive_load - cfg.load_step_down)

    def _update_learning_velocity(self) -> None:
        history = self._state.performance_history
        if len(history) < 2 * VELOCITY_WINDOW:
            logger.debug("Learning velocity needs {} attempts, have {}", 2 * VELOCITY_WINDOW, len(history))
            return
        recent = history[-VELOCITY_WINDOW:]
        older = history[-2 * VELOCITY_WINDOW : -VELOCITY_WINDOW]
        self._state.learning_velocity = _accuracy(recent) - _accuracy(older)

    def _update_confidence(self) -> None:
        window = self._state.recent(CONFIDENCE_WINDOW)
        if not window:
            return
        reported = sum(r.confidence for r in window) / len(window)
        self._state.confidence_level = clamp(0.6 * reported + 0.4 * _accuracy(window))

    # ------------------------------------------------------------------
    # Sensor path
    # ------------------------------------------------------------------

    def blend_stress(self, score: float) -> float:
        """EMA-blend an instantaneous stress score into stress_level."""
        alpha = self.config.stress_smoothing
        self._state.stress_level = clamp(alpha * score + (1 - alpha) * self._state.stress_level)
        return self._state.stress_level

    def set_engagement(self, level: float) -> None:
        self._state.engagement_level = clamp(level)

    def record_attention_lapses(self, count: int) -> bool:
        """
        Accumulate distraction events.

        Returns:
            True when this call pushed the total past the lapse limit
        """
        if count <= 0:
            return False
        attention = self._state.attention_state
        before = attention.distraction_events
        attention.distraction_events += count
        attention.focused = False
        limit = self.config.attention_lapse_limit
        return before <= limit < attention.distraction_events

    def is_stress_event(self, score: float) -> bool:
        return score > self.config.stress_event_threshold

    def is_critical_stress(self, score: float) -> bool:
        return score > self.config.critical_stress_threshold

    def tick(self) -> None:
        """Keep time_on_task current between attempts."""
        self._state.time_on_task = max(0.0, self._clock() - self._state.session_start)
