"""
Unit tests for rule triggers and rule/RL arbitration.
"""

import random

import pytest

from src.tutoring.events import StressIndicatorSample
from src.tutoring.intervention_engine import (
    RULE_TRIGGERS,
    InterventionEngine,
    check_confidence,
    check_difficulty,
    check_engagement,
    check_response_time,
    check_stress,
    critical_stress_action,
    evaluate_triggers,
    select_best,
)
from src.tutoring.models import ActionType, PerformanceRecord, Priority, StudentState, TutoringAction
from src.tutoring.rl_agent import NO_ACTION, QLearningAgent, RLConfig


def add_records(state, outcomes, response_time_ms=20_000):
    for correct in outcomes:
        state.append_record(
            PerformanceRecord(
                timestamp=float(len(state.performance_history)),
                question_id="q",
                skill_id="algebra_linear",
                correct=correct,
                response_time_ms=response_time_ms,
                confidence=0.5,
                difficulty_level=0.5,
                stress_indicators=StressIndicatorSample(),
                cognitive_load_at_time=0.3,
            )
        )


def action(priority, confidence, trigger):
    return TutoringAction(
        type=ActionType.STRATEGY,
        content="",
        priority=priority,
        reasoning="",
        confidence=confidence,
        timing=0.0,
        trigger=trigger,
    )


@pytest.fixture
def state():
    return StudentState(id="student-1", session_start=0.0)


class TestTriggers:
    def test_registry_order(self):
        assert list(RULE_TRIGGERS) == ["stress", "engagement", "difficulty", "time", "confidence"]

    def test_calm_state_fires_nothing(self, state):
        assert evaluate_triggers(state, 0.0) == []

    def test_stress(self, state):
        state.stress_level = 0.7
        assert check_stress(state, 0.0) is None

        state.stress_level = 0.75
        result = check_stress(state, 5.0)
        assert result.type is ActionType.BREAK
        assert result.priority is Priority.HIGH
        assert result.confidence == pytest.approx(0.8)
        assert result.timing == 5.0
        assert "75.0%" in result.reasoning

    def test_engagement(self, state):
        state.engagement_level = 0.3
        result = check_engagement(state, 0.0)
        assert result.type is ActionType.ENCOURAGEMENT
        assert result.priority is Priority.MEDIUM

    def test_difficulty_needs_three_misses(self, state):
        add_records(state, [False, False])
        assert check_difficulty(state, 0.0) is None

        add_records(state, [False])
        result = check_difficulty(state, 0.0)
        assert result.type is ActionType.DIFFICULTY_ADJUST
        assert result.priority is Priority.HIGH
        assert result.confidence == pytest.approx(0.9)

    def test_difficulty_broken_streak(self, state):
        add_records(state, [False, True, False])
        assert check_difficulty(state, 0.0) is None

    def test_slow_responses(self, state):
        add_records(state, [True, True, True], response_time_ms=200_000)
        result = check_response_time(state, 0.0)
        assert result.type is ActionType.STRATEGY
        assert result.confidence == pytest.approx(0.6)

    def test_slow_responses_need_full_window(self, state):
        add_records(state, [True, True], response_time_ms=400_000)
        assert check_response_time(state, 0.0) is None

    def test_confidence(self, state):
        state.confidence_level = 0.2
        assert check_confidence(state, 0.0).type is ActionType.ENCOURAGEMENT

    def test_critical_stress_action(self):
        result = critical_stress_action(0.9, 12.0)
        assert result.priority is Priority.URGENT
        assert result.type is ActionType.BREAK
        assert result.source == "stress_event"


class TestSelectBest:
    def test_empty(self):
        assert select_best([]) is None

    def test_priority_beats_confidence(self):
        best = select_best([action(Priority.MEDIUM, 0.95, "a"), action(Priority.HIGH, 0.6, "b")])
        assert best.trigger == "b"

    def test_confidence_breaks_priority_ties(self):
        best = select_best([action(Priority.HIGH, 0.8, "stress"), action(Priority.HIGH, 0.9, "difficulty")])
        assert best.trigger == "difficulty"


class TestArbitration:
    def test_rules_win_over_rl(self, state):
        agent = QLearningAgent(RLConfig(epsilon=1.0), random.Random(0))
        engine = InterventionEngine(agent)
        state.stress_level = 0.9

        decision = engine.decide(state, 0.0)
        assert decision.action.trigger == "stress"
        assert decision.action.source == "rule"
        assert decision.executed == ActionType.BREAK.value
        assert decision.rl.explored is True

    def test_rl_used_when_no_rule_fires(self, state):
        agent = QLearningAgent(RLConfig(epsilon=0.0))
        agent.load_table({"s1_e4_c1_p0": {"strategy": 0.5}})
        decision = InterventionEngine(agent).decide(state, 3.0)
        assert decision.action.type is ActionType.STRATEGY
        assert decision.action.source == "rl"
        assert decision.candidates == ()

    def test_untrained_rl_stays_quiet(self, state):
        decision = InterventionEngine(QLearningAgent(RLConfig(epsilon=0.0))).decide(state, 0.0)
        assert decision.action is None
        assert decision.executed == NO_ACTION

    def test_highest_rule_selected(self, state):
        state.stress_level = 0.9
        add_records(state, [False, False, False])
        decision = InterventionEngine(QLearningAgent(RLConfig(epsilon=0.0))).decide(state, 0.0)
        assert len(decision.candidates) == 2
        assert decision.action.type is ActionType.DIFFICULTY_ADJUST
