"""
Unit tests for StudentStateAggregator.

Tests:
- Cognitive load steps against expected response time
- Stress EMA and indicator weighting
- Learning velocity and confidence windows
- Attention lapse accounting
"""

import pytest

from src.tutoring.events import StressIndicatorSample
from src.tutoring.models import PerformanceRecord, StudentState
from src.tutoring.state_aggregator import (
    StudentStateAggregator,
    expected_response_ms,
    stress_score,
)


def record(timestamp, correct=True, response_time_ms=40_000, confidence=0.5, difficulty=0.5, sample=None):
    return PerformanceRecord(
        timestamp=timestamp,
        question_id=f"q-{timestamp}",
        skill_id="algebra_linear",
        correct=correct,
        response_time_ms=response_time_ms,
        confidence=confidence,
        difficulty_level=difficulty,
        stress_indicators=sample or StressIndicatorSample(),
        cognitive_load_at_time=0.3,
    )


@pytest.fixture
def aggregator(clock):
    return StudentStateAggregator("student-1", clock=clock)


class TestStressScore:
    def test_expected_response_time(self):
        assert expected_response_ms(0.0) == 30_000
        assert expected_response_ms(1.0) == 75_000

    def test_weights_sum_to_one_at_saturation(self):
        sample = StressIndicatorSample(
            facial_tension=1,
            response_latency=1,
            error_rate=1,
            keyboard_dynamics=1,
            mouse_dynamics=1,
            attention_lapses=10,
        )
        assert stress_score(sample) == pytest.approx(1.0)

    def test_single_channel(self):
        assert stress_score(StressIndicatorSample(facial_tension=1.0)) == pytest.approx(0.3)
        assert stress_score(StressIndicatorSample(attention_lapses=5)) == pytest.approx(0.025)

    def test_empty_sample(self):
        assert stress_score(StressIndicatorSample()) == 0.0


class TestCognitiveLoad:
    """Load moves by +0.1 when slow and -0.05 when fast."""

    def test_slow_answer_raises_load(self, aggregator, clock):
        state = aggregator.refresh(record(clock.now, response_time_ms=90_000))
        assert state.cognitive_load == pytest.approx(0.4)

    def test_fast_answer_lowers_load(self, aggregator, clock):
        state = aggregator.refresh(record(clock.now, response_time_ms=20_000))
        assert state.cognitive_load == pytest.approx(0.25)

    def test_expected_pace_keeps_load(self, aggregator, clock):
        state = aggregator.refresh(record(clock.now, response_time_ms=50_000))
        assert state.cognitive_load == pytest.approx(0.3)

    def test_load_is_bounded(self, aggregator, clock):
        for _ in range(12):
            aggregator.refresh(record(clock.advance(1), response_time_ms=150_000))
        assert aggregator.state.cognitive_load == pytest.approx(1.0)

        for _ in range(30):
            aggregator.refresh(record(clock.advance(1), response_time_ms=1_000))
        assert aggregator.state.cognitive_load == pytest.approx(0.1)


class TestStress:
    def test_refresh_blends_attached_sample(self, aggregator, clock):
        state = aggregator.refresh(record(clock.now, sample=StressIndicatorSample(facial_tension=1.0)))
        assert state.stress_level == pytest.approx(0.2 * 0.3 + 0.8 * 0.2)

    def test_refresh_without_blend(self, aggregator, clock):
        state = aggregator.refresh(
            record(clock.now, sample=StressIndicatorSample(facial_tension=1.0)),
            blend_stress=False,
        )
        assert state.stress_level == pytest.approx(0.2)

    def test_blend_converges(self, aggregator):
        for _ in range(50):
            aggregator.blend_stress(0.9)
        assert aggregator.state.stress_level == pytest.approx(0.9, abs=1e-3)

    def test_thresholds(self, aggregator):
        assert aggregator.is_stress_event(0.61)
        assert not aggregator.is_stress_event(0.6)
        assert aggregator.is_critical_stress(0.81)
        assert not aggregator.is_critical_stress(0.8)


class TestDerivedSignals:
    def test_velocity_needs_ten_attempts(self, aggregator, clock):
        for _ in range(9):
            aggregator.refresh(record(clock.advance(1), correct=True))
        assert aggregator.state.learning_velocity == pytest.approx(0.1)

    def test_velocity_compares_windows(self, aggregator, clock):
        for index in range(10):
            aggregator.refresh(record(clock.advance(1), correct=index >= 5))
        assert aggregator.state.learning_velocity == pytest.approx(1.0)

    def test_confidence_blends_report_and_accuracy(self, aggregator, clock):
        aggregator.refresh(record(clock.advance(1), correct=True, confidence=1.0))
        assert aggregator.state.confidence_level == pytest.approx(1.0)

        aggregator.refresh(record(clock.advance(1), correct=False, confidence=0.0))
        # window: (1.0, 0.0) -> 0.6 * 0.5 + 0.4 * 0.5
        assert aggregator.state.confidence_level == pytest.approx(0.5)

    def test_time_on_task(self, aggregator, clock):
        aggregator.refresh(record(clock.now + 90))
        assert aggregator.state.time_on_task == pytest.approx(90)

        clock.advance(300)
        aggregator.tick()
        assert aggregator.state.time_on_task == pytest.approx(300)

    def test_engagement_is_clamped(self, aggregator):
        aggregator.set_engagement(1.4)
        assert aggregator.state.engagement_level == 1.0


class TestAttention:
    def test_crossing_reported_once(self, aggregator):
        assert aggregator.record_attention_lapses(2) is False
        assert aggregator.record_attention_lapses(2) is True
        assert aggregator.record_attention_lapses(1) is False
        assert aggregator.state.attention_state.distraction_events == 5
        assert aggregator.state.attention_state.focused is False

    def test_zero_lapses_ignored(self, aggregator):
        assert aggregator.record_attention_lapses(0) is False
        assert aggregator.state.attention_state.focused is True


class TestHistory:
    def test_history_is_append_only_in_time(self, clock):
        state = StudentState(id="student-1", session_start=clock.now)
        state.append_record(record(clock.now + 10))
        with pytest.raises(ValueError):
            state.append_record(record(clock.now + 5))
        assert len(state.performance_history) == 1

    def test_recent_window(self, aggregator, clock):
        for _ in range(4):
            aggregator.refresh(record(clock.advance(1)))
        assert len(aggregator.state.recent(3)) == 3
        assert aggregator.state.recent(0) == []
        assert aggregator.state.recent_accuracy(3) == pytest.approx(1.0)
