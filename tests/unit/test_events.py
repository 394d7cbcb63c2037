"""
Unit tests for boundary event validation.
"""

import pytest
from pydantic import ValidationError

from src.tutoring.events import (
    AttemptEvent,
    KeyboardMetrics,
    LearningContext,
    MouseMetrics,
    StressIndicatorSample,
    keyboard_stress,
    mouse_stress,
)


class TestAttemptEvent:
    def test_valid(self, make_attempt):
        event = make_attempt(correct=False)
        assert event.correct is False
        assert event.hint_used is False

    @pytest.mark.parametrize(
        "field,value",
        [("confidence", 1.5), ("confidence", -0.1), ("difficulty_level", 2.0), ("response_time_ms", -1)],
    )
    def test_out_of_range(self, make_attempt, field, value):
        with pytest.raises(ValidationError):
            make_attempt(**{field: value})

    def test_frozen(self, make_attempt):
        event = make_attempt()
        with pytest.raises(ValidationError):
            event.correct = False


class TestStressIndicatorSample:
    def test_defaults_are_calm(self):
        sample = StressIndicatorSample()
        assert sample.facial_tension == 0.0
        assert sample.engagement is None

    def test_channels_bounded(self):
        with pytest.raises(ValidationError):
            StressIndicatorSample(facial_tension=1.2)
        with pytest.raises(ValidationError):
            StressIndicatorSample(attention_lapses=-1)

    def test_keyboard_stress(self):
        metrics = KeyboardMetrics(avg_typing_speed=40, error_corrections=5, pause_duration_ms=3000)
        assert keyboard_stress(metrics) == pytest.approx((0.5 + 1.0 + 1.0) / 3)

    def test_mouse_stress(self):
        assert mouse_stress(MouseMetrics(movement_jitter=0.4, click_precision=0.8)) == pytest.approx(0.3)

    def test_from_raw(self):
        sample = StressIndicatorSample.from_raw(
            facial_tension=0.5,
            response_latency=0.2,
            error_rate=0.1,
            keyboard=KeyboardMetrics(avg_typing_speed=100, error_corrections=0, pause_duration_ms=0),
            mouse=MouseMetrics(movement_jitter=0.0, click_precision=1.0),
            attention_lapses=2,
            engagement=0.6,
        )
        assert sample.keyboard_dynamics == 0.0
        assert sample.mouse_dynamics == 0.0
        assert sample.attention_lapses == 2
        assert sample.engagement == 0.6


class TestLearningContext:
    def test_rejects_unknown_session_type(self):
        with pytest.raises(ValidationError):
            LearningContext(session_type="cram")

    def test_defaults(self):
        context = LearningContext()
        assert context.time_available == 3600.0
        assert context.prerequisites == {}
