"""
Unit tests for MasteryTracker.

Tests:
- BKT update formula and bounds
- Direction of the update for correct/incorrect answers
- Unknown skills and empty catalogues
- Learning-rate heuristic
"""

import random

import pytest

from src.tutoring.errors import ConfigurationError
from src.tutoring.events import SkillCatalogueEntry
from src.tutoring.mastery_tracker import (
    DEFAULT_SAT_SKILLS,
    MAX_LEARNING_RATE,
    MasteryTracker,
    bkt_update,
)
from src.tutoring.models import BKTParameters, SkillMastery


@pytest.fixture
def tracker(clock):
    return MasteryTracker(["algebra_linear", "algebra_quadratic", "geometry_basic"], clock=clock)


class TestBKTUpdate:
    """Tests for the four-parameter BKT step."""

    def test_correct_from_prior(self):
        # posterior = 0.09 / 0.315, then + (1 - posterior) * 0.15
        assert bkt_update(0.1, True, BKTParameters()) == pytest.approx(0.392857, abs=1e-5)

    def test_incorrect_from_high_mastery(self):
        # posterior = 0.08 / 0.23, then + (1 - posterior) * 0.15
        assert bkt_update(0.8, False, BKTParameters()) == pytest.approx(0.445652, abs=1e-5)

    def test_incorrect_never_raises_mastery(self):
        """At the prior the learning transition would overshoot; it is held."""
        assert bkt_update(0.1, False, BKTParameters()) == pytest.approx(0.1)

    def test_result_stays_in_bounds(self):
        params = BKTParameters(learn_rate=0.9)
        assert bkt_update(0.99, True, params) <= 0.99
        assert bkt_update(0.01, False, BKTParameters()) >= 0.01

    @pytest.mark.parametrize("mastery", [0.05, 0.3, 0.5, 0.7, 0.95])
    def test_direction(self, mastery):
        params = BKTParameters()
        assert bkt_update(mastery, True, params) >= mastery
        assert bkt_update(mastery, False, params) <= mastery

    @pytest.mark.parametrize("prior", [0.0, 0.01, 0.1, 0.5, 0.9, 1.0])
    @pytest.mark.parametrize("slip", [0.0, 0.1, 0.3, 0.49, 0.9])
    @pytest.mark.parametrize("guess", [0.0, 0.25, 0.49, 0.8])
    @pytest.mark.parametrize("learn_rate", [0.0, 0.15, 0.9])
    def test_bounds_and_direction_over_sequences(self, prior, slip, guess, learn_rate):
        params = BKTParameters(prior=prior, slip_rate=slip, guess_rate=guess, learn_rate=learn_rate)
        rng = random.Random(f"{prior}-{slip}-{guess}-{learn_rate}")
        sequence = [True] * 4 + [False] * 4 + [rng.random() < 0.5 for _ in range(24)]

        mastery = prior
        for correct in sequence:
            updated = bkt_update(mastery, correct, params)
            assert 0.01 <= updated <= 0.99

            # direction holds once mastery is inside the clipped range
            if slip < 0.5 and guess < 0.5 and 0.01 <= mastery <= 0.99:
                if correct:
                    assert updated >= mastery - 1e-12
                else:
                    assert updated <= mastery + 1e-12
            mastery = updated


class TestCatalogue:
    """Tests for catalogue handling."""

    def test_empty_catalogue_rejected(self):
        with pytest.raises(ConfigurationError):
            MasteryTracker([])

    def test_skills_start_at_prior(self, tracker):
        for skill in tracker.snapshot():
            assert skill.mastery_probability == pytest.approx(0.1)
            assert skill.attempts == 0
            assert skill.last_attempt_timestamp is None

    def test_display_names(self):
        tracker = MasteryTracker(["algebra_linear", ("custom", "Custom Skill"), SkillCatalogueEntry(skill_id="x", name="X")])
        names = [s.skill_name for s in tracker.snapshot()]
        assert names == ["Linear Equations", "Custom Skill", "X"]

    def test_default_sat_catalogue(self):
        tracker = MasteryTracker(DEFAULT_SAT_SKILLS)
        assert len(tracker.skill_ids) == 15
        assert tracker.skill_ids[0] == "algebra_linear"

    def test_unknown_skill_is_skipped(self, tracker):
        assert tracker.record_attempt("calculus", True) is None
        assert all(s.attempts == 0 for s in tracker.snapshot())


class TestRecordAttempt:
    """Tests for per-attempt bookkeeping."""

    def test_counts_and_timestamp(self, tracker, clock):
        skill = tracker.record_attempt("algebra_linear", True)
        assert skill.attempts == 1
        assert skill.correct_attempts == 1
        assert skill.last_attempt_timestamp == clock.now
        assert skill.mastery_probability == pytest.approx(0.392857, abs=1e-5)

    def test_explicit_timestamp(self, tracker):
        skill = tracker.record_attempt("algebra_linear", False, timestamp=42.0)
        assert skill.last_attempt_timestamp == 42.0
        assert skill.correct_attempts == 0

    def test_learning_rate_untouched_for_first_three(self, tracker):
        for _ in range(3):
            skill = tracker.record_attempt("algebra_linear", True)
        assert skill.learning_rate == pytest.approx(0.15)

    def test_learning_rate_nudges_after_three(self, tracker):
        for _ in range(4):
            skill = tracker.record_attempt("algebra_linear", True)
        assert skill.learning_rate == pytest.approx(0.15 * 1.05)

        skill = tracker.record_attempt("algebra_linear", False)
        assert skill.learning_rate == pytest.approx(0.15 * 1.05 * 0.95)

    def test_learning_rate_capped(self, tracker):
        for _ in range(60):
            skill = tracker.record_attempt("algebra_linear", True)
        assert skill.learning_rate == pytest.approx(MAX_LEARNING_RATE)
        assert skill.mastery_probability <= 0.99

    def test_snapshot_is_a_copy(self, tracker):
        snapshot = tracker.snapshot()
        snapshot[0].mastery_probability = 0.9
        assert tracker.get("algebra_linear").mastery_probability == pytest.approx(0.1)


class TestQueries:
    def test_weakest_skill_prefers_catalogue_order(self, tracker):
        assert tracker.weakest_skill().skill_id == "algebra_linear"
        tracker.record_attempt("algebra_linear", True)
        assert tracker.weakest_skill().skill_id == "algebra_quadratic"

    def test_average_mastery(self, tracker):
        tracker.record_attempt("algebra_linear", True)
        expected = (0.392857 + 0.1 + 0.1) / 3
        assert tracker.average_mastery() == pytest.approx(expected, abs=1e-5)

    def test_restore_clamps_and_ignores_untracked(self, tracker):
        tracker.restore(
            [
                SkillMastery(skill_id="algebra_linear", skill_name="Linear Equations", mastery_probability=1.0, attempts=9),
                SkillMastery(skill_id="unknown", skill_name="?", mastery_probability=0.5),
            ]
        )
        restored = tracker.get("algebra_linear")
        assert restored.mastery_probability == pytest.approx(0.99)
        assert restored.attempts == 9
        assert tracker.get("unknown") is None

    def test_reset(self, tracker):
        tracker.record_attempt("algebra_linear", True)
        tracker.reset()
        assert tracker.get("algebra_linear").attempts == 0
