"""
Unit tests for TutoringStore against a temporary SQLite database.
"""

import pytest

from src.tutoring.events import SkillCatalogueEntry
from src.tutoring.mastery_tracker import DEFAULT_SAT_SKILLS
from src.tutoring.models import SessionMetrics, SessionPerformance, SessionSummary, SkillMastery


def summary(session_id="session-1", ended_at=2_000.0, mastery=0.4):
    return SessionSummary(
        session_id=session_id,
        student_id="student-1",
        test_type="practice",
        started_at=1_000.0,
        ended_at=ended_at,
        metrics=SessionMetrics(total_questions=4, correct_answers=3, interventions=1, learning_gains=0.2),
        performance=SessionPerformance(accuracy=0.75, pace=1.1),
        mastery=[
            SkillMastery(
                skill_id="algebra_linear",
                skill_name="Linear Equations",
                mastery_probability=mastery,
                attempts=4,
                correct_attempts=3,
                last_attempt_timestamp=1_900.0,
            )
        ],
    )


class TestSkillCatalogue:
    def test_seed_and_load_preserves_order(self, store):
        assert store.seed_skills(DEFAULT_SAT_SKILLS) == 15
        loaded = store.load_skill_catalogue()
        assert [s.skill_id for s in loaded] == [s.skill_id for s in DEFAULT_SAT_SKILLS]

    def test_reseed_renames(self, store):
        store.seed_skills([SkillCatalogueEntry(skill_id="algebra_linear", name="Old")])
        store.seed_skills([SkillCatalogueEntry(skill_id="algebra_linear", name="Linear Equations")])
        assert store.load_skill_catalogue() == [
            SkillCatalogueEntry(skill_id="algebra_linear", name="Linear Equations")
        ]

    def test_empty_store(self, store):
        assert store.load_skill_catalogue() == []


class TestSessions:
    def test_record_and_load(self, store):
        store.record_session(summary())
        loaded = store.load_session("session-1")

        assert loaded["student_id"] == "student-1"
        assert loaded["metrics"]["total_questions"] == 4
        assert loaded["performance"]["accuracy"] == pytest.approx(0.75)
        assert loaded["mastery"] == {"algebra_linear": pytest.approx(0.4)}

    def test_missing_session(self, store):
        assert store.load_session("nope") is None

    def test_latest_mastery(self, store):
        store.record_session(summary("session-1", ended_at=2_000.0, mastery=0.4))
        store.record_session(summary("session-2", ended_at=3_000.0, mastery=0.6))

        latest = store.latest_mastery("student-1")
        assert len(latest) == 1
        assert latest[0].mastery_probability == pytest.approx(0.6)
        assert latest[0].last_attempt_timestamp == 1_900.0
        assert store.latest_mastery("someone-else") == []
