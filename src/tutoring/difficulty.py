"""Adaptive difficulty targeting from average mastery and affect."""

from __future__ import annotations

from src.tutoring.mastery_tracker import MasteryTracker
from src.tutoring.models import LearningRecommendation, StudentState, clamp


def target_difficulty(average_mastery: float, state: StudentState) -> float:
    """Aim for a 70-80% success band, easing off under stress or disengagement."""
    target = average_mastery * 0.8
    if state.stress_level > 0.6:
        target *= 0.8
    if state.engagement_level < 0.4:
        target *= 0.9
    return clamp(target, 0.1, 1.0)


def estimate_duration(difficulty: float) -> float:
    """One to three minutes depending on difficulty, in seconds."""
    return 60 + difficulty * 120


def strategy_tip(state: StudentState, difficulty: float) -> str:
    if difficulty > 0.7:
        return "Take your time and work through each step carefully"
    if state.stress_level > 0.6:
        return "Stay calm and trust your preparation"
    return "Apply your knowledge systematically"


class DifficultyAdjuster:
    """Builds the per-attempt next-question profile."""

    def recommend(self, state: StudentState, tracker: MasteryTracker) -> LearningRecommendation:
        average = tracker.average_mastery()
        difficulty = target_difficulty(average, state)
        focus = tracker.weakest_skill()

        return LearningRecommendation(
            next_skill_focus=focus.skill_id,
            target_difficulty=difficulty,
            strategy=strategy_tip(state, difficulty),
            recommended_questions=[f"{focus.skill_id}_d{int(difficulty * 5)}"],
            reasoning=[
                f"Based on {average * 100:.1f}% average mastery, targeting "
                f"{difficulty * 100:.1f}% difficulty in {focus.skill_name}"
            ],
            expected_duration=estimate_duration(difficulty),
            confidence=0.7,
        )
