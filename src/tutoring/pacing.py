"""
Pacing and stress-management helpers for live sessions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from src.tutoring.models import PacingGuidance, TestSection, UrgencyLevel


class PacingMonitor:
    """Compares section progress against its time budget."""

    def analyze(self, section: TestSection, current_pace: float) -> PacingGuidance:
        """
        Pacing guidance for a section.

        Args:
            section: Section with time_elapsed/time_limit in seconds
            current_pace: Observed questions per minute
        """
        time_remaining = section.time_limit - section.time_elapsed
        questions_remaining = section.question_count - section.current_question

        if questions_remaining <= 0:
            required_pace = 0.0
            time_per_question = 0.0
        elif time_remaining <= 0:
            required_pace = math.inf
            time_per_question = 0.0
        else:
            required_pace = questions_remaining / (time_remaining / 60)
            time_per_question = time_remaining / questions_remaining

        expected_done = section.question_count * (section.time_elapsed / section.time_limit)
        questions_behind = max(0.0, section.current_question - expected_done)

        if questions_behind > 2:
            urgency = UrgencyLevel.URGENT
            recovery = "Skip difficult questions and return if time allows"
        elif questions_behind > 1:
            urgency = UrgencyLevel.ATTENTION
            recovery = "Increase pace slightly, use elimination strategies"
        else:
            urgency = UrgencyLevel.NORMAL
            recovery = "Maintain current approach"

        return PacingGuidance(
            recommended_pace=required_pace,
            current_pace=current_pace,
            time_per_question=time_per_question,
            questions_behind=questions_behind,
            recovery_strategy=recovery,
            urgency=urgency,
        )


@dataclass(frozen=True)
class BreathingExercise:
    name: str
    duration: int  # seconds
    instructions: tuple[str, ...]
    pattern: str


@dataclass(frozen=True)
class BreakRecommendation:
    type: str  # micro, short
    duration: int  # seconds
    activities: tuple[str, ...]
    reasoning: str


@dataclass
class StressManagement:
    current_stress: float
    breathing_exercise: BreathingExercise
    relaxation_technique: str
    break_recommendation: BreakRecommendation | None = None
    action_items: list[str] = field(default_factory=list)


BOX_BREATHING = BreathingExercise(
    name="Box Breathing",
    duration=30,
    instructions=(
        "Breathe in for 4 counts",
        "Hold for 4 counts",
        "Breathe out for 4 counts",
        "Hold for 4 counts",
    ),
    pattern="4-4-4-4",
)


class StressManagementCoach:
    """Picks a breathing exercise and break length for a stress level."""

    def get_stress_management(self, stress_level: float) -> StressManagement:
        severe = stress_level > 0.8
        recommendation = None
        if stress_level > 0.7:
            recommendation = BreakRecommendation(
                type="short" if severe else "micro",
                duration=60 if severe else 15,
                activities=("Deep breathing", "Shoulder rolls", "Positive visualization"),
                reasoning="High stress detected - brief break recommended",
            )

        items = ["Take 3 deep breaths", "Relax your shoulders", "Focus on the current question only"]
        if recommendation is not None:
            items.append(f"Pause for {recommendation.duration} seconds")

        return StressManagement(
            current_stress=stress_level,
            breathing_exercise=BOX_BREATHING,
            relaxation_technique="Progressive muscle relaxation",
            break_recommendation=recommendation,
            action_items=items,
        )
