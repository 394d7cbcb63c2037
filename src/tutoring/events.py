"""
Boundary contracts for the coaching core.

Inputs arrive from collaborators (the test UI, the sensing pipeline, the
recommendation endpoint) already computed; these models validate their shape
before anything inside the core is mutated.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AttemptEvent(BaseModel):
    """A single answered question."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    skill_id: str
    correct: bool
    response_time_ms: float = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0, description="Self-reported confidence")
    difficulty_level: float = Field(ge=0.0, le=1.0)
    hint_used: bool = False


# =============================================================================
# Sensor inputs
# =============================================================================


class KeyboardMetrics(BaseModel):
    """Raw keyboard dynamics from the sensing pipeline."""

    avg_typing_speed: float = Field(ge=0, description="Words per minute")
    error_corrections: int = Field(ge=0)
    pause_duration_ms: float = Field(ge=0)
    pressure_variance: float = 0.0


class MouseMetrics(BaseModel):
    """Raw pointer dynamics from the sensing pipeline."""

    movement_jitter: float = Field(ge=0.0, le=1.0)
    click_precision: float = Field(ge=0.0, le=1.0)
    scrolling_pattern: float = 0.0
    hover_duration_ms: float = 0.0


def keyboard_stress(metrics: KeyboardMetrics) -> float:
    """Slow typing, frequent corrections and long pauses read as stress."""
    speed_stress = max(0.0, (80 - metrics.avg_typing_speed) / 80)
    error_stress = min(1.0, metrics.error_corrections / 5)
    pause_stress = min(1.0, metrics.pause_duration_ms / 3000)
    return (speed_stress + error_stress + pause_stress) / 3


def mouse_stress(metrics: MouseMetrics) -> float:
    """High jitter and low click precision read as stress."""
    return (metrics.movement_jitter + (1 - metrics.click_precision)) / 2


class StressIndicatorSample(BaseModel):
    """
    Normalized stress-indicator vector.

    All channels are in [0, 1] except attention_lapses, which is a count.
    engagement is optional; when the sensing pipeline reports it, it replaces
    the engagement level held in StudentState.
    """

    model_config = ConfigDict(frozen=True)

    facial_tension: float = Field(default=0.0, ge=0.0, le=1.0)
    response_latency: float = Field(default=0.0, ge=0.0, le=1.0)
    error_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    keyboard_dynamics: float = Field(default=0.0, ge=0.0, le=1.0)
    mouse_dynamics: float = Field(default=0.0, ge=0.0, le=1.0)
    attention_lapses: int = Field(default=0, ge=0)
    engagement: float | None = Field(default=None, ge=0.0, le=1.0)

    @classmethod
    def from_raw(
        cls,
        facial_tension: float,
        response_latency: float,
        error_rate: float,
        keyboard: KeyboardMetrics,
        mouse: MouseMetrics,
        attention_lapses: int = 0,
        engagement: float | None = None,
    ) -> StressIndicatorSample:
        """Build a sample from raw keyboard/mouse metrics."""
        return cls(
            facial_tension=facial_tension,
            response_latency=response_latency,
            error_rate=error_rate,
            keyboard_dynamics=min(1.0, keyboard_stress(keyboard)),
            mouse_dynamics=min(1.0, mouse_stress(mouse)),
            attention_lapses=attention_lapses,
            engagement=engagement,
        )


# =============================================================================
# Recommendation request
# =============================================================================


class SkillCatalogueEntry(BaseModel):
    """One tracked skill: identifier plus display name."""

    skill_id: str
    name: str


class QuestionCandidate(BaseModel):
    """A question available for recommendation, tagged by the vision collaborator."""

    question_id: str
    skill_id: str
    difficulty: float = Field(default=0.5, ge=0.0, le=1.0)


class LearningContext(BaseModel):
    """Situational context for strategy selection."""

    session_type: Literal["practice", "test_prep", "diagnostic", "review"] = "practice"
    time_available: float = Field(default=3600.0, ge=0, description="Seconds remaining")
    stress_level: float = Field(default=0.0, ge=0.0, le=1.0)
    energy_level: float = Field(default=1.0, ge=0.0, le=1.0)
    current_goals: list[str] = Field(default_factory=list)
    prerequisites: dict[str, list[str]] = Field(
        default_factory=dict,
        description="skill_id -> prerequisite skill_ids; merged over the SAT defaults",
    )


class StudentProfile(BaseModel):
    """Learner preferences used for contextual fit."""

    learning_style: Literal["visual", "analytical", "methodical", "intuitive"] = "visual"
    preferred_pace: Literal["fast", "moderate", "careful"] = "moderate"
    strength_areas: list[str] = Field(default_factory=list)
    struggling_areas: list[str] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    """External request for the next-question recommendation."""

    context: LearningContext = Field(default_factory=LearningContext)
    profile: StudentProfile = Field(default_factory=StudentProfile)
    available_questions: list[QuestionCandidate] = Field(default_factory=list)


class StrategyOutcome(BaseModel):
    """Observed outcome of applying a strategy, fed back into its metrics."""

    success: bool
    learning_gain: float
    engagement: float
    time_efficiency: float
    satisfaction: float
