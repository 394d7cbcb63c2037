"""
Coaching Core Models.

Dataclass state owned by the engine components:
- SkillMastery / BKTParameters: per-skill knowledge tracing state
- StudentState / PerformanceRecord: the learner's derived state and attempt log
- TutoringAction / CoachingMessage: transient intervention values
- CoachingSession / TestSection / SessionPerformance: live test bookkeeping
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

from src.tutoring.events import StressIndicatorSample

MASTERY_FLOOR = 0.01
MASTERY_CEILING = 0.99


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clip value to [low, high]."""
    return max(low, min(high, value))


# =============================================================================
# Enums
# =============================================================================


class Priority(str, Enum):
    """Intervention priority, ordered low to urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return {
            Priority.LOW: 1,
            Priority.MEDIUM: 2,
            Priority.HIGH: 3,
            Priority.URGENT: 4,
        }[self]


class ActionType(str, Enum):
    """Kinds of coaching action the decision engine can choose."""

    HINT = "hint"
    ENCOURAGEMENT = "encouragement"
    STRATEGY = "strategy"
    BREAK = "break"
    DIFFICULTY_ADJUST = "difficulty_adjust"
    REVIEW = "review"


class MessageType(str, Enum):
    """Display category at the UI boundary."""

    ENCOURAGEMENT = "encouragement"
    STRATEGY = "strategy"
    PACING = "pacing"
    STRESS_RELIEF = "stress_relief"
    FOCUS = "focus"
    WARNING = "warning"


class SessionStatus(str, Enum):
    """Live session lifecycle."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class UrgencyLevel(str, Enum):
    """Pacing urgency."""

    NORMAL = "normal"
    ATTENTION = "attention"
    URGENT = "urgent"


# =============================================================================
# Knowledge tracing
# =============================================================================


@dataclass
class BKTParameters:
    """Four-parameter BKT model: P(L0), P(T), P(G), P(S)."""

    prior: float = 0.1
    learn_rate: float = 0.15
    guess_rate: float = 0.25
    slip_rate: float = 0.1


@dataclass
class SkillMastery:
    """
    Mastery state for one tracked skill.

    learning_rate is the self-tuned pace heuristic; the BKT transition itself
    uses bkt_params.learn_rate.
    """

    skill_id: str
    skill_name: str
    mastery_probability: float
    attempts: int = 0
    correct_attempts: int = 0
    last_attempt_timestamp: float | None = None
    learning_rate: float = 0.15
    bkt_params: BKTParameters = field(default_factory=BKTParameters)

    @property
    def accuracy(self) -> float:
        """Share of correct attempts (0 when unattempted)."""
        return self.correct_attempts / max(1, self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkillMastery:
        payload = dict(data)
        payload["bkt_params"] = BKTParameters(**payload.get("bkt_params", {}))
        return cls(**payload)


# =============================================================================
# Student state
# =============================================================================


@dataclass(frozen=True)
class PerformanceRecord:
    """Immutable log entry for one attempt."""

    timestamp: float
    question_id: str
    skill_id: str
    correct: bool
    response_time_ms: float
    confidence: float
    difficulty_level: float
    stress_indicators: StressIndicatorSample
    cognitive_load_at_time: float
    hint_used: bool = False
    strategy_used: str = "default"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["stress_indicators"] = self.stress_indicators.model_dump()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceRecord:
        payload = dict(data)
        payload["stress_indicators"] = StressIndicatorSample(**payload["stress_indicators"])
        return cls(**payload)


@dataclass
class AttentionState:
    """Attention bookkeeping fed by the sensing pipeline."""

    focused: bool = True
    distraction_events: int = 0
    window_switches: int = 0
    idle_time: float = 0.0


@dataclass
class StudentState:
    """
    Derived cognitive/affective state for the active student.

    performance_history is append-only; use append_record() so the
    non-decreasing timestamp invariant is enforced.
    """

    id: str
    session_start: float
    cognitive_load: float = 0.3
    stress_level: float = 0.2
    engagement_level: float = 0.8
    confidence_level: float = 0.5
    learning_velocity: float = 0.1
    attention_state: AttentionState = field(default_factory=AttentionState)
    performance_history: list[PerformanceRecord] = field(default_factory=list)
    time_on_task: float = 0.0

    def append_record(self, record: PerformanceRecord) -> None:
        if self.performance_history and record.timestamp < self.performance_history[-1].timestamp:
            raise ValueError("performance history timestamps must be non-decreasing")
        self.performance_history.append(record)

    def recent(self, count: int) -> list[PerformanceRecord]:
        """Most recent `count` records, oldest first."""
        if count <= 0:
            return []
        return self.performance_history[-count:]

    def recent_accuracy(self, count: int) -> float | None:
        """Accuracy over the last `count` attempts, None with no history."""
        window = self.recent(count)
        if not window:
            return None
        return sum(1 for r in window if r.correct) / len(window)

    @property
    def last_timestamp(self) -> float | None:
        return self.performance_history[-1].timestamp if self.performance_history else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_start": self.session_start,
            "cognitive_load": self.cognitive_load,
            "stress_level": self.stress_level,
            "engagement_level": self.engagement_level,
            "confidence_level": self.confidence_level,
            "learning_velocity": self.learning_velocity,
            "attention_state": asdict(self.attention_state),
            "performance_history": [r.to_dict() for r in self.performance_history],
            "time_on_task": self.time_on_task,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StudentState:
        payload = dict(data)
        payload["attention_state"] = AttentionState(**payload.get("attention_state", {}))
        payload["performance_history"] = [
            PerformanceRecord.from_dict(r) for r in payload.get("performance_history", [])
        ]
        return cls(**payload)


# =============================================================================
# Interventions
# =============================================================================


@dataclass(frozen=True)
class TutoringAction:
    """A single coaching action chosen by the decision engine."""

    type: ActionType
    content: str
    priority: Priority
    reasoning: str
    confidence: float
    timing: float
    expected_outcome: str = ""
    source: str = "rule"
    trigger: str = ""
    id: str = field(default_factory=lambda: uuid4().hex)


@dataclass(frozen=True)
class CoachingCategory:
    """Display grouping for a coaching message."""

    name: str
    icon: str
    color: str
    description: str


@dataclass
class CoachingMessage:
    """
    A message submitted to the dispatcher.

    duration is in seconds; expires_at is stamped on admission.
    """

    type: MessageType
    priority: Priority
    title: str
    message: str
    timing: float
    duration: float
    dismissible: bool
    category: CoachingCategory
    action_items: list[str] = field(default_factory=list)
    source_action: ActionType | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    displayed_at: float | None = None
    expires_at: float | None = None


# =============================================================================
# Session bookkeeping
# =============================================================================


@dataclass
class TestSection:
    """A timed test section. Times are in seconds."""

    __test__ = False  # not a pytest class

    id: str
    name: str
    type: str  # math, reading, writing
    time_limit: float
    question_count: int
    current_question: int = 0
    time_elapsed: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.current_question >= self.question_count


@dataclass
class SessionPerformance:
    """Rolling performance snapshot for the live session."""

    accuracy: float = 0.0
    pace: float = 0.0  # questions per minute
    time_management: float = 0.0
    stress_level: float = 0.0
    engagement_level: float = 0.8
    confidence_level: float = 0.5
    strategic_approach: float = 0.5


@dataclass
class SessionMetrics:
    """Aggregate counters handed to the analytics collaborator."""

    total_questions: int = 0
    correct_answers: int = 0
    hints_provided: int = 0
    interventions: int = 0
    stress_events: int = 0
    engagement_score: float = 0.0
    learning_gains: float = 0.0
    time_management_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CoachingSession:
    """Live test session. Marked ended on stop, never deleted."""

    session_id: str
    student_id: str
    test_type: str
    sections: list[TestSection]
    start_time: float
    status: SessionStatus = SessionStatus.ACTIVE
    end_time: float | None = None
    current_section_index: int = 0
    questions_completed: int = 0
    current_performance: SessionPerformance = field(default_factory=SessionPerformance)

    @property
    def current_section(self) -> TestSection:
        return self.sections[self.current_section_index]

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def total_questions(self) -> int:
        return sum(s.question_count for s in self.sections)

    @property
    def time_limit(self) -> float:
        return sum(s.time_limit for s in self.sections)

    def time_remaining(self, now: float) -> float:
        """Wall-clock time left; keeps running while paused."""
        end = self.end_time if self.end_time is not None else now
        return max(0.0, self.time_limit - (end - self.start_time))


@dataclass
class PacingGuidance:
    """Pacing analysis for the current section."""

    recommended_pace: float
    current_pace: float
    time_per_question: float
    questions_behind: float
    recovery_strategy: str
    urgency: UrgencyLevel


@dataclass
class LearningRecommendation:
    """Next-question recommendation returned to the caller."""

    next_skill_focus: str
    target_difficulty: float
    strategy: str
    recommended_questions: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    expected_duration: float = 0.0
    confidence: float = 0.0
    expected_outcomes: dict[str, float] = field(default_factory=dict)


@dataclass
class SessionSummary:
    """Finalized analytics for an ended session."""

    session_id: str
    student_id: str
    test_type: str
    started_at: float
    ended_at: float
    metrics: SessionMetrics
    performance: SessionPerformance
    mastery: list[SkillMastery] = field(default_factory=list)
