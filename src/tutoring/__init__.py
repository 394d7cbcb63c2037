"""
Adaptive SAT coaching core.

Tracks per-skill mastery with Bayesian Knowledge Tracing, derives the
learner's cognitive/affective state, decides interventions (rule triggers
plus an epsilon-greedy Q-learner), selects pedagogical strategies, and
rate-limits coaching messages during a timed live session.

Usage:
    from src.tutoring import LiveCoach, TutoringEngine, DEFAULT_SAT_SKILLS

    engine = TutoringEngine("student-1", DEFAULT_SAT_SKILLS)
    coach = LiveCoach(engine)
    coach.start("sat", sections)
"""

from src.tutoring.dispatcher import CoachingDispatcher, DispatchEvent, DispatcherConfig
from src.tutoring.engine import AttemptOutcome, EngineConfig, TutoringEngine
from src.tutoring.errors import (
    ConfigurationError,
    InvalidSessionStateError,
    SessionNotStartedError,
    TutoringError,
    UnknownStrategyError,
)
from src.tutoring.events import (
    AttemptEvent,
    KeyboardMetrics,
    LearningContext,
    MouseMetrics,
    QuestionCandidate,
    RecommendationRequest,
    SkillCatalogueEntry,
    StrategyOutcome,
    StressIndicatorSample,
    StudentProfile,
)
from src.tutoring.intervention_engine import InterventionEngine
from src.tutoring.mastery_tracker import DEFAULT_SAT_SKILLS, MasteryTracker, bkt_update
from src.tutoring.models import (
    ActionType,
    BKTParameters,
    CoachingMessage,
    CoachingSession,
    LearningRecommendation,
    MessageType,
    PacingGuidance,
    PerformanceRecord,
    Priority,
    SessionMetrics,
    SessionStatus,
    SessionSummary,
    SkillMastery,
    StudentState,
    TestSection,
    TutoringAction,
    UrgencyLevel,
)
from src.tutoring.rl_agent import QLearningAgent, RLConfig
from src.tutoring.session import CoachConfig, LiveCoach
from src.tutoring.state_aggregator import StudentStateAggregator
from src.tutoring.strategies import StrategySelector

__all__ = [
    # Engine
    "TutoringEngine",
    "EngineConfig",
    "AttemptOutcome",
    "MasteryTracker",
    "StudentStateAggregator",
    "InterventionEngine",
    "QLearningAgent",
    "RLConfig",
    "StrategySelector",
    "bkt_update",
    "DEFAULT_SAT_SKILLS",
    # Live session
    "LiveCoach",
    "CoachConfig",
    "CoachingDispatcher",
    "DispatcherConfig",
    "DispatchEvent",
    # Models
    "ActionType",
    "BKTParameters",
    "CoachingMessage",
    "CoachingSession",
    "LearningRecommendation",
    "MessageType",
    "PacingGuidance",
    "PerformanceRecord",
    "Priority",
    "SessionMetrics",
    "SessionStatus",
    "SessionSummary",
    "SkillMastery",
    "StudentState",
    "TestSection",
    "TutoringAction",
    "UrgencyLevel",
    # Boundary events
    "AttemptEvent",
    "KeyboardMetrics",
    "LearningContext",
    "MouseMetrics",
    "QuestionCandidate",
    "RecommendationRequest",
    "SkillCatalogueEntry",
    "StrategyOutcome",
    "StressIndicatorSample",
    "StudentProfile",
    # Errors
    "TutoringError",
    "ConfigurationError",
    "InvalidSessionStateError",
    "SessionNotStartedError",
    "UnknownStrategyError",
]
