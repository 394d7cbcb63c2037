"""
Strategy Selector.

A fixed catalogue of six pedagogical strategies is scored against the
current StudentState, mastery snapshot and LearningContext:

    score = Σ(met ? w : -0.5·w)
            + 0.3·success_rate + 0.2·engagement_improvement + 0.2·adaptation_accuracy
            + contextual fit + stress bonus + time-pressure bonus

The best-scoring strategy (catalogue order on ties) supplies the algorithm
that turns candidate questions into a LearningRecommendation. Each algorithm
is a class registered by kind, so the catalogue holds handler instances
rather than closures.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Protocol

from loguru import logger

from src.tutoring.difficulty import estimate_duration
from src.tutoring.errors import UnknownStrategyError
from src.tutoring.events import (
    LearningContext,
    QuestionCandidate,
    RecommendationRequest,
    StrategyOutcome,
    StudentProfile,
)
from src.tutoring.models import (
    LearningRecommendation,
    PerformanceRecord,
    SkillMastery,
    StudentState,
    clamp,
)

MAX_RECOMMENDED = 5
RECENT_WINDOW = 5
SECONDS_PER_DAY = 86_400
REVIEW_INTERVALS_DAYS = (1, 3, 7, 14, 30)

DEFAULT_SAT_PREREQUISITES: dict[str, list[str]] = {
    "algebra_quadratic": ["algebra_linear"],
    "algebra_systems": ["algebra_linear"],
    "geometry_coordinate": ["geometry_basic", "algebra_linear"],
    "geometry_trigonometry": ["geometry_basic"],
    "statistics_advanced": ["statistics_basic"],
    "probability": ["statistics_basic"],
    "reading_analysis": ["reading_inference", "reading_vocabulary"],
    "writing_rhetoric": ["writing_grammar"],
    "writing_transitions": ["writing_grammar"],
}


# =============================================================================
# Catalogue types
# =============================================================================


class ConditionType(str, Enum):
    MASTERY_LEVEL = "mastery_level"
    STRESS_LEVEL = "stress_level"
    TIME_REMAINING = "time_remaining"
    RECENT_PERFORMANCE = "recent_performance"


class Operator(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"
    BETWEEN = "between"


@dataclass(frozen=True)
class StrategyCondition:
    """Applicability condition with its scoring weight."""

    type: ConditionType
    operator: Operator
    value: float | tuple[float, float]
    weight: float

    def holds(self, observed: float | None) -> bool:
        if observed is None:
            return False
        if self.operator is Operator.GREATER_THAN:
            return observed > self.value
        if self.operator is Operator.LESS_THAN:
            return observed < self.value
        if self.operator is Operator.EQUALS:
            return abs(observed - self.value) < 0.05
        low, high = self.value
        return low <= observed <= high


@dataclass(frozen=True)
class StrategyWeights:
    """Relative emphasis a strategy places on each planning factor."""

    mastery_priority: float
    difficulty_optimization: float
    time_constraints: float
    engagement_factor: float
    stress_consideration: float
    prerequisite_importance: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, float]) -> StrategyWeights:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown strategy weight(s): {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass(frozen=True)
class AdaptiveParameters:
    learning_rate: float
    adaptation_threshold: float
    personalized_weights: bool
    context_sensitive: bool
    time_aware: bool
    stress_responsive: bool


@dataclass
class StrategyMetrics:
    """Rolling performance metrics, updated only by EMA."""

    success_rate: float
    average_learning_gain: float
    engagement_improvement: float
    time_efficiency: float
    student_satisfaction: float
    adaptation_accuracy: float


@dataclass
class StrategyInput:
    """Everything an algorithm may read."""

    state: StudentState
    masteries: list[SkillMastery]
    context: LearningContext
    profile: StudentProfile
    recent_performance: list[PerformanceRecord]
    available_questions: list[QuestionCandidate]
    prerequisites: dict[str, list[str]]
    now: float


@dataclass
class StrategyOutput:
    recommended_questions: list[str]
    reasoning: list[str]
    confidence: float
    expected_outcomes: dict[str, float]
    target_difficulty: float
    focus_skills: list[str] = field(default_factory=list)


# =============================================================================
# Algorithms
# =============================================================================


class StrategyAlgorithm(Protocol):
    """Common contract for strategy algorithms."""

    kind: str
    name: str

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        """Rank candidate questions for the current learner."""
        ...


# Algorithm registry - populated by @register_algorithm
ALGORITHMS: dict[str, type] = {}


def register_algorithm(kind: str):
    """Decorator to register a strategy algorithm class."""

    def decorator(cls):
        cls.kind = kind
        ALGORITHMS[kind] = cls
        return cls

    return decorator


def get_algorithm(kind: str) -> StrategyAlgorithm:
    return ALGORITHMS[kind]()


def recent_accuracy(records: Sequence[PerformanceRecord]) -> float | None:
    if not records:
        return None
    return sum(1 for r in records if r.correct) / len(records)


def _questions_for_skills(
    skills: Sequence[str],
    questions: Sequence[QuestionCandidate],
    target: float,
    per_skill: int = 2,
) -> list[str]:
    """Up to per_skill questions per skill, closest to target difficulty first."""
    picked: list[str] = []
    for skill_id in skills:
        matching = [q for q in questions if q.skill_id == skill_id]
        matching.sort(key=lambda q: abs(q.difficulty - target))
        for question in matching[:per_skill]:
            if question.question_id not in picked:
                picked.append(question.question_id)
    return picked[:MAX_RECOMMENDED]


def _closest_questions(questions: Sequence[QuestionCandidate], target: float) -> list[QuestionCandidate]:
    return sorted(questions, key=lambda q: abs(q.difficulty - target))


def _mastery_difficulty(mastery: float) -> float:
    return clamp(mastery * 0.8, 0.1, 0.9)


def review_interval_days(skill: SkillMastery) -> float:
    """Spacing interval for a skill, scaled by its accuracy."""
    index = min(skill.attempts, len(REVIEW_INTERVALS_DAYS) - 1)
    accuracy = skill.accuracy
    if accuracy > 0.8:
        multiplier = 1.5
    elif accuracy < 0.6:
        multiplier = 0.5
    else:
        multiplier = 1.0
    return REVIEW_INTERVALS_DAYS[index] * multiplier


@register_algorithm("mastery_based")
class MasteryPriorityAlgorithm:
    """Work the three lowest-mastery skills, two questions each."""

    name = "Bayesian Knowledge Tracing Priority"
    focus_count = 3

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        ranked = sorted(data.masteries, key=lambda s: s.mastery_probability)[: self.focus_count]
        focus = [s.skill_id for s in ranked]
        target = _mastery_difficulty(sum(s.mastery_probability for s in ranked) / max(1, len(ranked)))
        reasoning = [
            f"Target {s.skill_name} (mastery: {s.mastery_probability * 100:.1f}%)" for s in ranked
        ]
        # Expected BKT gain uses each skill's self-tuned learning rate
        gains = [(1 - s.mastery_probability) * s.learning_rate for s in ranked]
        return StrategyOutput(
            recommended_questions=_questions_for_skills(focus, data.available_questions, target),
            reasoning=reasoning,
            confidence=0.85,
            expected_outcomes={
                "mastery_improvement": sum(gains) / max(1, len(gains)),
                "engagement": 0.05,
                "retention": 0.12,
            },
            target_difficulty=target,
            focus_skills=focus,
        )


@register_algorithm("difficulty_progression")
class ZPDAlgorithm:
    """Keep challenge just above recent accuracy."""

    name = "Adaptive ZPD Calculator"

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        accuracy = recent_accuracy(data.recent_performance)
        if accuracy is None:
            accuracy = 0.5
        target = clamp(accuracy + 0.1, 0.1, 0.9)
        ordered = _closest_questions(data.available_questions, target)[:MAX_RECOMMENDED]
        focus = list(dict.fromkeys(q.skill_id for q in ordered))
        return StrategyOutput(
            recommended_questions=[q.question_id for q in ordered],
            reasoning=[
                f"Current accuracy: {accuracy * 100:.1f}%",
                f"Target difficulty: {target * 100:.1f}%",
                "Maintaining optimal challenge level",
            ],
            confidence=0.8,
            expected_outcomes={"engagement": 0.18, "flow_state": 0.25, "sustained_learning": 0.15},
            target_difficulty=target,
            focus_skills=focus,
        )


@register_algorithm("spaced_repetition")
class SpacedRepetitionAlgorithm:
    """Review skills whose spacing interval has elapsed, most overdue first."""

    name = "Ebbinghaus Curve Optimization"

    def due_skills(self, masteries: Sequence[SkillMastery], now: float) -> list[SkillMastery]:
        due: list[tuple[float, int, SkillMastery]] = []
        for position, skill in enumerate(masteries):
            if skill.last_attempt_timestamp is None:
                overdue = math.inf
            else:
                elapsed_days = (now - skill.last_attempt_timestamp) / SECONDS_PER_DAY
                overdue = elapsed_days - review_interval_days(skill)
                if overdue < 0:
                    continue
            due.append((overdue, position, skill))
        due.sort(key=lambda item: (-item[0], item[1]))
        return [skill for _, _, skill in due]

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        due = self.due_skills(data.masteries, data.now)
        focus = [s.skill_id for s in due]
        target = _mastery_difficulty(due[0].mastery_probability) if due else 0.5
        return StrategyOutput(
            recommended_questions=_questions_for_skills(focus, data.available_questions, target),
            reasoning=[
                f"{len(due)} skills due for review",
                "Optimizing long-term retention",
                "Following forgetting curve patterns",
            ],
            confidence=0.75,
            expected_outcomes={"retention": 0.25, "long_term_mastery": 0.2, "review_efficiency": 0.3},
            target_difficulty=target,
            focus_skills=focus,
        )


@register_algorithm("stress_reduction")
class StressAdaptiveAlgorithm:
    """Ease difficulty as stress climbs above 0.5."""

    name = "Stress Response Adaptation"

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        stress = data.state.stress_level
        target = max(0.2, 0.7 - max(0.0, stress - 0.5) * 0.5)
        easier = [q for q in data.available_questions if q.difficulty <= target]
        pool = easier or sorted(data.available_questions, key=lambda q: q.difficulty)
        ordered = _closest_questions(pool, target)[:MAX_RECOMMENDED]
        return StrategyOutput(
            recommended_questions=[q.question_id for q in ordered],
            reasoning=[
                f"Stress level: {stress * 100:.1f}%",
                f"Adapted difficulty: {target * 100:.1f}%",
                "Prioritizing emotional well-being",
            ],
            confidence=0.9,
            expected_outcomes={
                "stress_reduction": 0.3,
                "emotional_regulation": 0.25,
                "sustained_engagement": 0.2,
            },
            target_difficulty=target,
            focus_skills=list(dict.fromkeys(q.skill_id for q in ordered)),
        )


@register_algorithm("concept_mapping")
class PrerequisiteChainAlgorithm:
    """Shore up unmet prerequisites before the weak skills that depend on them."""

    name = "Prerequisite Chain Builder"
    mastery_threshold = 0.7
    bridging_threshold = 0.6

    def chain(self, masteries: Sequence[SkillMastery], prerequisites: Mapping[str, list[str]]) -> list[str]:
        by_id = {s.skill_id: s for s in masteries}
        weak = sorted(
            (s for s in masteries if s.mastery_probability < self.mastery_threshold),
            key=lambda s: s.mastery_probability,
        )
        ordered: list[str] = []
        for skill in weak:
            for prereq in prerequisites.get(skill.skill_id, []):
                base = by_id.get(prereq)
                if base is None:
                    logger.debug("Prerequisite {} of {} is not tracked", prereq, skill.skill_id)
                    continue
                if base.mastery_probability < self.bridging_threshold and prereq not in ordered:
                    ordered.append(prereq)
            if skill.skill_id not in ordered:
                ordered.append(skill.skill_id)
        return ordered

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        chain = self.chain(data.masteries, data.prerequisites)
        by_id = {s.skill_id: s for s in data.masteries}
        target = _mastery_difficulty(by_id[chain[0]].mastery_probability) if chain else 0.5
        return StrategyOutput(
            recommended_questions=_questions_for_skills(chain, data.available_questions, target),
            reasoning=[
                "Building systematic knowledge foundation",
                "Following prerequisite chains",
                "Ensuring conceptual understanding",
            ],
            confidence=0.82,
            expected_outcomes={
                "conceptual_understanding": 0.25,
                "foundation_strength": 0.2,
                "reduced_confusion": 0.15,
            },
            target_difficulty=target,
            focus_skills=chain,
        )


@register_algorithm("ensemble")
class EnsembleAlgorithm:
    """Blend mastery, ZPD and spacing picks, two questions from each."""

    name = "Multi-Strategy Ensemble"
    members = ("mastery_based", "difficulty_progression", "spaced_repetition")

    def evaluate(self, data: StrategyInput) -> StrategyOutput:
        results = [get_algorithm(kind).evaluate(data) for kind in self.members]

        questions: list[str] = []
        reasoning = ["Multi-strategy approach"]
        focus: list[str] = []
        for index, result in enumerate(results, start=1):
            for question_id in result.recommended_questions[:2]:
                if question_id not in questions:
                    questions.append(question_id)
            if result.reasoning:
                reasoning.append(f"Strategy {index}: {result.reasoning[0]}")
            focus.extend(s for s in result.focus_skills if s not in focus)

        return StrategyOutput(
            recommended_questions=questions[:MAX_RECOMMENDED],
            reasoning=reasoning,
            confidence=0.88,
            expected_outcomes={
                "balanced_learning": 0.2,
                "personalized_adaptation": 0.25,
                "optimal_progression": 0.18,
            },
            target_difficulty=sum(r.target_difficulty for r in results) / len(results),
            focus_skills=focus,
        )


# =============================================================================
# Catalogue
# =============================================================================


@dataclass
class Strategy:
    """One catalogue entry."""

    key: str
    name: str
    description: str
    weights: StrategyWeights
    conditions: tuple[StrategyCondition, ...]
    outcomes: tuple[str, ...]
    algorithm: StrategyAlgorithm
    adaptive_parameters: AdaptiveParameters
    performance_metrics: StrategyMetrics


def build_catalogue() -> dict[str, Strategy]:
    """Fresh catalogue instance; metrics start from published defaults."""
    entries = [
        Strategy(
            key="mastery_focused",
            name="Mastery-Focused Learning",
            description="Targets skills with lowest mastery probability using Bayesian Knowledge Tracing",
            weights=StrategyWeights(0.5, 0.2, 0.1, 0.1, 0.05, 0.05),
            conditions=(StrategyCondition(ConditionType.MASTERY_LEVEL, Operator.LESS_THAN, 0.7, 1.0),),
            outcomes=("Improved skill mastery", "Reduced knowledge gaps", "Better test performance"),
            algorithm=get_algorithm("mastery_based"),
            adaptive_parameters=AdaptiveParameters(0.15, 0.1, True, False, False, True),
            performance_metrics=StrategyMetrics(0.78, 0.12, 0.05, 0.7, 0.72, 0.8),
        ),
        Strategy(
            key="zpd_optimization",
            name="Zone of Proximal Development",
            description="Maintains optimal challenge level using Vygotsky's ZPD theory",
            weights=StrategyWeights(0.25, 0.4, 0.15, 0.15, 0.03, 0.02),
            conditions=(
                StrategyCondition(ConditionType.STRESS_LEVEL, Operator.LESS_THAN, 0.6, 0.8),
                StrategyCondition(ConditionType.RECENT_PERFORMANCE, Operator.BETWEEN, (0.5, 0.8), 1.0),
            ),
            outcomes=("Optimal challenge level", "Sustained engagement", "Gradual skill building"),
            algorithm=get_algorithm("difficulty_progression"),
            adaptive_parameters=AdaptiveParameters(0.1, 0.15, True, True, False, True),
            performance_metrics=StrategyMetrics(0.82, 0.08, 0.18, 0.85, 0.88, 0.85),
        ),
        Strategy(
            key="spaced_repetition",
            name="Spaced Repetition Learning",
            description="Uses spaced repetition and forgetting curve to optimize retention",
            weights=StrategyWeights(0.3, 0.15, 0.25, 0.1, 0.1, 0.1),
            conditions=(StrategyCondition(ConditionType.TIME_REMAINING, Operator.GREATER_THAN, 300, 0.7),),
            outcomes=("Improved retention", "Long-term mastery", "Efficient review"),
            algorithm=get_algorithm("spaced_repetition"),
            adaptive_parameters=AdaptiveParameters(0.05, 0.2, True, False, True, False),
            performance_metrics=StrategyMetrics(0.75, 0.15, 0.1, 0.9, 0.8, 0.7),
        ),
        Strategy(
            key="stress_adaptive",
            name="Stress-Adaptive Learning",
            description="Adapts to student stress levels and emotional state",
            weights=StrategyWeights(0.2, 0.15, 0.15, 0.25, 0.2, 0.05),
            conditions=(StrategyCondition(ConditionType.STRESS_LEVEL, Operator.GREATER_THAN, 0.6, 1.0),),
            outcomes=("Reduced stress", "Maintained engagement", "Emotional regulation"),
            algorithm=get_algorithm("stress_reduction"),
            adaptive_parameters=AdaptiveParameters(0.2, 0.1, True, True, False, True),
            performance_metrics=StrategyMetrics(0.8, 0.06, 0.25, 0.75, 0.9, 0.9),
        ),
        Strategy(
            key="concept_mapping",
            name="Concept Mapping Learning",
            description="Follows concept dependencies and builds knowledge systematically",
            weights=StrategyWeights(0.25, 0.2, 0.1, 0.15, 0.05, 0.25),
            conditions=(StrategyCondition(ConditionType.MASTERY_LEVEL, Operator.LESS_THAN, 0.5, 0.8),),
            outcomes=("Strong foundation", "Conceptual understanding", "Reduced confusion"),
            algorithm=get_algorithm("concept_mapping"),
            adaptive_parameters=AdaptiveParameters(0.12, 0.15, False, False, False, False),
            performance_metrics=StrategyMetrics(0.85, 0.18, 0.12, 0.65, 0.82, 0.75),
        ),
        Strategy(
            key="performance_adaptive",
            name="Performance-Adaptive Mixed",
            description="Dynamically combines multiple strategies based on performance",
            weights=StrategyWeights(0.3, 0.25, 0.15, 0.15, 0.1, 0.05),
            conditions=(),
            outcomes=("Personalized learning", "Optimal adaptation", "Balanced growth"),
            algorithm=get_algorithm("ensemble"),
            adaptive_parameters=AdaptiveParameters(0.18, 0.08, True, True, True, True),
            performance_metrics=StrategyMetrics(0.88, 0.16, 0.2, 0.8, 0.85, 0.92),
        ),
    ]
    return {entry.key: entry for entry in entries}


# =============================================================================
# Selector
# =============================================================================


@dataclass
class StrategyConfig:
    metric_smoothing: float = 0.1
    stress_bonus_threshold: float = 0.7
    time_pressure_seconds: float = 300.0


class StrategySelector:
    """
    Scores the catalogue and runs the winning algorithm.

    Each selector owns its own catalogue, metrics and personalization store.
    """

    def __init__(
        self,
        config: StrategyConfig | None = None,
        prerequisites: Mapping[str, list[str]] | None = None,
    ):
        self.config = config or StrategyConfig()
        self.prerequisites = dict(DEFAULT_SAT_PREREQUISITES if prerequisites is None else prerequisites)
        self._strategies = build_catalogue()
        self._personalizations: dict[str, dict[str, StrategyWeights]] = {}

    @property
    def strategies(self) -> list[Strategy]:
        return list(self._strategies.values())

    def get_strategy(self, name: str) -> Strategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise UnknownStrategyError(name) from None

    def get_metrics(self, name: str) -> StrategyMetrics | None:
        strategy = self._strategies.get(name)
        return replace(strategy.performance_metrics) if strategy else None

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _observe(
        self,
        condition: StrategyCondition,
        state: StudentState,
        masteries: Sequence[SkillMastery],
        context: LearningContext,
    ) -> float | None:
        if condition.type is ConditionType.MASTERY_LEVEL:
            if not masteries:
                return None
            return sum(s.mastery_probability for s in masteries) / len(masteries)
        if condition.type is ConditionType.STRESS_LEVEL:
            return state.stress_level
        if condition.type is ConditionType.TIME_REMAINING:
            return context.time_available
        return recent_accuracy(state.recent(RECENT_WINDOW))

    def _contextual_fit(self, strategy: Strategy, context: LearningContext, profile: StudentProfile) -> float:
        fit = 0.0
        if context.session_type == "test_prep" and "Mastery" in strategy.name:
            fit += 0.2
        if profile.learning_style == "analytical" and "Concept" in strategy.name:
            fit += 0.15
        if context.stress_level > 0.6 and strategy.adaptive_parameters.stress_responsive:
            fit += 0.25
        return fit

    def score_strategy(
        self,
        strategy: Strategy,
        state: StudentState,
        masteries: Sequence[SkillMastery],
        context: LearningContext,
        profile: StudentProfile,
    ) -> float:
        score = 0.0
        for condition in strategy.conditions:
            met = condition.holds(self._observe(condition, state, masteries, context))
            score += condition.weight if met else -0.5 * condition.weight

        metrics = strategy.performance_metrics
        score += 0.3 * metrics.success_rate
        score += 0.2 * metrics.engagement_improvement
        score += 0.2 * metrics.adaptation_accuracy

        score += self._contextual_fit(strategy, context, profile)

        params = strategy.adaptive_parameters
        if state.stress_level > self.config.stress_bonus_threshold and params.stress_responsive:
            score += 0.3
        if context.time_available < self.config.time_pressure_seconds and params.time_aware:
            score += 0.2
        return score

    def score_all(
        self,
        state: StudentState,
        masteries: Sequence[SkillMastery],
        context: LearningContext,
        profile: StudentProfile,
    ) -> dict[str, float]:
        return {
            key: self.score_strategy(strategy, state, masteries, context, profile)
            for key, strategy in self._strategies.items()
        }

    def select_strategy(
        self,
        state: StudentState,
        masteries: Sequence[SkillMastery],
        context: LearningContext,
        profile: StudentProfile,
    ) -> Strategy:
        """Best-fit strategy, with the student's weight override applied if stored."""
        scores = self.score_all(state, masteries, context, profile)

        best_key = None
        best_score = -math.inf
        for key, score in scores.items():
            if score > best_score:
                best_key, best_score = key, score

        selected = self._strategies[best_key]
        logger.debug("Selected strategy {} (score: {:.3f})", selected.key, best_score)

        override = self._personalizations.get(state.id, {}).get(selected.key)
        if override is not None:
            return replace(selected, weights=override)
        return replace(selected)

    # ------------------------------------------------------------------
    # Recommendation
    # ------------------------------------------------------------------

    def recommend(
        self,
        state: StudentState,
        masteries: Sequence[SkillMastery],
        request: RecommendationRequest,
        now: float,
    ) -> LearningRecommendation:
        strategy = self.select_strategy(state, masteries, request.context, request.profile)

        prerequisites = dict(self.prerequisites)
        prerequisites.update(request.context.prerequisites)
        output = strategy.algorithm.evaluate(
            StrategyInput(
                state=state,
                masteries=list(masteries),
                context=request.context,
                profile=request.profile,
                recent_performance=state.recent(RECENT_WINDOW),
                available_questions=list(request.available_questions),
                prerequisites=prerequisites,
                now=now,
            )
        )

        if output.focus_skills:
            focus = output.focus_skills[0]
        else:
            focus = min(masteries, key=lambda s: s.mastery_probability).skill_id

        return LearningRecommendation(
            next_skill_focus=focus,
            target_difficulty=output.target_difficulty,
            strategy=strategy.key,
            recommended_questions=output.recommended_questions[:MAX_RECOMMENDED],
            reasoning=[f"Strategy: {strategy.name}", *output.reasoning],
            expected_duration=estimate_duration(output.target_difficulty),
            confidence=output.confidence,
            expected_outcomes=output.expected_outcomes,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_personalization(
        self,
        student_id: str,
        name: str,
        weights: StrategyWeights | Mapping[str, float],
    ) -> None:
        """Store a per-student weight override for one strategy."""
        self.get_strategy(name)
        if not isinstance(weights, StrategyWeights):
            weights = StrategyWeights.from_mapping(weights)
        self._personalizations.setdefault(student_id, {})[name] = weights

    def clear_personalization(self, student_id: str) -> None:
        self._personalizations.pop(student_id, None)

    def update_strategy_performance(self, name: str, outcome: StrategyOutcome) -> StrategyMetrics | None:
        """EMA-fold an observed outcome into the strategy's metrics."""
        strategy = self._strategies.get(name)
        if strategy is None:
            logger.warning("Unknown strategy {} - performance update skipped", name)
            return None

        alpha = self.config.metric_smoothing
        m = strategy.performance_metrics
        m.success_rate = m.success_rate * (1 - alpha) + (1.0 if outcome.success else 0.0) * alpha
        m.average_learning_gain = m.average_learning_gain * (1 - alpha) + outcome.learning_gain * alpha
        m.engagement_improvement = m.engagement_improvement * (1 - alpha) + outcome.engagement * alpha
        m.time_efficiency = m.time_efficiency * (1 - alpha) + outcome.time_efficiency * alpha
        m.student_satisfaction = m.student_satisfaction * (1 - alpha) + outcome.satisfaction * alpha

        logger.debug("Updated strategy performance for {}", name)
        return replace(m)
