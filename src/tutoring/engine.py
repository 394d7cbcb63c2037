"""
Tutoring Engine.

Per-student owner of the mastery tracker, state aggregator and intervention
engine. One attempt flows through:

    BKT update -> state refresh -> Q update for the previous cycle
    -> decision cycle (rules, then RL) -> difficulty recommendation

All public entry points are serialized on a re-entrant lock so the
attempt-driven and timer-driven cadences never interleave.
"""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from loguru import logger

from src.tutoring.difficulty import DifficultyAdjuster
from src.tutoring.errors import InvalidSessionStateError
from src.tutoring.events import (
    AttemptEvent,
    RecommendationRequest,
    SkillCatalogueEntry,
    StrategyOutcome,
    StressIndicatorSample,
)
from src.tutoring.intervention_engine import (
    Decision,
    InterventionEngine,
    attention_action,
    critical_stress_action,
)
from src.tutoring.mastery_tracker import MasteryTracker
from src.tutoring.models import (
    ActionType,
    BKTParameters,
    LearningRecommendation,
    PerformanceRecord,
    SessionMetrics,
    SkillMastery,
    StudentState,
    TutoringAction,
)
from src.tutoring.rl_agent import QLearningAgent, RLConfig, attempt_reward, state_key
from src.tutoring.state_aggregator import AggregatorConfig, StudentStateAggregator, stress_score
from src.tutoring.strategies import StrategyConfig, StrategyMetrics, StrategySelector

if TYPE_CHECKING:
    from config import Settings


@dataclass
class EngineConfig:
    """Component configs for one engine instance."""

    bkt: BKTParameters
    aggregator: AggregatorConfig
    rl: RLConfig
    strategy: StrategyConfig
    rl_seed: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        return cls(
            bkt=BKTParameters(
                prior=settings.bkt_prior,
                learn_rate=settings.bkt_learn_rate,
                guess_rate=settings.bkt_guess_rate,
                slip_rate=settings.bkt_slip_rate,
            ),
            aggregator=AggregatorConfig(
                stress_smoothing=settings.stress_smoothing,
                stress_event_threshold=settings.stress_event_threshold,
                critical_stress_threshold=settings.critical_stress_threshold,
                attention_lapse_limit=settings.attention_lapse_limit,
            ),
            rl=RLConfig(epsilon=settings.rl_epsilon, alpha=settings.rl_alpha, gamma=settings.rl_gamma),
            strategy=StrategyConfig(metric_smoothing=settings.strategy_metric_smoothing),
            rl_seed=settings.rl_seed,
        )

    @classmethod
    def defaults(cls) -> EngineConfig:
        return cls(
            bkt=BKTParameters(),
            aggregator=AggregatorConfig(),
            rl=RLConfig(),
            strategy=StrategyConfig(),
        )


@dataclass(frozen=True)
class AttemptOutcome:
    """Everything one attempt produced."""

    record: PerformanceRecord
    mastery: SkillMastery | None
    action: TutoringAction | None
    decision: Decision
    recommendation: LearningRecommendation


class TutoringEngine:
    """
    Adaptive tutoring core for a single student.

    Usage:
        engine = TutoringEngine("student-1", DEFAULT_SAT_SKILLS)
        outcome = engine.process_attempt(AttemptEvent(...))
        if outcome.action:
            ...
        engine.dispose()
    """

    def __init__(
        self,
        student_id: str,
        skills: Sequence[str | SkillCatalogueEntry | tuple[str, str]],
        config: EngineConfig | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        resume_state: StudentState | None = None,
        resume_mastery: Sequence[SkillMastery] | None = None,
        prerequisites: dict[str, list[str]] | None = None,
    ):
        self.config = config or EngineConfig.defaults()
        self._clock = clock
        self._lock = threading.RLock()
        self._disposed = False

        self.tracker = MasteryTracker(skills, self.config.bkt, clock=clock)
        if resume_mastery:
            self.tracker.restore(resume_mastery)

        if resume_state is not None and resume_state.id != student_id:
            logger.warning("Resumed state belongs to {}, not {}", resume_state.id, student_id)
        self.aggregator = StudentStateAggregator(
            student_id, self.config.aggregator, clock=clock, state=resume_state
        )

        self.agent = QLearningAgent(self.config.rl, rng or random.Random(self.config.rl_seed))
        self.interventions = InterventionEngine(self.agent)
        self.difficulty = DifficultyAdjuster()
        self.strategies = StrategySelector(self.config.strategy, prerequisites)

        self._metrics = SessionMetrics()
        self._latest_sample = StressIndicatorSample()
        self._last_cycle: tuple[str, str] | None = None

        logger.info(
            "Tutoring engine ready for {} ({} skills)", student_id, len(self.tracker.skill_ids)
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def student_id(self) -> str:
        return self.aggregator.state.id

    @property
    def state(self) -> StudentState:
        return self.aggregator.state

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def mastery(self) -> list[SkillMastery]:
        with self._lock:
            return self.tracker.snapshot()

    def metrics(self) -> SessionMetrics:
        with self._lock:
            snapshot = replace(self._metrics)
            snapshot.engagement_score = self.state.engagement_level
            return snapshot

    def _require_live(self, operation: str) -> None:
        if self._disposed:
            raise InvalidSessionStateError(operation, "disposed")

    def _now(self) -> float:
        now = self._clock()
        last = self.state.last_timestamp
        return now if last is None else max(now, last)

    def _count(self, action: TutoringAction | None) -> None:
        if action is None:
            return
        self._metrics.interventions += 1
        if action.type is ActionType.HINT:
            self._metrics.hints_provided += 1

    # ------------------------------------------------------------------
    # Event-driven cadence
    # ------------------------------------------------------------------

    def process_attempt(
        self,
        event: AttemptEvent,
        stress_sample: StressIndicatorSample | None = None,
    ) -> AttemptOutcome:
        """
        Run one answered question through the full pipeline.

        Args:
            event: The attempt
            stress_sample: Indicator vector captured with this attempt. When
                omitted the most recent ingested sample is attached and not
                blended again.
        """
        with self._lock:
            self._require_live("process_attempt")
            now = self._now()
            state = self.state

            before = self.tracker.get(event.skill_id)
            old_mastery = before.mastery_probability if before else None
            mastery = self.tracker.record_attempt(event.skill_id, event.correct, now)
            if mastery is not None and old_mastery is not None:
                self._metrics.learning_gains += mastery.mastery_probability - old_mastery

            if stress_sample is not None:
                self._latest_sample = stress_sample
                if stress_sample.engagement is not None:
                    self.aggregator.set_engagement(stress_sample.engagement)

            record = PerformanceRecord(
                timestamp=now,
                question_id=event.question_id,
                skill_id=event.skill_id,
                correct=event.correct,
                response_time_ms=event.response_time_ms,
                confidence=event.confidence,
                difficulty_level=event.difficulty_level,
                stress_indicators=self._latest_sample,
                cognitive_load_at_time=state.cognitive_load,
                hint_used=event.hint_used,
            )
            self.aggregator.refresh(record, blend_stress=stress_sample is not None)

            self._metrics.total_questions += 1
            if event.correct:
                self._metrics.correct_answers += 1

            if self._last_cycle is not None:
                previous_key, previous_action = self._last_cycle
                self.agent.update(previous_key, previous_action, attempt_reward(record), state_key(state))

            decision = self.interventions.decide(state, now)
            self._last_cycle = (decision.rl.state_key, decision.executed)
            self._count(decision.action)

            recommendation = self.difficulty.recommend(state, self.tracker)
            return AttemptOutcome(
                record=record,
                mastery=replace(mastery) if mastery else None,
                action=decision.action,
                decision=decision,
                recommendation=recommendation,
            )

    def ingest_stress_sample(self, sample: StressIndicatorSample) -> list[TutoringAction]:
        """
        Fold a sensor reading into the state.

        Returns:
            Immediate actions: an urgent break for a critical reading and a
            focus prompt when attention lapses cross the limit
        """
        with self._lock:
            self._require_live("ingest_stress_sample")
            now = self._now()
            score = stress_score(sample)
            self.aggregator.blend_stress(score)
            if sample.engagement is not None:
                self.aggregator.set_engagement(sample.engagement)
            self._latest_sample = sample

            actions: list[TutoringAction] = []
            if self.aggregator.is_stress_event(score):
                self._metrics.stress_events += 1
                if self.aggregator.is_critical_stress(score):
                    actions.append(critical_stress_action(score, now))

            if self.aggregator.record_attention_lapses(sample.attention_lapses):
                actions.append(
                    attention_action(self.state.attention_state.distraction_events, now)
                )

            for action in actions:
                self._count(action)
            if actions:
                logger.debug("Stress sample {:.2f} produced {} action(s)", score, len(actions))
            return actions

    # ------------------------------------------------------------------
    # Timer-driven cadence
    # ------------------------------------------------------------------

    def evaluate(self) -> TutoringAction | None:
        """Periodic decision cycle without a new attempt."""
        with self._lock:
            self._require_live("evaluate")
            self.aggregator.tick()
            decision = self.interventions.decide(self.state, self._now())
            self._count(decision.action)
            return decision.action

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommend(self, request: RecommendationRequest | None = None) -> LearningRecommendation:
        """Strategy-driven next-question recommendation."""
        with self._lock:
            self._require_live("recommend")
            return self.strategies.recommend(
                self.state,
                self.tracker.snapshot(),
                request or RecommendationRequest(),
                self._clock(),
            )

    def next_difficulty(self) -> LearningRecommendation:
        with self._lock:
            return self.difficulty.recommend(self.state, self.tracker)

    def update_strategy_performance(self, name: str, outcome: StrategyOutcome) -> StrategyMetrics | None:
        with self._lock:
            return self.strategies.update_strategy_performance(name, outcome)

    def record_time_management(self, score: float) -> None:
        with self._lock:
            self._metrics.time_management_score = score

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def export_state(self) -> dict[str, Any]:
        """Serializable snapshot to resume this student later."""
        with self._lock:
            return {
                "student": self.state.to_dict(),
                "mastery": [m.to_dict() for m in self.tracker.snapshot()],
                "q_table": self.agent.export_table(),
            }

    @classmethod
    def from_export(
        cls,
        data: dict[str, Any],
        skills: Sequence[str | SkillCatalogueEntry | tuple[str, str]],
        **kwargs: Any,
    ) -> TutoringEngine:
        state = StudentState.from_dict(data["student"])
        engine = cls(
            state.id,
            skills,
            resume_state=state,
            resume_mastery=[SkillMastery.from_dict(m) for m in data.get("mastery", [])],
            **kwargs,
        )
        engine.agent.load_table(data.get("q_table", {}))
        return engine

    def dispose(self) -> None:
        """Release the engine. Safe to call repeatedly."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            logger.info(
                "Tutoring engine disposed for {} ({} attempts)",
                self.student_id,
                len(self.state.performance_history),
            )
