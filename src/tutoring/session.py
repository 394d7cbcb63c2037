"""
Live Coaching Session.

LiveCoach owns the session lifecycle

    NOT_STARTED -> ACTIVE <-> PAUSED -> ENDED

and wires the tutoring engine to the message dispatcher. Attempts drive
the engine synchronously; tick() drives the timer cadence (decision cycle,
live trend analysis, message expiry). Both paths share one lock.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

from loguru import logger

from src.tutoring.dispatcher import CoachingDispatcher, DispatchEvent, DispatcherConfig
from src.tutoring.engine import AttemptOutcome, TutoringEngine
from src.tutoring.errors import ConfigurationError, InvalidSessionStateError, SessionNotStartedError
from src.tutoring.events import AttemptEvent, RecommendationRequest, StressIndicatorSample
from src.tutoring.messages import MessageFactory
from src.tutoring.models import (
    ActionType,
    CoachingMessage,
    CoachingSession,
    LearningRecommendation,
    PacingGuidance,
    SessionMetrics,
    SessionStatus,
    SessionSummary,
    TestSection,
    TutoringAction,
    UrgencyLevel,
)
from src.tutoring.pacing import PacingMonitor, StressManagementCoach
from src.tutoring.ticker import PeriodicTicker

if TYPE_CHECKING:
    from config import Settings

MIN_EVALUATION_INTERVAL = 1.0
MAX_EVALUATION_INTERVAL = 5.0
SLOW_RESPONSE_SECONDS = 180.0


class SessionSink(Protocol):
    """Receives the finalized summary when a session ends."""

    def record_session(self, summary: SessionSummary) -> None: ...


@dataclass
class CoachConfig:
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    message_durations: dict[str, float] = field(
        default_factory=lambda: {"urgent": 12.0, "high": 10.0, "medium": 8.0, "low": 6.0}
    )
    welcome_seconds: float = 6.0
    evaluation_interval_seconds: float = 2.0
    live_analysis_interval_seconds: float = 5.0

    def __post_init__(self) -> None:
        if not MIN_EVALUATION_INTERVAL <= self.evaluation_interval_seconds <= MAX_EVALUATION_INTERVAL:
            raise ConfigurationError(
                f"evaluation interval must be within [{MIN_EVALUATION_INTERVAL:g}, "
                f"{MAX_EVALUATION_INTERVAL:g}] seconds, got {self.evaluation_interval_seconds}"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> CoachConfig:
        return cls(
            dispatcher=DispatcherConfig(
                max_concurrent_messages=settings.max_concurrent_messages,
                cooldown_seconds=settings.cooldown_seconds,
                calm_cooldown_seconds=settings.calm_cooldown_seconds,
                nudge_cooldown_seconds=settings.nudge_cooldown_seconds,
            ),
            message_durations=settings.get_message_durations(),
            welcome_seconds=settings.welcome_message_seconds,
            evaluation_interval_seconds=settings.evaluation_interval_seconds,
            live_analysis_interval_seconds=settings.live_analysis_interval_seconds,
        )


class LiveCoach:
    """
    Live SAT coaching for one engine instance.

    Usage:
        coach = LiveCoach(engine)
        coach.start("sat", sections, run_ticker=True)
        coach.process_attempt(AttemptEvent(...))
        for event in coach.drain_events():
            ...
        summary = coach.stop()
    """

    def __init__(
        self,
        engine: TutoringEngine,
        config: CoachConfig | None = None,
        clock: Callable[[], float] = time.time,
        sink: SessionSink | None = None,
    ):
        self.engine = engine
        self.config = config or CoachConfig()
        self._clock = clock
        self._sink = sink
        self._lock = threading.RLock()

        self.dispatcher = CoachingDispatcher(self.config.dispatcher, clock=clock)
        self.messages = MessageFactory(self.config.message_durations, self.config.welcome_seconds)
        self.pacing = PacingMonitor()
        self.stress_coach = StressManagementCoach()

        self._status = SessionStatus.NOT_STARTED
        self._session: CoachingSession | None = None
        self._summary: SessionSummary | None = None
        self._ticker: PeriodicTicker | None = None
        self._last_evaluation: float | None = None
        self._last_analysis: float | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def session(self) -> CoachingSession:
        return self._require_session("read session")

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    @property
    def active_messages(self) -> list[CoachingMessage]:
        return self.dispatcher.active_messages

    def _require_session(self, operation: str) -> CoachingSession:
        if self._session is None:
            raise SessionNotStartedError(operation)
        return self._session

    def _require_status(self, operation: str, *allowed: SessionStatus) -> CoachingSession:
        session = self._require_session(operation)
        if self._status not in allowed:
            raise InvalidSessionStateError(operation, self._status.value)
        return session

    def _set_status(self, status: SessionStatus) -> None:
        self._status = status
        if self._session is not None:
            self._session.status = status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        test_type: str,
        sections: Sequence[TestSection],
        run_ticker: bool = False,
    ) -> CoachingSession:
        """Begin the session and queue the welcome message."""
        with self._lock:
            if self._status is not SessionStatus.NOT_STARTED:
                raise InvalidSessionStateError("start", self._status.value)
            if not sections:
                raise ConfigurationError("a session needs at least one section")
            for section in sections:
                if section.time_limit <= 0 or section.question_count <= 0:
                    raise ConfigurationError(
                        f"section {section.id!r} needs a positive time limit and question count"
                    )

            now = self._clock()
            self._session = CoachingSession(
                session_id=f"session_{uuid4().hex[:12]}",
                student_id=self.engine.student_id,
                test_type=test_type,
                sections=list(sections),
                start_time=now,
            )
            self._set_status(SessionStatus.ACTIVE)
            self._last_evaluation = now
            self._last_analysis = now

            self.dispatcher.display(self.messages.welcome(now))
            logger.info(
                "Live coaching session started: {} ({} sections, {} questions)",
                self._session.session_id,
                self._session.total_sections,
                self._session.total_questions,
            )

            if run_ticker:
                self._ticker = PeriodicTicker(
                    interval_seconds=self.config.evaluation_interval_seconds,
                    callback=self.tick,
                    name=f"coach-{self._session.session_id}",
                )
                self._ticker.start()
            return self._session

    def pause_session(self) -> None:
        with self._lock:
            self._require_status("pause", SessionStatus.ACTIVE)
            self._set_status(SessionStatus.PAUSED)
            logger.info("Session paused")

    def resume_session(self) -> None:
        with self._lock:
            self._require_status("resume", SessionStatus.PAUSED)
            now = self._clock()
            self._set_status(SessionStatus.ACTIVE)
            self._last_evaluation = now
            self._last_analysis = now
            logger.info("Session resumed")

    def stop(self) -> SessionSummary | None:
        """
        End the session from any state. Repeated calls return the first summary.

        Returns:
            The finalized summary, or None if the session never started
        """
        with self._lock:
            if self._status is SessionStatus.ENDED:
                return self._summary

            now = self._clock()
            self._set_status(SessionStatus.ENDED)
            ticker, self._ticker = self._ticker, None

            self.dispatcher.clear()
            session = self._session
            if session is not None:
                session.end_time = now
                self._summary = SessionSummary(
                    session_id=session.session_id,
                    student_id=session.student_id,
                    test_type=session.test_type,
                    started_at=session.start_time,
                    ended_at=now,
                    metrics=self.engine.metrics(),
                    performance=replace(session.current_performance),
                    mastery=self.engine.mastery(),
                )
                logger.info(
                    "Live coaching session ended: {} ({} questions)",
                    session.session_id,
                    session.questions_completed,
                )
            self.engine.dispose()

        if ticker is not None:
            ticker.stop()
        if self._summary is not None and self._sink is not None:
            self._sink.record_session(self._summary)
        return self._summary

    end = stop

    # ------------------------------------------------------------------
    # Event-driven cadence
    # ------------------------------------------------------------------

    def process_attempt(
        self,
        event: AttemptEvent,
        stress_sample: StressIndicatorSample | None = None,
    ) -> AttemptOutcome:
        with self._lock:
            session = self._require_status("process_attempt", SessionStatus.ACTIVE)

            outcome = self.engine.process_attempt(event, stress_sample)

            section = session.current_section
            session.questions_completed += 1
            section.current_question += 1
            section.time_elapsed += event.response_time_ms / 1000

            self._update_performance(session, event)
            self.engine.record_time_management(session.current_performance.time_management)

            if outcome.action is not None:
                self._dispatch_action(outcome.action)

            guidance = self.pacing.analyze(section, session.current_performance.pace)
            if guidance.urgency is not UrgencyLevel.NORMAL:
                self._dispatch(self.messages.pacing(guidance, self._clock()))

            if section.is_complete and session.current_section_index < session.total_sections - 1:
                self.advance_section()
            return outcome

    def ingest_stress_sample(self, sample: StressIndicatorSample) -> list[TutoringAction]:
        """Forward a sensor reading; ignored while paused or ended."""
        with self._lock:
            self._require_session("ingest_stress_sample")
            if self._status is not SessionStatus.ACTIVE:
                logger.debug("Stress sample ignored while {}", self._status.value)
                return []
            actions = self.engine.ingest_stress_sample(sample)
            for action in actions:
                self._dispatch_action(action)
            return actions

    def dismiss(self, message_id: str) -> bool:
        with self._lock:
            self._require_session("dismiss")
            return self.dispatcher.dismiss(message_id)

    # ------------------------------------------------------------------
    # Timer-driven cadence
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """
        One timer step: expire messages, then (while active) run whatever
        periodic work is due.
        """
        with self._lock:
            self.dispatcher.pump()
            if self._status is not SessionStatus.ACTIVE:
                return

            now = self._clock()
            if now - self._last_evaluation >= self.config.evaluation_interval_seconds:
                self._last_evaluation = now
                action = self.engine.evaluate()
                if action is not None:
                    self._dispatch_action(action)

            if now - self._last_analysis >= self.config.live_analysis_interval_seconds:
                self._last_analysis = now
                self._live_analysis()

    def _live_analysis(self) -> None:
        session = self._session
        performance = session.current_performance
        now = self._clock()

        if performance.accuracy < 0.5 and session.questions_completed > 5:
            self._dispatch(self.messages.performance_alert("accuracy", now))
        if performance.pace < 0.8 and session.current_section.current_question > 3:
            self._dispatch(self.messages.performance_alert("pacing", now))

        self._adapt_cooldown()

    # ------------------------------------------------------------------
    # Dispatch helpers
    # ------------------------------------------------------------------

    def _adapt_cooldown(self) -> None:
        state = self.engine.state
        self.dispatcher.adapt_cooldown(state.stress_level, state.engagement_level)

    def _dispatch_action(self, action: TutoringAction) -> None:
        stress = None
        if action.type is ActionType.BREAK:
            stress = self.stress_coach.get_stress_management(self.engine.state.stress_level)
        self._dispatch(self.messages.from_action(action, self._clock(), stress))

    def _dispatch(self, message: CoachingMessage | None) -> None:
        if message is None:
            return
        pending = self.dispatcher.active_messages + self.dispatcher.backlog
        if any(m.title == message.title and m.type is message.type for m in pending):
            logger.debug("Skipping duplicate coaching message {}", message.title)
            return
        self._adapt_cooldown()
        self.dispatcher.display(message)

    def drain_events(self) -> list[DispatchEvent]:
        with self._lock:
            return self.dispatcher.drain_events()

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    def _update_performance(self, session: CoachingSession, event: AttemptEvent) -> None:
        performance = session.current_performance
        completed = session.questions_completed
        state = self.engine.state

        performance.accuracy = (performance.accuracy * (completed - 1) + (1 if event.correct else 0)) / completed

        elapsed_minutes = (self._clock() - session.start_time) / 60
        performance.pace = completed / elapsed_minutes if elapsed_minutes > 0 else 0.0

        performance.time_management = self._time_management_score(session.current_section)
        performance.stress_level = state.stress_level
        performance.engagement_level = state.engagement_level
        performance.confidence_level = state.confidence_level

        time_score = max(0.0, 1 - (event.response_time_ms / 1000) / SLOW_RESPONSE_SECONDS)
        performance.strategic_approach = (time_score + (1 if event.correct else 0) + event.confidence) / 3

    @staticmethod
    def _time_management_score(section: TestSection) -> float:
        expected = section.time_elapsed / section.time_limit
        actual = section.current_question / section.question_count
        return min(1.0, actual / max(0.1, expected))

    def advance_section(self) -> TestSection | None:
        """Move to the next section, if any."""
        with self._lock:
            session = self._require_status("advance_section", SessionStatus.ACTIVE, SessionStatus.PAUSED)
            if session.current_section_index >= session.total_sections - 1:
                logger.debug("Already on the last section")
                return None
            session.current_section_index += 1
            logger.info("Advanced to section {}", session.current_section.name)
            return session.current_section

    def get_pacing_guidance(self) -> PacingGuidance:
        with self._lock:
            session = self._require_session("get_pacing_guidance")
            return self.pacing.analyze(session.current_section, session.current_performance.pace)

    def time_remaining(self) -> float:
        with self._lock:
            return self._require_session("time_remaining").time_remaining(self._clock())

    def session_metrics(self) -> SessionMetrics:
        with self._lock:
            self._require_session("session_metrics")
            return self.engine.metrics()

    def session_analytics(self) -> dict[str, Any]:
        with self._lock:
            session = self._require_session("session_analytics")
            active = len(self.dispatcher.active_messages)
            queued = len(self.dispatcher.backlog)
            return {
                "session": session,
                "status": self._status.value,
                "time_remaining": session.time_remaining(self._clock()),
                "tutoring": self.engine.metrics(),
                "performance": replace(session.current_performance),
                "messages": {"total": active + queued, "active": active, "queued": queued},
            }

    def recommend(self, request: RecommendationRequest | None = None) -> LearningRecommendation:
        with self._lock:
            self._require_status("recommend", SessionStatus.ACTIVE, SessionStatus.PAUSED)
            return self.engine.recommend(request)
