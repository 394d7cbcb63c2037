"""
Tutoring Store.

Optional SQLAlchemy adapter for the persistence collaborator:
- reads the skill catalogue an engine is constructed from
- writes session summaries and end-of-session mastery snapshots

Any SQLAlchemy URL works; SQLite is the default.
"""

from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import JSON, Float, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker

from src.tutoring.events import SkillCatalogueEntry
from src.tutoring.models import SessionSummary, SkillMastery


class Base(DeclarativeBase):
    pass


class SkillRow(Base):
    """Tracked skill catalogue entry."""

    __tablename__ = "tutoring_skills"

    skill_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)


class SessionRow(Base):
    """Finalized live session."""

    __tablename__ = "tutoring_sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    test_type: Mapped[str] = mapped_column(String(32), nullable=False)
    started_at: Mapped[datetime] = mapped_column()
    ended_at: Mapped[datetime] = mapped_column()

    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    interventions: Mapped[int] = mapped_column(Integer, default=0)
    stress_events: Mapped[int] = mapped_column(Integer, default=0)
    time_management_score: Mapped[float] = mapped_column(Float, default=0.0)

    metrics: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    performance: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    mastery: Mapped[list[MasterySnapshotRow]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )


class MasterySnapshotRow(Base):
    """Per-skill mastery at session end."""

    __tablename__ = "tutoring_mastery_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("tutoring_sessions.session_id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[str] = mapped_column(String(128), index=True)
    skill_id: Mapped[str] = mapped_column(String(64))
    mastery_probability: Mapped[float] = mapped_column(Float)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    correct_attempts: Mapped[int] = mapped_column(Integer, default=0)
    state: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    session: Mapped[SessionRow] = relationship(back_populates="mastery")


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class TutoringStore:
    """Relational storage for catalogues and session summaries."""

    def __init__(self, database_url: str):
        _ensure_sqlite_dir(database_url)
        self.engine = create_engine(database_url, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    @classmethod
    def from_settings(cls, settings: Any) -> TutoringStore:
        return cls(settings.database_url)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("Tutoring tables initialized")

    def dispose(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Skill catalogue
    # ------------------------------------------------------------------

    def seed_skills(self, entries: Iterable[SkillCatalogueEntry]) -> int:
        """Insert or rename skills, keeping the given order."""
        count = 0
        with self.session_scope() as session:
            for position, entry in enumerate(entries):
                row = session.get(SkillRow, entry.skill_id)
                if row is None:
                    session.add(SkillRow(skill_id=entry.skill_id, name=entry.name, position=position))
                else:
                    row.name = entry.name
                    row.position = position
                count += 1
        logger.debug("Seeded {} skills", count)
        return count

    def load_skill_catalogue(self) -> list[SkillCatalogueEntry]:
        with self.session_scope() as session:
            rows = session.scalars(select(SkillRow).order_by(SkillRow.position, SkillRow.skill_id)).all()
            return [SkillCatalogueEntry(skill_id=row.skill_id, name=row.name) for row in rows]

    # ------------------------------------------------------------------
    # Session summaries
    # ------------------------------------------------------------------

    def record_session(self, summary: SessionSummary) -> None:
        metrics = summary.metrics.to_dict()
        performance = {
            key: getattr(summary.performance, key)
            for key in summary.performance.__dataclass_fields__
        }
        with self.session_scope() as session:
            row = SessionRow(
                session_id=summary.session_id,
                student_id=summary.student_id,
                test_type=summary.test_type,
                started_at=_to_datetime(summary.started_at),
                ended_at=_to_datetime(summary.ended_at),
                total_questions=summary.metrics.total_questions,
                correct_answers=summary.metrics.correct_answers,
                interventions=summary.metrics.interventions,
                stress_events=summary.metrics.stress_events,
                time_management_score=summary.metrics.time_management_score,
                metrics=metrics,
                performance=performance,
            )
            row.mastery = [
                MasterySnapshotRow(
                    student_id=summary.student_id,
                    skill_id=m.skill_id,
                    mastery_probability=m.mastery_probability,
                    attempts=m.attempts,
                    correct_attempts=m.correct_attempts,
                    state=m.to_dict(),
                )
                for m in summary.mastery
            ]
            session.add(row)
        logger.info("Recorded session summary {}", summary.session_id)

    def load_session(self, session_id: str) -> dict[str, Any] | None:
        with self.session_scope() as session:
            row = session.get(SessionRow, session_id)
            if row is None:
                return None
            return {
                "session_id": row.session_id,
                "student_id": row.student_id,
                "test_type": row.test_type,
                "started_at": row.started_at,
                "ended_at": row.ended_at,
                "metrics": dict(row.metrics),
                "performance": dict(row.performance),
                "mastery": {m.skill_id: m.mastery_probability for m in row.mastery},
            }

    def latest_mastery(self, student_id: str) -> list[SkillMastery]:
        """Mastery states from the student's most recent recorded session."""
        with self.session_scope() as session:
            latest = session.scalars(
                select(SessionRow)
                .where(SessionRow.student_id == student_id)
                .order_by(SessionRow.ended_at.desc())
                .limit(1)
            ).first()
            if latest is None:
                return []
            return [SkillMastery.from_dict(m.state) for m in latest.mastery]
