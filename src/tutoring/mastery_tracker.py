"""
Mastery Tracker using Bayesian Knowledge Tracing.

Keeps one SkillMastery per tracked skill and applies the standard BKT
observation + learning-opportunity update on every attempt:

    correct:    P(L|obs) = p(1-s) / (p(1-s) + (1-p)g)
    incorrect:  P(L|obs) = p·s / (p·s + (1-p)(1-g))
    final       = P(L|obs) + (1 - P(L|obs))·t

Mastery is always kept within [0.01, 0.99].
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace

from loguru import logger

from src.tutoring.errors import ConfigurationError
from src.tutoring.events import SkillCatalogueEntry
from src.tutoring.models import (
    MASTERY_CEILING,
    MASTERY_FLOOR,
    BKTParameters,
    SkillMastery,
    clamp,
)

SAT_SKILL_NAMES: dict[str, str] = {
    "algebra_linear": "Linear Equations",
    "algebra_quadratic": "Quadratic Functions",
    "algebra_systems": "Systems of Equations",
    "geometry_basic": "Basic Geometry",
    "geometry_coordinate": "Coordinate Geometry",
    "geometry_trigonometry": "Trigonometry",
    "statistics_basic": "Basic Statistics",
    "statistics_advanced": "Advanced Statistics",
    "probability": "Probability",
    "reading_inference": "Reading Inference",
    "reading_vocabulary": "Vocabulary in Context",
    "reading_analysis": "Passage Analysis",
    "writing_grammar": "Grammar & Usage",
    "writing_rhetoric": "Rhetorical Skills",
    "writing_transitions": "Transitions & Flow",
}

DEFAULT_SAT_SKILLS: list[SkillCatalogueEntry] = [
    SkillCatalogueEntry(skill_id=skill_id, name=name) for skill_id, name in SAT_SKILL_NAMES.items()
]

# Adaptive learning-rate heuristic bounds
MAX_LEARNING_RATE = 0.3
MIN_LEARNING_RATE = 0.05


def skill_display_name(skill_id: str) -> str:
    """Human-readable name for a skill id, falling back to the id."""
    return SAT_SKILL_NAMES.get(skill_id, skill_id)


def bkt_update(mastery: float, correct: bool, params: BKTParameters) -> float:
    """
    One BKT step from current mastery.

    An incorrect observation never raises mastery: when the learning
    transition would push the result above the starting value (possible at
    very low mastery), the result is held at the starting value.
    """
    p = mastery
    s = params.slip_rate
    g = params.guess_rate
    t = params.learn_rate

    if correct:
        numerator = p * (1 - s)
        denominator = numerator + (1 - p) * g
    else:
        numerator = p * s
        denominator = numerator + (1 - p) * (1 - g)

    posterior = numerator / denominator if denominator > 0 else p
    final = posterior + (1 - posterior) * t

    if not correct:
        final = min(final, p)

    return clamp(final, MASTERY_FLOOR, MASTERY_CEILING)


def _normalize_catalogue(
    skills: Iterable[str | SkillCatalogueEntry | tuple[str, str]],
) -> list[SkillCatalogueEntry]:
    entries: list[SkillCatalogueEntry] = []
    for skill in skills:
        if isinstance(skill, SkillCatalogueEntry):
            entries.append(skill)
        elif isinstance(skill, tuple):
            entries.append(SkillCatalogueEntry(skill_id=skill[0], name=skill[1]))
        else:
            entries.append(SkillCatalogueEntry(skill_id=skill, name=skill_display_name(skill)))
    return entries


class MasteryTracker:
    """
    Per-student BKT state over a fixed skill catalogue.

    The catalogue is supplied once at construction; unknown skill ids on
    record_attempt() are logged and ignored.
    """

    def __init__(
        self,
        skills: Sequence[str | SkillCatalogueEntry | tuple[str, str]],
        params: BKTParameters | None = None,
        clock: Callable[[], float] = time.time,
    ):
        catalogue = _normalize_catalogue(skills)
        if not catalogue:
            raise ConfigurationError("skill catalogue must contain at least one skill")

        self.params = params or BKTParameters()
        self._clock = clock
        self._catalogue = catalogue
        self._skills: dict[str, SkillMastery] = {}
        self.reset()

    @property
    def catalogue(self) -> list[SkillCatalogueEntry]:
        return list(self._catalogue)

    @property
    def skill_ids(self) -> list[str]:
        return [entry.skill_id for entry in self._catalogue]

    def reset(self) -> None:
        """Reinitialise every skill to the prior (new-session boundary)."""
        self._skills = {
            entry.skill_id: SkillMastery(
                skill_id=entry.skill_id,
                skill_name=entry.name,
                mastery_probability=clamp(self.params.prior, MASTERY_FLOOR, MASTERY_CEILING),
                learning_rate=self.params.learn_rate,
                bkt_params=replace(self.params),
            )
            for entry in self._catalogue
        }

    def restore(self, masteries: Iterable[SkillMastery]) -> None:
        """Load previously exported mastery states for tracked skills."""
        for mastery in masteries:
            if mastery.skill_id not in self._skills:
                logger.warning("Ignoring stored mastery for untracked skill {}", mastery.skill_id)
                continue
            mastery.mastery_probability = clamp(
                mastery.mastery_probability, MASTERY_FLOOR, MASTERY_CEILING
            )
            self._skills[mastery.skill_id] = mastery

    def record_attempt(
        self,
        skill_id: str,
        correct: bool,
        timestamp: float | None = None,
    ) -> SkillMastery | None:
        """
        Apply a BKT update for one attempt.

        Returns:
            The updated SkillMastery, or None if the skill is not tracked
        """
        skill = self._skills.get(skill_id)
        if skill is None:
            logger.warning("Unknown skill id {} - mastery update skipped", skill_id)
            return None

        old = skill.mastery_probability
        skill.mastery_probability = bkt_update(old, correct, skill.bkt_params)
        skill.attempts += 1
        if correct:
            skill.correct_attempts += 1
        skill.last_attempt_timestamp = timestamp if timestamp is not None else self._clock()

        # Pace heuristic, not an EM fit: drift toward the recent outcome once
        # more than three attempts exist.
        if skill.attempts > 3:
            if correct:
                skill.learning_rate = min(MAX_LEARNING_RATE, skill.learning_rate * 1.05)
            else:
                skill.learning_rate = max(MIN_LEARNING_RATE, skill.learning_rate * 0.95)

        logger.debug(
            "BKT update {}: {:.3f} -> {:.3f} (attempts={})",
            skill_id,
            old,
            skill.mastery_probability,
            skill.attempts,
        )
        return skill

    def get(self, skill_id: str) -> SkillMastery | None:
        return self._skills.get(skill_id)

    def snapshot(self) -> list[SkillMastery]:
        """Copies of every skill state, in catalogue order."""
        return [
            replace(self._skills[entry.skill_id], bkt_params=replace(self._skills[entry.skill_id].bkt_params))
            for entry in self._catalogue
        ]

    def average_mastery(self) -> float:
        return sum(s.mastery_probability for s in self._skills.values()) / len(self._skills)

    def weakest_skill(self) -> SkillMastery:
        """Lowest-mastery skill; catalogue order breaks ties."""
        ordered = [self._skills[entry.skill_id] for entry in self._catalogue]
        return min(ordered, key=lambda s: s.mastery_probability)
