"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.tutoring import (  # noqa: E402
    AttemptEvent,
    CoachConfig,
    EngineConfig,
    LiveCoach,
    TestSection,
    TutoringEngine,
)
from src.tutoring.rl_agent import RLConfig  # noqa: E402
from src.tutoring.store import TutoringStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine + live session)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def make_engine(clock):
    """Factory for engines on the shared fake clock; greedy RL by default."""

    def factory(student_id="student-1", skills=None, epsilon=0.0, **kwargs):
        config = EngineConfig.defaults()
        config.rl = RLConfig(epsilon=epsilon)
        return TutoringEngine(
            student_id,
            skills or ["algebra_linear", "algebra_quadratic", "geometry_basic"],
            config,
            clock=clock,
            rng=kwargs.pop("rng", random.Random(7)),
            **kwargs,
        )

    return factory


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def sections():
    return [
        TestSection(id="math-1", name="Math (No Calculator)", type="math", time_limit=600, question_count=10),
        TestSection(id="reading-1", name="Reading", type="reading", time_limit=900, question_count=12),
    ]


@pytest.fixture
def coach(engine, clock):
    return LiveCoach(engine, CoachConfig(), clock=clock)


@pytest.fixture
def make_attempt():
    """Factory for attempt events with quiet defaults."""

    def factory(correct=True, skill_id="algebra_linear", question_id="q-1", **overrides):
        data = {
            "question_id": question_id,
            "skill_id": skill_id,
            "correct": correct,
            "response_time_ms": 20_000,
            "confidence": 0.6,
            "difficulty_level": 0.5,
        }
        data.update(overrides)
        return AttemptEvent(**data)

    return factory


@pytest.fixture
def store(tmp_path):
    """SQLite-backed store in a temp directory."""
    instance = TutoringStore(f"sqlite:///{tmp_path / 'tutoring.db'}")
    instance.init_schema()
    yield instance
    instance.dispose()
