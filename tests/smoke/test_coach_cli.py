"""
Smoke Tests for the coach CLI.

These tests verify that CLI commands run without errors and produce output.

Usage:
    pytest tests/smoke/test_coach_cli.py -v
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

pytestmark = pytest.mark.smoke

PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(args: list[str], extra_env: dict[str, str] | None = None, timeout: int = 60):
    """Run `python -m src.cli.coach_cli <args>` and return (code, stdout, stderr)."""
    env = {**os.environ, "COLUMNS": "200", **(extra_env or {})}
    result = subprocess.run(
        [sys.executable, "-m", "src.cli.coach_cli", *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def script(tmp_path):
    attempts = [
        {
            "at": 40 * (index + 1),
            "attempt": {
                "question_id": f"q{index}",
                "skill_id": "algebra_linear",
                "correct": False,
                "response_time_ms": 20000,
                "confidence": 0.6,
                "difficulty_level": 0.5,
            },
        }
        for index in range(3)
    ]
    data = {
        "student_id": "smoke",
        "test_type": "practice",
        "sections": [{"id": "m1", "name": "Math", "type": "math", "time_limit": 1500, "question_count": 20}],
        "events": [*attempts, {"at": 150, "tick": True}],
    }
    path = tmp_path / "session.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestCLIHelp:
    def test_main_help(self):
        code, stdout, stderr = run_cli_command(["--help"])
        assert code == 0, f"Help failed: {stderr}"
        assert "simulate" in stdout
        assert "strategies" in stdout


class TestCommands:
    def test_strategies(self):
        code, stdout, stderr = run_cli_command(["strategies"])
        assert code == 0, f"strategies failed: {stderr}"
        assert "mastery_focused" in stdout
        assert "performance_adaptive" in stdout

    def test_simulate(self, script):
        code, stdout, stderr = run_cli_command(["simulate", str(script), "--seed", "3"])
        assert code == 0, f"simulate failed: {stderr}"
        assert "Coach Ready" in stdout
        assert "Questions: 3" in stdout

    def test_simulate_records_summary(self, script, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'cli.db'}"
        code, _, stderr = run_cli_command(["simulate", str(script), "--record"], {"DATABASE_URL": db_url})
        assert code == 0, f"simulate --record failed: {stderr}"
        assert (tmp_path / "cli.db").exists()

    def test_missing_script(self, tmp_path):
        code, _, _ = run_cli_command(["simulate", str(tmp_path / "missing.json")])
        assert code != 0
