"""
Coach CLI - developer tool for the coaching core.

Replays scripted sessions through a LiveCoach on a simulated clock and
prints the resulting coaching stream.

Usage:
    coach simulate session.json          # Replay a scripted session
    coach simulate session.json --seed 7 # Reproducible RL exploration
    coach simulate session.json --record # Persist the summary to the store
    coach strategies                     # Show the strategy catalogue

Script format:
    {
      "student_id": "demo",
      "test_type": "practice",
      "sections": [{"id": "m1", "name": "Math", "type": "math",
                    "time_limit": 1500, "question_count": 20}],
      "events": [
        {"at": 40, "attempt": {"question_id": "q1", "skill_id": "algebra_linear",
                               "correct": false, "response_time_ms": 35000,
                               "confidence": 0.4, "difficulty_level": 0.5}},
        {"at": 45, "stress": {"facial_tension": 0.9, "response_latency": 0.8}},
        {"at": 50, "tick": true},
        {"at": 60, "pause": true},
        {"at": 90, "resume": true}
      ]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import configure_logging, get_settings
from src.tutoring import (
    DEFAULT_SAT_SKILLS,
    AttemptEvent,
    CoachConfig,
    EngineConfig,
    LiveCoach,
    StressIndicatorSample,
    TestSection,
    TutoringEngine,
    TutoringError,
)
from src.tutoring.store import TutoringStore
from src.tutoring.strategies import StrategySelector

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="coach",
    help="Adaptive SAT coaching core - developer tools",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

PRIORITY_STYLES = {"urgent": "bold red", "high": "yellow", "medium": "cyan", "low": "dim"}


class SimulatedClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_to(self, moment: float) -> None:
        self.now = max(self.now, moment)


def load_script(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not data.get("sections"):
        raise typer.BadParameter("script needs at least one section", param_hint="SCRIPT")
    return data


def replay(coach: LiveCoach, clock: SimulatedClock, events: list[dict[str, Any]]) -> list[tuple[float, Any]]:
    """Feed scripted events through the coach; returns (time, DispatchEvent) pairs."""
    stream: list[tuple[float, Any]] = []

    def collect() -> None:
        stream.extend((clock.now, event) for event in coach.drain_events())

    collect()
    for step in sorted(events, key=lambda e: e.get("at", 0.0)):
        clock.advance_to(float(step.get("at", clock.now)))
        coach.tick()

        if "attempt" in step:
            coach.process_attempt(
                AttemptEvent(**step["attempt"]),
                StressIndicatorSample(**step["sample"]) if "sample" in step else None,
            )
        elif "stress" in step:
            coach.ingest_stress_sample(StressIndicatorSample(**step["stress"]))
        elif step.get("pause"):
            coach.pause_session()
        elif step.get("resume"):
            coach.resume_session()
        elif step.get("dismiss"):
            coach.dismiss(step["dismiss"])
        collect()
    return stream


# =============================================================================
# Commands
# =============================================================================


@app.command()
def simulate(
    script: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="JSON session script")],
    seed: Annotated[int | None, typer.Option("--seed", "-s", help="RL exploration seed")] = None,
    record: Annotated[bool, typer.Option("--record", help="Write the summary to the store")] = False,
) -> None:
    """Replay a scripted session and print the coaching stream."""
    settings = get_settings()
    data = load_script(script)
    clock = SimulatedClock()

    skills = DEFAULT_SAT_SKILLS
    store = None
    if record:
        store = TutoringStore.from_settings(settings)
        store.init_schema()
        skills = store.load_skill_catalogue() or DEFAULT_SAT_SKILLS

    engine_config = EngineConfig.from_settings(settings)
    if seed is not None:
        engine_config.rl_seed = seed

    try:
        engine = TutoringEngine(data.get("student_id", "demo"), skills, engine_config, clock=clock)
        coach = LiveCoach(engine, CoachConfig.from_settings(settings), clock=clock, sink=store)
        coach.start(data.get("test_type", "practice"), [TestSection(**s) for s in data["sections"]])
        stream = replay(coach, clock, data.get("events", []))
        summary = coach.stop()
    except (TutoringError, ValidationError) as exc:
        console.print(f"[red]Simulation failed:[/] {exc}")
        raise typer.Exit(1) from exc

    table = Table(title="Coaching stream", show_lines=False)
    table.add_column("t (s)", justify="right")
    table.add_column("Event")
    table.add_column("Priority")
    table.add_column("Title")
    table.add_column("Message", overflow="fold")
    for moment, event in stream:
        priority = event.message.priority.value
        table.add_row(
            f"{moment:.0f}",
            event.kind if not event.reason else f"{event.kind} ({event.reason})",
            f"[{PRIORITY_STYLES.get(priority, '')}]{priority}[/]",
            event.message.title,
            event.message.message,
        )
    console.print(table)

    if summary is None:
        return
    metrics = summary.metrics
    console.print(
        Panel(
            "\n".join(
                [
                    f"Questions: {metrics.total_questions}  Correct: {metrics.correct_answers}",
                    f"Interventions: {metrics.interventions}  Stress events: {metrics.stress_events}",
                    f"Learning gains: {metrics.learning_gains:+.3f}",
                    f"Time management: {metrics.time_management_score:.2f}",
                ]
            ),
            title=f"Session {summary.session_id}",
            border_style="green",
        )
    )


@app.command()
def strategies() -> None:
    """Show the strategy catalogue with its current metrics."""
    table = Table(title="Strategy catalogue")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Success", justify="right")
    table.add_column("Engagement", justify="right")
    table.add_column("Adaptation", justify="right")
    table.add_column("Flags")

    for strategy in StrategySelector().strategies:
        params = strategy.adaptive_parameters
        flags = [
            name
            for name, enabled in (
                ("context", params.context_sensitive),
                ("time", params.time_aware),
                ("stress", params.stress_responsive),
            )
            if enabled
        ]
        metrics = strategy.performance_metrics
        table.add_row(
            strategy.key,
            strategy.name,
            f"{metrics.success_rate:.2f}",
            f"{metrics.engagement_improvement:.2f}",
            f"{metrics.adaptation_accuracy:.2f}",
            ", ".join(flags) or "-",
        )
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Adaptive SAT coaching core - developer tools."""
    configure_logging("DEBUG" if verbose else None)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
