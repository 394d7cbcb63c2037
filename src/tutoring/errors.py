"""
Error taxonomy for the coaching core.

Data-quality problems (unknown skill, thin history) are logged and skipped,
never raised. Everything below is surfaced to the caller.
"""

from __future__ import annotations


class TutoringError(Exception):
    """Base class for coaching core errors."""


class ConfigurationError(TutoringError):
    """Construction-time problem the engine cannot recover from."""


class InvalidSessionStateError(TutoringError):
    """Operation is not valid in the session's current lifecycle state."""

    def __init__(self, operation: str, state: str, message: str | None = None):
        self.operation = operation
        self.state = state
        super().__init__(message or f"Cannot {operation} while session is {state}")


class SessionNotStartedError(InvalidSessionStateError):
    """Session accessor called before start()."""

    def __init__(self, operation: str):
        super().__init__(operation, "not_started", f"Cannot {operation}: session has not been started")


class UnknownStrategyError(TutoringError, KeyError):
    """Strategy name is not part of the catalogue."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown strategy: {name}")

    def __str__(self) -> str:
        return self.args[0]
