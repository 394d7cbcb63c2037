"""
Configuration settings for the SAT coaching core.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

import sys
from functools import lru_cache

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # General
    # ========================================
    log_level: str = Field(default="INFO", description="loguru log level")
    database_url: str = Field(
        default="sqlite:///data/tutoring.db",
        description="Store for skill catalogues and session summaries",
    )

    # ========================================
    # Bayesian Knowledge Tracing defaults
    # ========================================
    bkt_prior: float = Field(default=0.1, ge=0.0, le=1.0, description="P(L0)")
    bkt_learn_rate: float = Field(default=0.15, ge=0.0, le=1.0, description="P(T)")
    bkt_guess_rate: float = Field(default=0.25, ge=0.0, lt=1.0, description="P(G)")
    bkt_slip_rate: float = Field(default=0.1, ge=0.0, lt=1.0, description="P(S)")

    # ========================================
    # Student state aggregation
    # ========================================
    stress_smoothing: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="EMA factor applied to each new stress score",
    )
    stress_event_threshold: float = Field(
        default=0.6,
        description="Instantaneous stress score counted as a stress event",
    )
    critical_stress_threshold: float = Field(
        default=0.8,
        description="Instantaneous stress score that triggers an urgent break",
    )
    attention_lapse_limit: int = Field(
        default=3,
        description="Distraction events tolerated before a focus prompt",
    )

    # ========================================
    # Reinforcement learning selector
    # ========================================
    rl_epsilon: float = Field(default=0.1, ge=0.0, le=1.0, description="Exploration rate")
    rl_alpha: float = Field(default=0.1, gt=0.0, le=1.0, description="Q-learning step size")
    rl_gamma: float = Field(default=0.9, ge=0.0, le=1.0, description="Discount factor")
    rl_seed: int | None = Field(default=None, description="Seed for reproducible exploration")

    # ========================================
    # Coaching message dispatch
    # ========================================
    max_concurrent_messages: int = Field(default=2, ge=1)
    cooldown_seconds: float = Field(default=30.0, description="Standard gap between messages")
    calm_cooldown_seconds: float = Field(default=45.0, description="Gap while stressed")
    nudge_cooldown_seconds: float = Field(default=20.0, description="Gap while disengaged")
    urgent_message_seconds: float = 12.0
    high_message_seconds: float = 10.0
    medium_message_seconds: float = 8.0
    low_message_seconds: float = 6.0
    welcome_message_seconds: float = 6.0

    # ========================================
    # Cadence
    # ========================================
    evaluation_interval_seconds: float = Field(
        default=2.0,
        description="Timer-driven decision cycle period (1-5s)",
    )
    live_analysis_interval_seconds: float = Field(
        default=5.0,
        description="Session-level trend analysis period",
    )

    # ========================================
    # Strategy selection
    # ========================================
    strategy_metric_smoothing: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="EMA factor for strategy performance metrics",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def get_message_durations(self) -> dict[str, float]:
        """Display duration in seconds keyed by priority value."""
        return {
            "urgent": self.urgent_message_seconds,
            "high": self.high_message_seconds,
            "medium": self.medium_message_seconds,
            "low": self.low_message_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with the compact stderr layout."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or get_settings().log_level).upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
