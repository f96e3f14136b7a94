# moodring/config.py
"""
Configuration for the moodring engine.

Values are loaded from environment variables (and an optional .env file) and
validated with Pydantic. Out-of-range values are normalized rather than
rejected: a bad setting should make the engine conservative, not stop it.

The emotional dynamics themselves (decay rate, baseline, suppression ratio,
weight bounds) are constants of the model and live beside the functions that
use them. What is configurable here is everything about how the engine runs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from moodring.affect.memory import HISTORY_LENGTH
from moodring.learning import prophecy, weights

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class EngineConfig(BaseSettings):
    """Where state lives and how much of the past the engine remembers."""

    data_dir: Path = Field(Path("./moodring_data"), alias="MOODRING_DATA_DIR")
    history_length: int = Field(HISTORY_LENGTH, alias="MOODRING_HISTORY_LENGTH")
    # Cap on the elapsed time fed to decay after a long outage.
    max_decay_minutes: float = Field(24 * 60.0, alias="MOODRING_MAX_DECAY_MINUTES")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "EngineConfig":
        self.history_length = max(2, int(self.history_length))
        self.max_decay_minutes = max(0.0, float(self.max_decay_minutes))
        return self


class LearningConfig(BaseSettings):
    """Cadence and retention of the weight ledger and the prophecy tracker."""

    weight_decay_rate: float = Field(weights.DECAY_RATE, alias="MOODRING_WEIGHT_DECAY_RATE")
    max_adjustments_per_batch: int = Field(
        weights.MAX_ADJUSTMENTS_PER_BATCH, alias="MOODRING_MAX_ADJUSTMENTS"
    )
    evaluation_delay: int = Field(prophecy.EVALUATION_DELAY, alias="MOODRING_EVALUATION_DELAY")
    max_snapshots: int = Field(prophecy.MAX_SNAPSHOTS, alias="MOODRING_MAX_SNAPSHOTS")
    max_recent_evaluations: int = Field(
        prophecy.MAX_RECENT_EVALUATIONS, alias="MOODRING_MAX_RECENT_EVALUATIONS"
    )
    weight_history_entries: int = Field(1000, alias="MOODRING_WEIGHT_HISTORY_ENTRIES")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "LearningConfig":
        self.weight_decay_rate = max(0.0, min(1.0, float(self.weight_decay_rate)))
        self.max_adjustments_per_batch = max(0, int(self.max_adjustments_per_batch))
        self.evaluation_delay = max(1, int(self.evaluation_delay))
        # Snapshots must outlive the evaluation delay or none would ever be scored.
        self.max_snapshots = max(self.evaluation_delay + 1, int(self.max_snapshots))
        self.max_recent_evaluations = max(1, int(self.max_recent_evaluations))
        self.weight_history_entries = max(1, int(self.weight_history_entries))
        return self


class MoodringConfig:
    """Master configuration grouping every subsystem's settings."""

    def __init__(
        self,
        engine: dict[str, Any] | None = None,
        learning: dict[str, Any] | None = None,
    ):
        self.engine = EngineConfig(**(engine or {}))
        self.learning = LearningConfig(**(learning or {}))
        self.engine.data_dir = self.engine.data_dir.expanduser()

    @property
    def data_dir(self) -> Path:
        return self.engine.data_dir

    def __repr__(self) -> str:
        return (
            f"MoodringConfig(data_dir={self.engine.data_dir!s}, "
            f"evaluation_delay={self.learning.evaluation_delay})"
        )
