"""
Shared fixtures for the moodring test suite.

Provides default states, a deterministic clock, a temporary state store and
a ready-made cycle so individual test modules can focus on behavior rather
than setup.
"""

from __future__ import annotations

import time

import pytest

from moodring.affect.state import (
    EmotionState,
    EmotionStimulus,
    PrimaryEmotion,
    create_default_state,
)
from moodring.config import MoodringConfig
from moodring.cycle import EmotionCycle
from moodring.learning.weights import StrategyWeightKey, StrategyWeights, create_default_weights
from moodring.store import StateStore


# ---------------------------------------------------------------------------
# State helpers
# ---------------------------------------------------------------------------

def _make_state(**values: float) -> EmotionState:
    """A default state with the named categories overwritten, derived fields recomputed."""
    data = create_default_state().to_dict()
    data["emotions"].update(values)
    data["mood"] = dict(data["emotions"])
    return EmotionState.from_dict(data)


def _stim(
    emotion: str,
    intensity: float,
    source: str = "test",
    category: StrategyWeightKey | None = None,
) -> EmotionStimulus:
    return EmotionStimulus(PrimaryEmotion(emotion), intensity, source, category)


class FakeClock:
    """Monotonic clock advanced by hand, in minutes."""

    def __init__(self, start: float | None = None) -> None:
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * 60.0


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_state():
    """Build a state with chosen category values: ``make_state(joy=0.6, trust=0.2)``."""
    return _make_state


@pytest.fixture()
def stim():
    """Build a stimulus: ``stim("fear", 0.8, "source", category)``."""
    return _stim


@pytest.fixture()
def default_state() -> EmotionState:
    return create_default_state()


@pytest.fixture()
def default_weights() -> StrategyWeights:
    return create_default_weights()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def config(tmp_path) -> MoodringConfig:
    return MoodringConfig(engine={"data_dir": tmp_path / "state"})


@pytest.fixture()
def store(config: MoodringConfig) -> StateStore:
    return StateStore(config.data_dir)


@pytest.fixture()
def engine(config: MoodringConfig, store: StateStore, clock: FakeClock) -> EmotionCycle:
    return EmotionCycle(config, store=store, clock=clock)
