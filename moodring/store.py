"""
StateStore — one data directory, one file per piece of engine state.

The cycle loads everything at the top and saves everything at the bottom;
nothing is held in memory between cycles. Every loader degrades to the
documented default, so deleting a file (or the whole directory) is always a
valid way to reset part of the engine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

import structlog
from pydantic import ValidationError

from moodring.adaptive import RollingAverages, create_default_rolling_averages
from moodring.affect.state import EmotionState, create_default_state
from moodring.learning.history import MAX_ENTRIES, WeightHistory
from moodring.learning.prophecy import MAX_SNAPSHOTS, ProphecySnapshot, ProphecyStats
from moodring.learning.weights import StrategyWeights, create_default_weights
from moodring.persistence import (
    EMOTION_HISTORY_FILE,
    EMOTION_STATE_FILE,
    PROPHECY_SNAPSHOTS_FILE,
    PROPHECY_STATS_FILE,
    ROLLING_AVERAGES_FILE,
    STRATEGY_WEIGHTS_FILE,
    WEIGHT_HISTORY_FILE,
    atomic_write_json,
    dump_model,
    load_or_default,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _parse_items(raw: Any, parse: Callable[[Any], T], kind: str) -> list[T]:
    """Parse a JSON list item by item; one bad entry does not cost the rest."""
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of {kind}")
    items: list[T] = []
    for entry in raw:
        try:
            items.append(parse(entry))
        except (ValidationError, ValueError, TypeError, AttributeError):
            logger.debug("store.item_skipped", kind=kind)
    return items


class StateStore:
    """Load-or-default and atomic save for every persisted structure."""

    def __init__(
        self,
        data_dir: Path,
        max_snapshots: int = MAX_SNAPSHOTS,
        weight_history_entries: int = MAX_ENTRIES,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._max_snapshots = max(1, max_snapshots)
        self.weight_history = WeightHistory(
            self._data_dir / WEIGHT_HISTORY_FILE, max_entries=weight_history_entries
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, name: str) -> Path:
        return self._data_dir / name

    # -- emotion state -------------------------------------------------------

    def load_emotion_state(self) -> EmotionState:
        return load_or_default(
            self._path(EMOTION_STATE_FILE), EmotionState.from_dict, create_default_state
        )

    def save_emotion_state(self, state: EmotionState) -> None:
        atomic_write_json(self._path(EMOTION_STATE_FILE), state.to_dict())

    def load_emotion_history(self) -> list[EmotionState]:
        return load_or_default(
            self._path(EMOTION_HISTORY_FILE),
            lambda raw: _parse_items(raw, EmotionState.from_dict, "emotion_state"),
            list,
        )

    def save_emotion_history(self, history: Sequence[EmotionState]) -> None:
        atomic_write_json(self._path(EMOTION_HISTORY_FILE), [s.to_dict() for s in history])

    # -- adaptive thresholds -------------------------------------------------

    def load_rolling_averages(self) -> RollingAverages:
        return load_or_default(
            self._path(ROLLING_AVERAGES_FILE),
            RollingAverages.model_validate,
            create_default_rolling_averages,
        )

    def save_rolling_averages(self, avg: RollingAverages) -> None:
        atomic_write_json(self._path(ROLLING_AVERAGES_FILE), dump_model(avg))

    # -- strategy weights ----------------------------------------------------

    def load_strategy_weights(self) -> StrategyWeights:
        return load_or_default(
            self._path(STRATEGY_WEIGHTS_FILE),
            StrategyWeights.model_validate,
            create_default_weights,
        )

    def save_strategy_weights(self, sw: StrategyWeights) -> None:
        atomic_write_json(self._path(STRATEGY_WEIGHTS_FILE), dump_model(sw))

    # -- prophecy ------------------------------------------------------------

    def load_prophecy_snapshots(self) -> list[ProphecySnapshot]:
        return load_or_default(
            self._path(PROPHECY_SNAPSHOTS_FILE),
            lambda raw: _parse_items(raw, ProphecySnapshot.model_validate, "prophecy_snapshot"),
            list,
        )

    def save_prophecy_snapshots(self, snapshots: Iterable[ProphecySnapshot]) -> None:
        kept = list(snapshots)[-self._max_snapshots:]
        atomic_write_json(self._path(PROPHECY_SNAPSHOTS_FILE), [dump_model(s) for s in kept])

    def load_prophecy_stats(self) -> ProphecyStats:
        return load_or_default(
            self._path(PROPHECY_STATS_FILE), ProphecyStats.model_validate, ProphecyStats
        )

    def save_prophecy_stats(self, stats: ProphecyStats) -> None:
        atomic_write_json(self._path(PROPHECY_STATS_FILE), dump_model(stats))

    def exists(self, name: Optional[str] = None) -> bool:
        """Whether the data directory (or one named file in it) exists."""
        return self._path(name).exists() if name else self._data_dir.is_dir()
