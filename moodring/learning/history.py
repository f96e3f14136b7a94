"""
Weight History — append-only audit trail of every weight change.

One JSON object per line. Each entry records which categories moved, why
(decay, reflection or prophecy), and the full table after the change, so the
learning curve of any category can be replayed later.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Iterable, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel, ValidationError

from moodring.learning.weights import StrategyWeightKey, WeightAdjustmentResult
from moodring.persistence import atomic_write_text

logger = structlog.get_logger(__name__)

MAX_ENTRIES = 1000
MIN_LOGGED_DELTA = 1e-4

ChangeType = Literal["decay", "reflection", "prophecy"]


class WeightChange(BaseModel):
    category: StrategyWeightKey
    before: float
    after: float
    delta: float
    reason: Optional[str] = None
    magnitude: Optional[str] = None
    direction: Optional[str] = None


class WeightChangeEntry(BaseModel):
    timestamp: float
    cycle: int
    type: ChangeType
    changes: list[WeightChange]
    weights_snapshot: dict[StrategyWeightKey, float]


class WeightHistory:
    """JSONL log of weight changes, trimmed to the newest entries on load."""

    def __init__(self, path: Path, max_entries: int = MAX_ENTRIES) -> None:
        self._path = Path(path)
        self._max_entries = max(1, max_entries)

    @property
    def path(self) -> Path:
        return self._path

    def record(
        self,
        cycle: int,
        change_type: ChangeType,
        changes: list[WeightChange],
        weights: Mapping[StrategyWeightKey, float],
    ) -> Optional[WeightChangeEntry]:
        if not changes:
            return None
        entry = WeightChangeEntry(
            timestamp=time.time(),
            cycle=cycle,
            type=change_type,
            changes=changes,
            weights_snapshot=dict(weights),
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")
        return entry

    def record_decay(
        self,
        cycle: int,
        before: Mapping[StrategyWeightKey, float],
        after: Mapping[StrategyWeightKey, float],
    ) -> Optional[WeightChangeEntry]:
        changes = [
            WeightChange(category=key, before=before[key], after=after[key], delta=after[key] - before[key])
            for key in before
            if key in after and abs(after[key] - before[key]) > MIN_LOGGED_DELTA
        ]
        return self.record(cycle, "decay", changes, after)

    def record_adjustments(
        self,
        cycle: int,
        change_type: ChangeType,
        results: Iterable[WeightAdjustmentResult],
        weights: Mapping[StrategyWeightKey, float],
    ) -> Optional[WeightChangeEntry]:
        changes = [
            WeightChange(
                category=r.category,
                before=r.before,
                after=r.after,
                delta=r.delta,
                reason=r.reason,
                magnitude=r.magnitude,
                direction=r.direction,
            )
            for r in results
        ]
        return self.record(cycle, change_type, changes, weights)

    def load(self) -> list[WeightChangeEntry]:
        """Read the log, skipping unreadable lines, and trim it if oversized."""
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError:
            logger.warning("weight_history.load_failed", path=str(self._path), exc_info=True)
            return []

        entries: list[WeightChangeEntry] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                entries.append(WeightChangeEntry.model_validate_json(line))
            except ValidationError:
                logger.debug("weight_history.line_skipped", path=str(self._path))

        if len(entries) > self._max_entries:
            entries = entries[-self._max_entries:]
            atomic_write_text(
                self._path,
                "".join(e.model_dump_json() + "\n" for e in entries),
            )
        return entries
