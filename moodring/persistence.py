"""
State Store — load-or-default, write-atomically.

Each piece of engine state lives in its own JSON file under the data
directory. Loading never fails: a missing, truncated or schema-incompatible
file logs a warning and yields the documented default. Saving writes to a
temp file in the same directory and renames it over the target, so a reader
(or a restart after a crash) only ever sees a complete file.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

EMOTION_STATE_FILE = "emotion-state.json"
EMOTION_HISTORY_FILE = "emotion-history.json"
ROLLING_AVERAGES_FILE = "rolling-averages.json"
STRATEGY_WEIGHTS_FILE = "strategy-weights.json"
PROPHECY_SNAPSHOTS_FILE = "prophecy-snapshots.json"
PROPHECY_STATS_FILE = "prophecy-stats.json"
WEIGHT_HISTORY_FILE = "weight-history.jsonl"


def atomic_write_text(target: Path, text: str) -> None:
    """Write ``text`` to ``target`` via tempfile + rename in the same directory."""
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(text)
        Path(tmp_path).replace(target)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise


def atomic_write_json(target: Path, data: Any) -> None:
    atomic_write_text(target, json.dumps(data, indent=2))


def read_json(path: Path) -> Optional[Any]:
    """Decoded file contents, or None if the file is absent or unreadable."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError):
        logger.warning("persistence.read_failed", path=str(path), exc_info=True)
        return None


def load_or_default(path: Path, parse: Callable[[Any], T], default: Callable[[], T]) -> T:
    """Parse a JSON file with ``parse``; fall back to ``default()`` on any problem."""
    raw = read_json(path)
    if raw is None:
        return default()
    try:
        return parse(raw)
    except (ValidationError, ValueError, TypeError, KeyError, AttributeError):
        logger.warning("persistence.parse_failed", path=str(path), exc_info=True)
        return default()


def dump_model(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
