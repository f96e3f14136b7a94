"""
Strategy Weights — per-category sensitivity learned from delayed feedback.

Every stimulus producer tags its stimuli with a category. Before a stimulus
reaches the emotion vector its intensity is multiplied by that category's
weight. Reflection (an external, LLM-driven process) and the prophecy
evaluator issue bounded adjustment instructions; every cycle all weights also
drift back toward 1.0 so no single stale instruction leaves a permanent bias.

Weights live in [0.3, 2.0]. A category can be muted to 30% or doubled, never
silenced and never allowed to run away.
"""

from __future__ import annotations

import json
import math
import re
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Iterable, Literal, Mapping, Optional, Union

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from moodring.affect.state import EmotionStimulus

logger = structlog.get_logger(__name__)

WEIGHT_FLOOR = 0.3
WEIGHT_CEILING = 2.0
NEUTRAL_WEIGHT = 1.0
DECAY_RATE = 0.005  # ~140 cycles to halve a deviation
MAX_ADJUSTMENTS_PER_BATCH = 3
MAX_REASON_LENGTH = 200

MAGNITUDE_STEPS: dict[str, float] = {
    "nudge": 0.05,
    "moderate": 0.10,
    "strong": 0.20,
}
DEFAULT_MAGNITUDE = "moderate"


class StrategyWeightKey(str, Enum):
    """The fixed set of stimulus categories that carry a learned weight."""

    WHALE_TRANSFER_FEAR = "whaleTransferFear"
    CHAIN_ACTIVITY_JOY = "chainActivityJoy"
    CHAIN_QUIET_SADNESS = "chainQuietSadness"
    FAILED_TX_ANGER = "failedTxAnger"
    NAD_FUN_EXCITEMENT = "nadFunExcitement"
    EMO_PRICE_SENTIMENT = "emoPriceSentiment"
    MON_PRICE_SENTIMENT = "monPriceSentiment"
    TVL_SENTIMENT = "tvlSentiment"
    SOCIAL_ENGAGEMENT = "socialEngagement"
    SELF_PERFORMANCE_REACTION = "selfPerformanceReaction"
    ECOSYSTEM_VOLUME = "ecosystemVolume"
    GAS_PRESSURE = "gasPressure"
    GITHUB_STAR_REACTION = "githubStarReaction"
    FEED_JOY = "feedJoy"
    DEX_SCREENER_MARKET = "dexScreenerMarket"
    KURU_ORDERBOOK = "kuruOrderbook"

    @classmethod
    def parse(cls, value: Any) -> Optional[StrategyWeightKey]:
        """Return the matching key, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


ALL_WEIGHT_KEYS: tuple[StrategyWeightKey, ...] = tuple(StrategyWeightKey)


def _clamp_weight(value: float) -> float:
    return max(WEIGHT_FLOOR, min(WEIGHT_CEILING, value))


class StrategyWeights(BaseModel):
    """The full weight table. Every key is always present."""

    model_config = ConfigDict(populate_by_name=True)

    weights: dict[StrategyWeightKey, float] = Field(default_factory=dict, validate_default=True)
    last_updated: float = Field(default_factory=time.time, alias="lastUpdated")

    @field_validator("weights", mode="before")
    @classmethod
    def backfill_and_filter(cls, value: Any) -> dict[StrategyWeightKey, float]:
        # Old files may miss new keys or carry retired ones.
        source = value if isinstance(value, Mapping) else {}
        out: dict[StrategyWeightKey, float] = {}
        for raw_key, raw_value in source.items():
            key = StrategyWeightKey.parse(raw_key)
            if key is None:
                continue
            try:
                numeric = float(raw_value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(numeric):
                out[key] = _clamp_weight(numeric)
        for key in ALL_WEIGHT_KEYS:
            out.setdefault(key, NEUTRAL_WEIGHT)
        return out

    def get(self, key: Optional[StrategyWeightKey]) -> float:
        if key is None:
            return NEUTRAL_WEIGHT
        return self.weights.get(key, NEUTRAL_WEIGHT)

    def snapshot(self) -> dict[StrategyWeightKey, float]:
        return dict(self.weights)


def create_default_weights() -> StrategyWeights:
    return StrategyWeights(weights={k: NEUTRAL_WEIGHT for k in ALL_WEIGHT_KEYS})


class WeightAdjustment(BaseModel):
    """One instruction to move a category weight."""

    model_config = ConfigDict(populate_by_name=True)

    key: StrategyWeightKey = Field(validation_alias=AliasChoices("key", "category"))
    direction: Literal["increase", "decrease", "reset"]
    magnitude: Optional[Literal["nudge", "moderate", "strong"]] = None
    reason: str = ""

    @field_validator("magnitude", mode="before")
    @classmethod
    def drop_unknown_magnitude(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value in MAGNITUDE_STEPS:
            return value
        return None

    @field_validator("reason", mode="before")
    @classmethod
    def truncate_reason(cls, value: Any) -> str:
        return str(value or "")[:MAX_REASON_LENGTH]

    @property
    def step(self) -> float:
        return MAGNITUDE_STEPS[self.magnitude or DEFAULT_MAGNITUDE]


class WeightAdjustmentResult(BaseModel):
    """Audit record of one applied adjustment."""

    category: StrategyWeightKey
    before: float
    after: float
    reason: str
    direction: str
    magnitude: Optional[str] = None

    @property
    def delta(self) -> float:
        return self.after - self.before


AdjustmentInput = Union[WeightAdjustment, Mapping[str, Any]]


def _coerce_adjustment(item: Any) -> Optional[WeightAdjustment]:
    if isinstance(item, WeightAdjustment):
        return item
    if not isinstance(item, Mapping):
        logger.debug("weights.adjustment_dropped", reason="not_an_object")
        return None
    try:
        return WeightAdjustment.model_validate(dict(item))
    except ValidationError as e:
        logger.debug("weights.adjustment_dropped", reason="invalid", errors=e.error_count())
        return None


def apply_weight_adjustments(
    sw: StrategyWeights,
    adjustments: Iterable[AdjustmentInput],
) -> list[WeightAdjustmentResult]:
    """
    Apply a batch of adjustments in place and return what changed.

    Items that do not validate (unknown category, unknown direction) are
    skipped individually; the rest of the batch still applies.
    """
    results: list[WeightAdjustmentResult] = []
    for item in adjustments:
        adj = _coerce_adjustment(item)
        if adj is None:
            continue
        before = sw.weights[adj.key]

        if adj.direction == "reset":
            after = NEUTRAL_WEIGHT
        else:
            delta = adj.step if adj.direction == "increase" else -adj.step
            after = _clamp_weight(before + delta)

        sw.weights[adj.key] = after
        result = WeightAdjustmentResult(
            category=adj.key,
            before=before,
            after=after,
            reason=adj.reason,
            direction=adj.direction,
            magnitude=None if adj.direction == "reset" else (adj.magnitude or DEFAULT_MAGNITUDE),
        )
        results.append(result)
        logger.info(
            "weights.adjusted",
            category=adj.key.value,
            direction=adj.direction,
            magnitude=result.magnitude,
            before=round(before, 4),
            after=round(after, 4),
            reason=adj.reason[:80],
        )
    if results:
        sw.last_updated = time.time()
    return results


def decay_weights(sw: StrategyWeights, rate: float = DECAY_RATE) -> None:
    """Drift every weight a small step back toward neutral, in place."""
    for key in ALL_WEIGHT_KEYS:
        w = sw.weights.get(key, NEUTRAL_WEIGHT)
        sw.weights[key] = _clamp_weight(w + (NEUTRAL_WEIGHT - w) * rate)


def apply_strategy_weights(
    stimuli: Iterable[EmotionStimulus],
    sw: StrategyWeights,
) -> list[EmotionStimulus]:
    """Scale each categorised stimulus by its weight. Inputs are not modified."""
    scaled: list[EmotionStimulus] = []
    for stimulus in stimuli:
        if stimulus.category is None:
            scaled.append(stimulus)
            continue
        scaled.append(replace(stimulus, intensity=stimulus.intensity * sw.get(stimulus.category)))
    return scaled


# ---------------------------------------------------------------------------
# Sanitizing LLM-sourced instructions
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _decode_loose_json(text: str) -> Any:
    """Decode JSON the way model output actually arrives: fenced, padded, sloppy."""
    fenced = _FENCE_RE.search(text)
    candidate = fenced.group(1) if fenced else text
    start = min((i for i in (candidate.find("{"), candidate.find("[")) if i >= 0), default=-1)
    if start > 0:
        candidate = candidate[start:]
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_TRAILING_COMMA_RE.sub(r"\1", candidate))
    except json.JSONDecodeError:
        logger.warning("weights.adjustments_unparseable", length=len(text))
        return None


def parse_weight_adjustments(
    raw: Any,
    max_items: int = MAX_ADJUSTMENTS_PER_BATCH,
) -> list[WeightAdjustment]:
    """
    Turn untrusted reflection output into a clean adjustment list.

    Accepts a JSON string, a decoded object with a ``weightAdjustments``
    list, or the list itself. Never raises: anything unusable yields an
    empty list, and each item is validated on its own.
    """
    data = _decode_loose_json(raw) if isinstance(raw, str) else raw
    if isinstance(data, Mapping):
        data = data.get("weightAdjustments", data.get("weight_adjustments"))
    if not isinstance(data, list):
        return []

    out: list[WeightAdjustment] = []
    for item in data[: max(0, max_items)]:
        adj = _coerce_adjustment(item)
        if adj is not None:
            out.append(adj)
    return out
