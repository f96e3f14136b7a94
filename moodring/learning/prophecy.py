"""
Prophecy Tracker — were the feelings right?

Every cycle we record which stimulus categories fired, how strongly, and in
which direction they leaned, alongside a handful of market features. Forty-
eight cycles later (about a day at 30-minute heartbeats) each snapshot is
scored against what actually happened. The accumulated accuracy tells the
reflection loop which categories deserve more weight and which are noise,
independently of whatever the reflection itself believes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from moodring.affect.state import EmotionStimulus, PrimaryEmotion
from moodring.learning.weights import StrategyWeightKey

logger = structlog.get_logger(__name__)

EVALUATION_DELAY = 48  # cycles
MAX_SNAPSHOTS = 96
MAX_RECENT_EVALUATIONS = 50
MIN_ACTIVE_INTENSITY = 0.1

Direction = Literal["positive", "negative"]

# Which way a stimulus leans when read as a prediction. Total over the wheel.
EMOTION_DIRECTION: dict[PrimaryEmotion, Direction] = {
    PrimaryEmotion.JOY: "positive",
    PrimaryEmotion.TRUST: "positive",
    PrimaryEmotion.ANTICIPATION: "positive",
    PrimaryEmotion.SURPRISE: "positive",
    PrimaryEmotion.FEAR: "negative",
    PrimaryEmotion.SADNESS: "negative",
    PrimaryEmotion.DISGUST: "negative",
    PrimaryEmotion.ANGER: "negative",
}


class MarketFeatures(BaseModel):
    """The observable world a prophecy is judged against."""

    model_config = ConfigDict(populate_by_name=True)

    mon_price_usd: float = Field(0.0, alias="monPriceUsd")
    emo_price_usd: float = Field(0.0, alias="emoPriceUsd")
    tvl: float = 0.0
    tx_count_change: float = Field(0.0, alias="txCountChange")
    nad_fun_creates: float = Field(0.0, alias="nadFunCreates")
    dex_volume_1h: float = Field(0.0, alias="dexVolume1h")
    kuru_spread_pct: float = Field(0.0, alias="kuruSpreadPct")
    gas_price_gwei: float = Field(0.0, alias="gasPriceGwei")


class ActiveCategory(BaseModel):
    category: StrategyWeightKey
    intensity: float
    direction: Direction


class ProphecySnapshot(MarketFeatures):
    cycle: int
    timestamp: float = Field(default_factory=time.time)
    active_categories: list[ActiveCategory] = Field(default_factory=list, alias="activeCategories")
    evaluated: bool = False

    def direction_of(self, category: StrategyWeightKey) -> Optional[Direction]:
        for active in self.active_categories:
            if active.category == category:
                return active.direction
        return None


class CategoryResult(BaseModel):
    category: StrategyWeightKey
    predicted: str
    actual: str
    correct: bool


class ProphecyEvaluation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    snapshot_cycle: int = Field(alias="snapshotCycle")
    evaluation_cycle: int = Field(alias="evaluationCycle")
    evaluated_at: float = Field(default_factory=time.time, alias="evaluatedAt")
    total_categories: int = Field(alias="totalCategories")
    correct_categories: int = Field(alias="correctCategories")
    results: list[CategoryResult] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def drop_retired_categories(cls, value: Any) -> Any:
        # Results for categories that no longer exist are dropped, not fatal.
        if not isinstance(value, list):
            return value
        return [
            item
            for item in value
            if not isinstance(item, Mapping) or StrategyWeightKey.parse(item.get("category")) is not None
        ]

    @property
    def majority_correct(self) -> bool:
        """Strict majority: 2 of 3 counts, 1 of 2 does not, 0 of 0 does not."""
        return self.correct_categories > self.total_categories / 2


class ProphecyStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_evaluated: int = Field(0, alias="totalEvaluated")
    total_correct: int = Field(0, alias="totalCorrect")
    overall_accuracy: float = Field(0.0, alias="overallAccuracy")
    category_accuracy: dict[str, float] = Field(default_factory=dict, alias="categoryAccuracy")
    category_evaluated: dict[str, int] = Field(default_factory=dict, alias="categoryEvaluated")
    category_correct: dict[str, int] = Field(default_factory=dict, alias="categoryCorrect")
    recent_evaluations: list[ProphecyEvaluation] = Field(
        default_factory=list, alias="recentEvaluations"
    )
    last_updated: float = Field(default_factory=time.time, alias="lastUpdated")

    @field_validator("recent_evaluations", mode="before")
    @classmethod
    def skip_unreadable_evaluations(cls, value: Any) -> Any:
        # One bad history entry must not reset the accumulated totals.
        if not isinstance(value, list):
            return []
        kept = []
        for item in value:
            try:
                kept.append(ProphecyEvaluation.model_validate(item))
            except ValidationError:
                logger.debug("prophecy.evaluation_skipped")
        return kept


# ---------------------------------------------------------------------------
# Snapshot creation
# ---------------------------------------------------------------------------

def create_prophecy_snapshot(
    cycle: int,
    features: MarketFeatures,
    stimuli: Iterable[EmotionStimulus],
) -> ProphecySnapshot:
    """Record the strongest stimulus per category this cycle."""
    strongest: dict[StrategyWeightKey, EmotionStimulus] = {}
    for stimulus in stimuli:
        if stimulus.category is None:
            continue
        current = strongest.get(stimulus.category)
        if current is None or stimulus.intensity > current.intensity:
            strongest[stimulus.category] = stimulus

    active = [
        ActiveCategory(
            category=category,
            intensity=s.intensity,
            direction=EMOTION_DIRECTION[s.emotion],
        )
        for category, s in strongest.items()
        if s.intensity >= MIN_ACTIVE_INTENSITY
    ]
    active.sort(key=lambda a: a.intensity, reverse=True)

    return ProphecySnapshot(
        cycle=cycle,
        active_categories=active,
        **features.model_dump(),
    )


def pending_evaluations(
    snapshots: Iterable[ProphecySnapshot],
    current_cycle: int,
    delay: int = EVALUATION_DELAY,
) -> list[ProphecySnapshot]:
    return [s for s in snapshots if not s.evaluated and current_cycle - s.cycle >= delay]


# ---------------------------------------------------------------------------
# Per-category correctness rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Verdict:
    predicted: str
    actual: str
    correct: bool


_Rule = Callable[[ProphecySnapshot, MarketFeatures, Optional[Direction]], _Verdict]

# A zero reading means the feed had nothing; such a category scores as wrong, never as skipped.
_NO_DATA = _Verdict("no data", "no data", False)


def _whale_fear(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.mon_price_usd <= 0 or now.mon_price_usd <= 0:
        return _NO_DATA
    dropped = now.mon_price_usd < snap.mon_price_usd * 0.98
    return _Verdict(
        "whale activity signals price risk",
        "price dropped 2%+" if dropped else "price held or rose",
        dropped,
    )


def _chain_joy(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.tvl <= 0 and now.tx_count_change == 0:
        return _NO_DATA
    up = now.tx_count_change > 0 or (snap.tvl > 0 and now.tvl > snap.tvl)
    return _Verdict(
        "chain activity signals growth",
        "activity/TVL increased" if up else "activity/TVL flat or down",
        up,
    )


def _mon_price(snap: ProphecySnapshot, now: MarketFeatures, d: Optional[Direction]) -> _Verdict:
    if snap.mon_price_usd <= 0 or now.mon_price_usd <= 0:
        return _NO_DATA
    bullish = d == "positive"
    rose = now.mon_price_usd >= snap.mon_price_usd
    return _Verdict(
        f"MON sentiment was {'bullish' if bullish else 'bearish'}",
        "MON rose" if rose else "MON fell",
        bullish == rose,
    )


def _emo_price(snap: ProphecySnapshot, now: MarketFeatures, d: Optional[Direction]) -> _Verdict:
    if snap.emo_price_usd <= 0 or now.emo_price_usd <= 0:
        return _NO_DATA
    bullish = d == "positive"
    rose = now.emo_price_usd >= snap.emo_price_usd
    return _Verdict(
        f"$EMO sentiment was {'bullish' if bullish else 'bearish'}",
        "$EMO rose" if rose else "$EMO fell",
        bullish == rose,
    )


def _tvl(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.tvl <= 0:
        return _NO_DATA
    held = now.tvl >= snap.tvl * 0.98
    return _Verdict("TVL trend continues", "TVL held or grew" if held else "TVL dropped 2%+", held)


def _nad_fun(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.nad_fun_creates <= 0:
        return _NO_DATA
    sustained = now.nad_fun_creates >= snap.nad_fun_creates * 0.8
    return _Verdict(
        "nad.fun activity sustains",
        "launches sustained" if sustained else "launches dropped",
        sustained,
    )


def _dex_volume(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.dex_volume_1h <= 0:
        return _NO_DATA
    held = now.dex_volume_1h >= snap.dex_volume_1h * 0.5
    return _Verdict(
        "DEX volume sustains",
        "volume held 50%+" if held else "volume dropped significantly",
        held,
    )


def _orderbook(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.kuru_spread_pct <= 0 or now.kuru_spread_pct <= 0:
        return _NO_DATA
    stable = now.kuru_spread_pct <= snap.kuru_spread_pct * 2
    return _Verdict(
        "orderbook stability",
        "spread stable" if stable else "spread widened significantly",
        stable,
    )


def _general(snap: ProphecySnapshot, now: MarketFeatures, _: Optional[Direction]) -> _Verdict:
    if snap.mon_price_usd <= 0 or now.mon_price_usd <= 0:
        return _NO_DATA
    improved = now.mon_price_usd >= snap.mon_price_usd and now.tx_count_change >= 0
    return _Verdict(
        "general conditions improve",
        "conditions improved" if improved else "conditions mixed or worsened",
        improved,
    )


CATEGORY_RULES: dict[StrategyWeightKey, _Rule] = {
    StrategyWeightKey.WHALE_TRANSFER_FEAR: _whale_fear,
    StrategyWeightKey.CHAIN_ACTIVITY_JOY: _chain_joy,
    StrategyWeightKey.MON_PRICE_SENTIMENT: _mon_price,
    StrategyWeightKey.EMO_PRICE_SENTIMENT: _emo_price,
    StrategyWeightKey.TVL_SENTIMENT: _tvl,
    StrategyWeightKey.NAD_FUN_EXCITEMENT: _nad_fun,
    StrategyWeightKey.DEX_SCREENER_MARKET: _dex_volume,
    StrategyWeightKey.KURU_ORDERBOOK: _orderbook,
}


def evaluate_prophecy(
    snapshot: ProphecySnapshot,
    current: MarketFeatures,
    current_cycle: int,
) -> ProphecyEvaluation:
    """Score every active category of ``snapshot`` against ``current``."""
    results: list[CategoryResult] = []
    for active in snapshot.active_categories:
        rule = CATEGORY_RULES.get(active.category, _general)
        verdict = rule(snapshot, current, active.direction)
        results.append(
            CategoryResult(
                category=active.category,
                predicted=verdict.predicted,
                actual=verdict.actual,
                correct=verdict.correct,
            )
        )

    evaluation = ProphecyEvaluation(
        snapshot_cycle=snapshot.cycle,
        evaluation_cycle=current_cycle,
        total_categories=len(results),
        correct_categories=sum(1 for r in results if r.correct),
        results=results,
    )
    logger.info(
        "prophecy.evaluated",
        snapshot_cycle=snapshot.cycle,
        evaluation_cycle=current_cycle,
        correct=evaluation.correct_categories,
        total=evaluation.total_categories,
    )
    return evaluation


def update_prophecy_stats(
    stats: ProphecyStats,
    evaluation: ProphecyEvaluation,
    max_recent: int = MAX_RECENT_EVALUATIONS,
) -> None:
    """Fold one evaluation into the running totals, in place."""
    stats.total_evaluated += 1
    if evaluation.majority_correct:
        stats.total_correct += 1
    stats.overall_accuracy = stats.total_correct / stats.total_evaluated

    for result in evaluation.results:
        key = result.category.value
        stats.category_evaluated[key] = stats.category_evaluated.get(key, 0) + 1
        stats.category_correct[key] = stats.category_correct.get(key, 0) + int(result.correct)
        stats.category_accuracy[key] = stats.category_correct[key] / stats.category_evaluated[key]

    stats.recent_evaluations.append(evaluation)
    if len(stats.recent_evaluations) > max_recent:
        del stats.recent_evaluations[: len(stats.recent_evaluations) - max_recent]
    stats.last_updated = time.time()


def format_prophecy_report(stats: ProphecyStats) -> str:
    """Human-readable accuracy summary for the reflection prompt and the CLI."""
    if stats.total_evaluated == 0:
        return (
            "## Prophecy Tracker\n"
            f"No evaluations yet. Snapshots are being collected; the first "
            f"evaluation arrives after {EVALUATION_DELAY} cycles."
        )

    lines = ["## Prophecy Tracker"]
    lines.append(
        f"Overall accuracy: {stats.overall_accuracy * 100:.1f}% "
        f"({stats.total_correct}/{stats.total_evaluated} evaluations correct)"
    )

    ranked = sorted(stats.category_accuracy.items(), key=lambda kv: kv[1], reverse=True)
    if ranked:
        best, worst = ranked[0], ranked[-1]
        lines.append(f"Best predictor: {best[0]} ({best[1] * 100:.0f}% accurate)")
        if len(ranked) > 1:
            lines.append(f"Worst predictor: {worst[0]} ({worst[1] * 100:.0f}% accurate)")

    recent = stats.recent_evaluations[-5:]
    if len(recent) >= 3:
        recent_correct = sum(1 for e in recent if e.majority_correct)
        if recent_correct >= 3:
            trend = "improving"
        elif recent_correct <= 1:
            trend = "declining"
        else:
            trend = "stable"
        lines.append(
            f"Recent trend: {trend} ({recent_correct}/{len(recent)} recent evaluations correct)"
        )

    lines.append("")
    lines.append(
        "Amplify weights for accurate predictors and dampen inaccurate ones."
    )
    return "\n".join(lines)
