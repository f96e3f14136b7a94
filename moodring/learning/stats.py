"""Learning statistics — reading the weight table as a record of what was learned."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from moodring.learning.weights import (
    DECAY_RATE,
    MAGNITUDE_STEPS,
    NEUTRAL_WEIGHT,
    WEIGHT_CEILING,
    WEIGHT_FLOOR,
    StrategyWeightKey,
    StrategyWeights,
)

NEUTRAL_BAND = 0.05
MAX_ESTIMATED_ADJUSTMENTS = 200

LearningDirection = Literal["dampened", "amplified", "neutral"]
LearningIntensity = Literal["extreme", "strong", "moderate", "mild", "none"]

CATEGORY_LABELS: dict[StrategyWeightKey, str] = {
    StrategyWeightKey.WHALE_TRANSFER_FEAR: "whale transfers",
    StrategyWeightKey.CHAIN_ACTIVITY_JOY: "chain activity",
    StrategyWeightKey.CHAIN_QUIET_SADNESS: "chain quiet periods",
    StrategyWeightKey.FAILED_TX_ANGER: "failed transactions",
    StrategyWeightKey.NAD_FUN_EXCITEMENT: "nad.fun launches",
    StrategyWeightKey.EMO_PRICE_SENTIMENT: "$EMO price moves",
    StrategyWeightKey.MON_PRICE_SENTIMENT: "MON price moves",
    StrategyWeightKey.TVL_SENTIMENT: "TVL changes",
    StrategyWeightKey.SOCIAL_ENGAGEMENT: "social engagement",
    StrategyWeightKey.SELF_PERFORMANCE_REACTION: "self performance",
    StrategyWeightKey.ECOSYSTEM_VOLUME: "ecosystem volume",
    StrategyWeightKey.GAS_PRESSURE: "gas pressure",
    StrategyWeightKey.GITHUB_STAR_REACTION: "GitHub stars",
    StrategyWeightKey.FEED_JOY: "feed activity",
    StrategyWeightKey.DEX_SCREENER_MARKET: "DEX market data",
    StrategyWeightKey.KURU_ORDERBOOK: "orderbook depth",
}


@dataclass
class CategoryStats:
    category: StrategyWeightKey
    current_weight: float
    deviation: float
    direction: LearningDirection
    intensity: LearningIntensity
    estimated_adjustments: int
    narrative: str = ""


@dataclass
class LearningStats:
    categories: list[CategoryStats] = field(default_factory=list)
    total_deviation: float = 0.0
    most_learned: StrategyWeightKey = StrategyWeightKey.CHAIN_ACTIVITY_JOY
    least_learned: StrategyWeightKey = StrategyWeightKey.CHAIN_ACTIVITY_JOY
    amplified: list[StrategyWeightKey] = field(default_factory=list)
    dampened: list[StrategyWeightKey] = field(default_factory=list)
    unchanged: list[StrategyWeightKey] = field(default_factory=list)
    narrative: str = ""


def estimate_min_adjustments(current_weight: float, cycle_count: int) -> int:
    """
    Smallest number of strong adjustments that could have produced this weight.

    Simulates ``cycle_count`` cycles from neutral with decay pulling back every
    cycle and N strong steps spread evenly across them; returns the first N
    that reaches the target.
    """
    if abs(current_weight - NEUTRAL_WEIGHT) < NEUTRAL_BAND:
        return 0

    sign = -1.0 if current_weight < NEUTRAL_WEIGHT else 1.0
    step = MAGNITUDE_STEPS["strong"] * sign
    cycles = max(1, int(cycle_count))

    for n in range(1, MAX_ESTIMATED_ADJUSTMENTS + 1):
        spacing = max(1, cycles // n)
        w = NEUTRAL_WEIGHT
        applied = 0
        for c in range(cycles):
            w += (NEUTRAL_WEIGHT - w) * DECAY_RATE
            if applied < n and c % spacing == 0:
                w = max(WEIGHT_FLOOR, min(WEIGHT_CEILING, w + step))
                applied += 1
        if (sign < 0 and w <= current_weight) or (sign > 0 and w >= current_weight):
            return n
    return MAX_ESTIMATED_ADJUSTMENTS


def _intensity(deviation: float) -> LearningIntensity:
    magnitude = abs(deviation)
    if magnitude < NEUTRAL_BAND:
        return "none"
    if magnitude < 0.15:
        return "mild"
    if magnitude < 0.35:
        return "moderate"
    if magnitude < 0.55:
        return "strong"
    return "extreme"


def _narrative(stats: CategoryStats) -> str:
    label = CATEGORY_LABELS[stats.category]
    if stats.direction == "neutral":
        return f"{label} held steady as a signal; weight unchanged at {stats.current_weight:.2f}."
    pct = f"{abs(stats.deviation) * 100:.0f}"
    if stats.direction == "dampened":
        return (
            f"{label} overreacted to noise; the weight was reduced by ~{pct}%, "
            f"needing an estimated {stats.estimated_adjustments}+ strong decreases "
            "to hold against decay."
        )
    return (
        f"{label} proved undervalued; the weight was amplified by ~{pct}%, "
        f"needing an estimated {stats.estimated_adjustments}+ strong increases."
    )


def compute_learning_stats(sw: StrategyWeights, cycle_count: int) -> LearningStats:
    stats = LearningStats()
    max_dev = -1.0
    min_dev = float("inf")

    for key, value in sw.weights.items():
        deviation = value - NEUTRAL_WEIGHT
        if deviation < -NEUTRAL_BAND:
            direction: LearningDirection = "dampened"
            stats.dampened.append(key)
        elif deviation > NEUTRAL_BAND:
            direction = "amplified"
            stats.amplified.append(key)
        else:
            direction = "neutral"
            stats.unchanged.append(key)

        cat = CategoryStats(
            category=key,
            current_weight=value,
            deviation=deviation,
            direction=direction,
            intensity=_intensity(deviation),
            estimated_adjustments=estimate_min_adjustments(value, cycle_count),
        )
        cat.narrative = _narrative(cat)
        stats.categories.append(cat)
        stats.total_deviation += abs(deviation)

        if abs(deviation) > max_dev:
            max_dev, stats.most_learned = abs(deviation), key
        if abs(deviation) < min_dev:
            min_dev, stats.least_learned = abs(deviation), key

    stats.categories.sort(key=lambda c: abs(c.deviation), reverse=True)

    parts = [
        f"Over {cycle_count} cycles, {len(stats.dampened) + len(stats.amplified)} of "
        f"{len(sw.weights)} stimulus categories were adjusted."
    ]
    dampened = [CATEGORY_LABELS[c.category] for c in stats.categories if c.direction == "dampened"]
    if dampened:
        parts.append(f"Sensitivity was dampened for {', '.join(dampened[:3])}.")
    amplified = [CATEGORY_LABELS[c.category] for c in stats.categories if c.direction == "amplified"]
    if amplified:
        parts.append(f"Sensitivity was amplified for {', '.join(amplified)}.")
    stats.narrative = " ".join(parts)
    return stats
