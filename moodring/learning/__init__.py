"""Learning — strategy weights and the prophecy tracker that grades them."""
from moodring.learning.prophecy import ProphecySnapshot, ProphecyStats, evaluate_prophecy
from moodring.learning.weights import (
    StrategyWeightKey,
    StrategyWeights,
    WeightAdjustment,
    apply_weight_adjustments,
)

__all__ = [
    "ProphecySnapshot",
    "ProphecyStats",
    "evaluate_prophecy",
    "StrategyWeightKey",
    "StrategyWeights",
    "WeightAdjustment",
    "apply_weight_adjustments",
]
