"""
Adaptive Thresholds — what counts as "big" is learned, not hard-coded.

Each raw metric the stimulus producers look at (largest transfer, failed
transactions, gas price, market volume, orderbook spread...) is tracked as an
exponential moving average. Trigger thresholds are derived from those
averages with a per-metric multiplier and a floor, so the system recalibrates
to its own recent history while a long quiet stretch can never make ordinary
noise look anomalous.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = structlog.get_logger(__name__)

EMA_ALPHA = 0.1

# Orderbook imbalance is already a bounded bid-share ratio; it gets fixed
# cut-offs instead of derived ones.
IMBALANCE_BID_HEAVY = 0.65
IMBALANCE_ASK_HEAVY = 1.0 - IMBALANCE_BID_HEAVY


class RollingAverages(BaseModel):
    """EMA of every tracked metric, seeded with sane cold-start values."""

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    whale_transfer_mon: float = Field(10_000.0, alias="whaleTransferMon")
    failed_tx_count: float = Field(5.0, alias="failedTxCount")
    new_contracts: float = Field(1.0, alias="newContracts")
    tx_count_change: float = Field(50.0, alias="txCountChange")
    nad_fun_creates: float = Field(10.0, alias="nadFunCreates")
    nad_fun_graduations: float = Field(3.0, alias="nadFunGraduations")
    emo_price_change_percent: float = Field(10.0, alias="emoPriceChangePercent")
    emo_buy_count: float = Field(5.0, alias="emoBuyCount")
    emo_sell_count: float = Field(5.0, alias="emoSellCount")
    emo_net_flow_mon: float = Field(10.0, alias="emoNetFlowMon")
    emo_swap_count: float = Field(20.0, alias="emoSwapCount")
    mon_change_24h: float = Field(10.0, alias="monChange24h")
    mon_cycle_price_change: float = Field(3.0, alias="monCyclePriceChange")
    tvl_change_24h: float = Field(5.0, alias="tvlChange24h")
    monad_tvl: float = Field(500e6, alias="monadTVL")
    mon_volume_24h: float = Field(50e6, alias="monVolume24h")
    gas_price_gwei: float = Field(50.0, alias="gasPriceGwei")
    ecosystem_token_change: float = Field(20.0, alias="ecosystemTokenChange")
    dex_volume_1h: float = Field(100_000.0, alias="dexVolume1h")
    kuru_spread_pct: float = Field(0.5, alias="kuruSpreadPct")
    kuru_depth_mon: float = Field(50_000.0, alias="kuruDepthMon")

    cycles_tracked: int = Field(0, alias="cyclesTracked")
    last_updated: float = Field(default_factory=time.time, alias="lastUpdated")

    @model_validator(mode="before")
    @classmethod
    def drop_non_finite(cls, data: Any) -> Any:
        # A NaN average would never recover through the EMA; reseed that metric only.
        if not isinstance(data, Mapping):
            return data
        return {
            k: v
            for k, v in data.items()
            if not isinstance(v, (float, str)) or _finite(v) is not None
        }


_BOOKKEEPING = frozenset({"cycles_tracked", "last_updated"})
METRIC_FIELDS: tuple[str, ...] = tuple(
    name for name in RollingAverages.model_fields if name not in _BOOKKEEPING
)

# Signed observations are tracked by magnitude: a -15% day is as unusual as +15%.
ABSOLUTE_METRICS = frozenset(
    {
        "tx_count_change",
        "emo_price_change_percent",
        "emo_net_flow_mon",
        "mon_change_24h",
        "mon_cycle_price_change",
        "tvl_change_24h",
        "ecosystem_token_change",
    }
)

_NAME_LOOKUP: dict[str, str] = {}
for _name in METRIC_FIELDS:
    _NAME_LOOKUP[_name] = _name
    _NAME_LOOKUP[RollingAverages.model_fields[_name].alias or _name] = _name


def create_default_rolling_averages() -> RollingAverages:
    return RollingAverages()


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def ema(current: float, observed: float, alpha: float = EMA_ALPHA) -> float:
    return current * (1 - alpha) + observed * alpha


def update_rolling_averages(
    avg: RollingAverages,
    observed: Mapping[str, Any],
    alpha: float = EMA_ALPHA,
) -> RollingAverages:
    """
    Fold one cycle of observations into the averages.

    Metrics missing from ``observed`` (or not numeric) keep their previous
    average. ``cycles_tracked`` advances regardless, so a cycle with no data
    still counts as a cycle.
    """
    updates: dict[str, Any] = {}
    ignored: list[str] = []
    for raw_name, raw_value in observed.items():
        name = _NAME_LOOKUP.get(raw_name)
        value = _finite(raw_value)
        if name is None or value is None:
            ignored.append(raw_name)
            continue
        if name in ABSOLUTE_METRICS:
            value = abs(value)
        updates[name] = ema(getattr(avg, name), value, alpha)

    if ignored:
        logger.debug("adaptive.observations_ignored", metrics=ignored)

    updates["cycles_tracked"] = avg.cycles_tracked + 1
    updates["last_updated"] = time.time()
    return avg.model_copy(update=updates)


class AdaptiveThresholds(BaseModel):
    """Trigger levels handed to the stimulus producers."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    whale_transfer_mon: float = Field(alias="whaleTransferMon")
    failed_tx_count: float = Field(alias="failedTxCount")
    new_contracts: float = Field(alias="newContracts")
    tx_count_change_busy: float = Field(alias="txCountChangeBusy")
    tx_count_change_drop: float = Field(alias="txCountChangeDrop")
    nad_fun_high_creates: float = Field(alias="nadFunHighCreates")
    emo_price_change_pump: float = Field(alias="emoPriceChangePump")
    emo_price_change_dump: float = Field(alias="emoPriceChangeDump")
    emo_buy_count: float = Field(alias="emoBuyCount")
    emo_sell_count: float = Field(alias="emoSellCount")
    emo_net_flow_mon: float = Field(alias="emoNetFlowMon")
    emo_swap_count: float = Field(alias="emoSwapCount")
    mon_change_24h_big: float = Field(alias="monChange24hBig")
    mon_change_24h_moderate: float = Field(alias="monChange24hModerate")
    mon_cycle_price_change: float = Field(alias="monCyclePriceChange")
    tvl_change_24h: float = Field(alias="tvlChange24h")
    mon_volume_24h_high: float = Field(alias="monVolume24hHigh")
    mon_volume_24h_low: float = Field(alias="monVolume24hLow")
    gas_price_gwei: float = Field(alias="gasPriceGwei")
    ecosystem_token_change: float = Field(alias="ecosystemTokenChange")
    dex_volume_1h_high: float = Field(alias="dexVolume1hHigh")
    dex_volume_1h_low: float = Field(alias="dexVolume1hLow")
    kuru_spread_wide: float = Field(alias="kuruSpreadWide")
    kuru_depth_thin: float = Field(alias="kuruDepthThin")
    kuru_imbalance_bid: float = Field(IMBALANCE_BID_HEAVY, alias="kuruImbalanceBid")
    kuru_imbalance_ask: float = Field(IMBALANCE_ASK_HEAVY, alias="kuruImbalanceAsk")


@dataclass(frozen=True)
class ThresholdRule:
    """threshold = max(floor, average * multiplier)"""

    source: str
    floor: float
    multiplier: float

    def apply(self, avg: RollingAverages) -> float:
        return max(self.floor, getattr(avg, self.source) * self.multiplier)


THRESHOLD_RULES: dict[str, ThresholdRule] = {
    "whale_transfer_mon": ThresholdRule("whale_transfer_mon", 10_000.0, 2.0),
    "failed_tx_count": ThresholdRule("failed_tx_count", 5.0, 2.0),
    "new_contracts": ThresholdRule("new_contracts", 1.0, 2.0),
    "tx_count_change_busy": ThresholdRule("tx_count_change", 50.0, 2.0),
    "tx_count_change_drop": ThresholdRule("tx_count_change", 30.0, 1.5),
    "nad_fun_high_creates": ThresholdRule("nad_fun_creates", 10.0, 2.0),
    "emo_price_change_pump": ThresholdRule("emo_price_change_percent", 10.0, 2.0),
    "emo_price_change_dump": ThresholdRule("emo_price_change_percent", 10.0, 2.0),
    "emo_buy_count": ThresholdRule("emo_buy_count", 5.0, 2.0),
    "emo_sell_count": ThresholdRule("emo_sell_count", 5.0, 2.0),
    "emo_net_flow_mon": ThresholdRule("emo_net_flow_mon", 10.0, 2.0),
    "emo_swap_count": ThresholdRule("emo_swap_count", 20.0, 2.0),
    "mon_change_24h_big": ThresholdRule("mon_change_24h", 10.0, 2.0),
    "mon_change_24h_moderate": ThresholdRule("mon_change_24h", 3.0, 0.6),
    "mon_cycle_price_change": ThresholdRule("mon_cycle_price_change", 3.0, 2.0),
    "tvl_change_24h": ThresholdRule("tvl_change_24h", 5.0, 2.0),
    "mon_volume_24h_high": ThresholdRule("mon_volume_24h", 50e6, 2.0),
    # "low" variants detect drops rather than spikes
    "mon_volume_24h_low": ThresholdRule("mon_volume_24h", 5e6, 0.2),
    "gas_price_gwei": ThresholdRule("gas_price_gwei", 50.0, 2.0),
    "ecosystem_token_change": ThresholdRule("ecosystem_token_change", 20.0, 2.0),
    "dex_volume_1h_high": ThresholdRule("dex_volume_1h", 100_000.0, 2.0),
    "dex_volume_1h_low": ThresholdRule("dex_volume_1h", 10_000.0, 0.2),
    "kuru_spread_wide": ThresholdRule("kuru_spread_pct", 0.5, 2.0),
    "kuru_depth_thin": ThresholdRule("kuru_depth_mon", 5_000.0, 0.2),
}


def compute_adaptive_thresholds(avg: RollingAverages) -> AdaptiveThresholds:
    """Derive every trigger level from the current averages. Pure."""
    return AdaptiveThresholds(**{name: rule.apply(avg) for name, rule in THRESHOLD_RULES.items()})
