"""Tests for moodring.learning.prophecy — snapshots, scoring and accuracy stats."""

from __future__ import annotations

import pytest

from moodring.affect.state import PrimaryEmotion
from moodring.learning.prophecy import (
    EMOTION_DIRECTION,
    ActiveCategory,
    MarketFeatures,
    ProphecyEvaluation,
    ProphecySnapshot,
    ProphecyStats,
    create_prophecy_snapshot,
    evaluate_prophecy,
    format_prophecy_report,
    pending_evaluations,
    update_prophecy_stats,
)
from moodring.learning.weights import StrategyWeightKey
from moodring.persistence import dump_model

K = StrategyWeightKey


def _snapshot(cycle=1, categories=(), **features) -> ProphecySnapshot:
    return ProphecySnapshot(
        cycle=cycle,
        active_categories=[
            ActiveCategory(category=c, intensity=0.5, direction=d) for c, d in categories
        ],
        **features,
    )


def _three_way(now: MarketFeatures) -> ProphecyEvaluation:
    snap = _snapshot(
        categories=[
            (K.WHALE_TRANSFER_FEAR, "negative"),
            (K.TVL_SENTIMENT, "positive"),
            (K.DEX_SCREENER_MARKET, "positive"),
        ],
        mon_price_usd=1.0,
        tvl=100.0,
        dex_volume_1h=1_000.0,
    )
    return evaluate_prophecy(snap, now, current_cycle=49)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

class TestDirectionTable:
    def test_total_over_the_wheel(self):
        assert set(EMOTION_DIRECTION) == set(PrimaryEmotion)

    def test_sides(self):
        positive = {e for e, d in EMOTION_DIRECTION.items() if d == "positive"}
        assert positive == {
            PrimaryEmotion.JOY,
            PrimaryEmotion.TRUST,
            PrimaryEmotion.ANTICIPATION,
            PrimaryEmotion.SURPRISE,
        }


class TestCreateProphecySnapshot:
    def test_strongest_per_category_sorted(self, stim):
        features = MarketFeatures(mon_price_usd=2.5, tvl=1e6)
        snap = create_prophecy_snapshot(
            7,
            features,
            [
                stim("fear", 0.3, "whale a", K.WHALE_TRANSFER_FEAR),
                stim("fear", 0.6, "whale b", K.WHALE_TRANSFER_FEAR),
                stim("joy", 0.4, "busy chain", K.CHAIN_ACTIVITY_JOY),
                stim("sadness", 0.05, "quiet", K.CHAIN_QUIET_SADNESS),
                stim("anger", 0.9, "memory"),
            ],
        )
        assert snap.cycle == 7
        assert snap.mon_price_usd == 2.5
        assert [(a.category, a.intensity, a.direction) for a in snap.active_categories] == [
            (K.WHALE_TRANSFER_FEAR, 0.6, "negative"),
            (K.CHAIN_ACTIVITY_JOY, 0.4, "positive"),
        ]
        assert snap.evaluated is False

    def test_point_one_is_kept(self, stim):
        snap = create_prophecy_snapshot(1, MarketFeatures(), [stim("surprise", 0.1, "x", K.FEED_JOY)])
        assert snap.active_categories[0].direction == "positive"

    def test_wire_format(self, stim):
        snap = create_prophecy_snapshot(3, MarketFeatures(dex_volume_1h=5.0), [])
        data = dump_model(snap)
        assert data["activeCategories"] == []
        assert data["dexVolume1h"] == 5.0
        assert ProphecySnapshot.model_validate(data).dex_volume_1h == 5.0


class TestPendingEvaluations:
    def test_age_threshold(self):
        snaps = [_snapshot(cycle=1), _snapshot(cycle=2)]
        assert [s.cycle for s in pending_evaluations(snaps, 49)] == [1]
        assert pending_evaluations(snaps, 48) == []

    def test_evaluated_excluded(self):
        snap = _snapshot(cycle=1)
        snap.evaluated = True
        assert pending_evaluations([snap], 100) == []

    def test_custom_delay(self):
        assert len(pending_evaluations([_snapshot(cycle=1)], 3, delay=2)) == 1


# ---------------------------------------------------------------------------
# Category rules
# ---------------------------------------------------------------------------

class TestCategoryRules:
    def _single(self, category, direction, snap_features, now_features):
        snap = _snapshot(categories=[(category, direction)], **snap_features)
        return evaluate_prophecy(snap, MarketFeatures(**now_features), 49).results[0]

    def test_whale_fear_needs_two_percent_drop(self):
        assert self._single(K.WHALE_TRANSFER_FEAR, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 0.97}).correct
        assert not self._single(K.WHALE_TRANSFER_FEAR, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 0.99}).correct

    def test_mon_price_direction(self):
        up = ({"mon_price_usd": 1.0}, {"mon_price_usd": 1.1})
        assert self._single(K.MON_PRICE_SENTIMENT, "positive", *up).correct
        assert not self._single(K.MON_PRICE_SENTIMENT, "negative", *up).correct

    def test_emo_missing_price_scores_incorrect(self):
        result = self._single(K.EMO_PRICE_SENTIMENT, "positive", {"emo_price_usd": 0.0}, {"emo_price_usd": 1.0})
        assert not result.correct
        assert result.actual == "no data"

    def test_tvl_holds_within_two_percent(self):
        assert self._single(K.TVL_SENTIMENT, "positive", {"tvl": 100.0}, {"tvl": 98.5}).correct
        assert not self._single(K.TVL_SENTIMENT, "positive", {"tvl": 100.0}, {"tvl": 97.0}).correct

    def test_chain_joy(self):
        assert self._single(K.CHAIN_ACTIVITY_JOY, "positive", {"tvl": 100.0}, {"tvl": 90.0, "tx_count_change": 5}).correct
        assert not self._single(K.CHAIN_ACTIVITY_JOY, "positive", {"tvl": 100.0}, {"tvl": 100.0}).correct

    def test_nad_fun_and_orderbook(self):
        assert self._single(K.NAD_FUN_EXCITEMENT, "positive", {"nad_fun_creates": 10}, {"nad_fun_creates": 8}).correct
        assert not self._single(K.KURU_ORDERBOOK, "negative", {"kuru_spread_pct": 0.5}, {"kuru_spread_pct": 1.5}).correct

    @pytest.mark.parametrize(
        "category,direction,snap_features,now_features",
        [
            (K.MON_PRICE_SENTIMENT, "positive", {"mon_price_usd": 0.0}, {"mon_price_usd": 0.02}),
            (K.MON_PRICE_SENTIMENT, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 0.0}),
            (K.WHALE_TRANSFER_FEAR, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 0.0}),
            (K.TVL_SENTIMENT, "positive", {"tvl": 0.0}, {"tvl": 10.0}),
            (K.CHAIN_ACTIVITY_JOY, "positive", {"tvl": 0.0}, {"tvl": 10.0}),
            (K.NAD_FUN_EXCITEMENT, "positive", {"nad_fun_creates": 0}, {"nad_fun_creates": 3}),
            (K.DEX_SCREENER_MARKET, "positive", {"dex_volume_1h": 0.0}, {"dex_volume_1h": 5.0}),
            (K.KURU_ORDERBOOK, "negative", {"kuru_spread_pct": 0.0}, {"kuru_spread_pct": 0.0}),
            (K.GAS_PRESSURE, "negative", {"mon_price_usd": 0.0}, {"mon_price_usd": 1.0}),
        ],
    )
    def test_missing_baseline_scores_incorrect(self, category, direction, snap_features, now_features):
        result = self._single(category, direction, snap_features, now_features)
        assert not result.correct
        assert (result.predicted, result.actual) == ("no data", "no data")

    def test_chain_joy_counts_tx_growth_without_tvl(self):
        assert self._single(K.CHAIN_ACTIVITY_JOY, "positive", {"tvl": 0.0}, {"tx_count_change": 4}).correct

    def test_unknown_category_falls_back_to_general(self):
        ok = self._single(K.GAS_PRESSURE, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 1.0, "tx_count_change": 0})
        bad = self._single(K.GAS_PRESSURE, "negative", {"mon_price_usd": 1.0}, {"mon_price_usd": 0.9})
        assert ok.correct
        assert not bad.correct


# ---------------------------------------------------------------------------
# Majority rule and stats
# ---------------------------------------------------------------------------

class TestMajorityRule:
    def test_two_of_three_is_correct(self):
        evaluation = _three_way(MarketFeatures(mon_price_usd=0.95, tvl=100.0, dex_volume_1h=100.0))
        assert (evaluation.correct_categories, evaluation.total_categories) == (2, 3)
        assert evaluation.majority_correct
        stats = ProphecyStats()
        update_prophecy_stats(stats, evaluation)
        assert stats.total_correct == 1

    def test_one_of_three_is_not(self):
        evaluation = _three_way(MarketFeatures(mon_price_usd=1.0, tvl=100.0, dex_volume_1h=100.0))
        assert (evaluation.correct_categories, evaluation.total_categories) == (1, 3)
        assert not evaluation.majority_correct
        stats = ProphecyStats()
        update_prophecy_stats(stats, evaluation)
        assert stats.total_correct == 0
        assert stats.total_evaluated == 1

    @pytest.mark.parametrize("correct,total,expected", [(1, 2, False), (2, 2, True), (0, 0, False)])
    def test_strict_majority(self, correct, total, expected):
        evaluation = ProphecyEvaluation(
            snapshot_cycle=1, evaluation_cycle=49, total_categories=total, correct_categories=correct
        )
        assert evaluation.majority_correct is expected


class TestUpdateProphecyStats:
    def test_per_category_accounting(self):
        stats = ProphecyStats()
        update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=0.95, tvl=100.0)))
        update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=1.0, tvl=50.0)))
        assert stats.total_evaluated == 2
        assert stats.overall_accuracy == pytest.approx(0.5)
        assert stats.category_evaluated["whaleTransferFear"] == 2
        assert stats.category_correct["whaleTransferFear"] == 1
        assert stats.category_accuracy["tvlSentiment"] == pytest.approx(0.5)
        assert stats.category_accuracy["dexScreenerMarket"] == 0.0

    def test_recent_ring_is_bounded(self):
        stats = ProphecyStats()
        for _ in range(5):
            update_prophecy_stats(stats, _three_way(MarketFeatures()), max_recent=2)
        assert len(stats.recent_evaluations) == 2
        assert stats.total_evaluated == 5

    def test_round_trip(self):
        stats = ProphecyStats()
        update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=0.95, tvl=100.0)))
        data = dump_model(stats)
        assert data["totalEvaluated"] == 1
        restored = ProphecyStats.model_validate(data)
        assert restored.recent_evaluations[0].correct_categories == 2
        assert restored.category_correct == stats.category_correct


class TestProphecyReport:
    def test_empty(self):
        assert "No evaluations yet" in format_prophecy_report(ProphecyStats())

    def test_accuracy_and_predictors(self):
        stats = ProphecyStats()
        update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=0.95, tvl=100.0)))
        update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=1.0, tvl=50.0)))
        report = format_prophecy_report(stats)
        assert "Overall accuracy: 50.0% (1/2 evaluations correct)" in report
        assert "Best predictor:" in report
        assert "Worst predictor: dexScreenerMarket (0% accurate)" in report

    def test_trend_needs_three(self):
        stats = ProphecyStats()
        for _ in range(3):
            update_prophecy_stats(stats, _three_way(MarketFeatures(mon_price_usd=0.95, tvl=100.0)))
        assert "Recent trend: improving (3/3" in format_prophecy_report(stats)
