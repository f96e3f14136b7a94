"""Tests for moodring.persistence and moodring.store — atomic files, safe defaults."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from moodring.adaptive import update_rolling_averages
from moodring.affect.state import PrimaryEmotion, stimulate
from moodring.learning.prophecy import MarketFeatures, ProphecyStats, create_prophecy_snapshot
from moodring.learning.weights import StrategyWeightKey, apply_weight_adjustments
from moodring.persistence import (
    EMOTION_HISTORY_FILE,
    EMOTION_STATE_FILE,
    PROPHECY_SNAPSHOTS_FILE,
    PROPHECY_STATS_FILE,
    ROLLING_AVERAGES_FILE,
    STRATEGY_WEIGHTS_FILE,
    atomic_write_json,
    load_or_default,
    read_json,
)
from moodring.store import StateStore


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------

class TestAtomicWrite:
    def test_creates_parent_and_writes(self, tmp_path):
        target = tmp_path / "nested" / "dir" / "state.json"
        atomic_write_json(target, {"a": 1})
        assert json.loads(target.read_text()) == {"a": 1}

    def test_no_temp_files_left(self, tmp_path):
        target = tmp_path / "state.json"
        atomic_write_json(target, {"a": 1})
        atomic_write_json(target, {"a": 2})
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_failed_rename_keeps_old_file(self, tmp_path, monkeypatch):
        target = tmp_path / "state.json"
        atomic_write_json(target, {"version": 1})

        def boom(self, other):
            raise OSError("disk full")

        monkeypatch.setattr(Path, "replace", boom)
        with pytest.raises(OSError):
            atomic_write_json(target, {"version": 2})
        monkeypatch.undo()

        assert json.loads(target.read_text()) == {"version": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


class TestReadJson:
    def test_missing(self, tmp_path):
        assert read_json(tmp_path / "nope.json") is None

    def test_corrupt(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"truncated": ')
        assert read_json(path) is None

    def test_load_or_default_on_parse_error(self, tmp_path):
        path = tmp_path / "x.json"
        path.write_text("[1, 2, 3]")

        def parse(raw):
            return raw["key"]

        assert load_or_default(path, parse, lambda: "default") == "default"


# ---------------------------------------------------------------------------
# StateStore
# ---------------------------------------------------------------------------

class TestStateStoreDefaults:
    def test_empty_directory(self, store):
        assert not store.exists()
        state = store.load_emotion_state()
        assert state.dominant == PrimaryEmotion.ANTICIPATION
        assert store.load_emotion_history() == []
        assert store.load_rolling_averages().cycles_tracked == 0
        assert len(store.load_strategy_weights().weights) == 16
        assert store.load_prophecy_snapshots() == []
        assert store.load_prophecy_stats().total_evaluated == 0

    @pytest.mark.parametrize("content", ["", "{not json", "[1, 2]", '"a string"', "null"])
    def test_corrupt_state_file(self, store, content):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / EMOTION_STATE_FILE).write_text(content)
        state = store.load_emotion_state()
        assert state.trigger == "initial state - just woke up"

    def test_corrupt_weights_file(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / STRATEGY_WEIGHTS_FILE).write_text('{"weights": [1, 2]}')
        assert all(v == 1.0 for v in store.load_strategy_weights().weights.values())

    @pytest.mark.parametrize("content", ['{"lastUpdated": 5.0}', "{}"])
    def test_weights_file_without_table(self, store, content):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / STRATEGY_WEIGHTS_FILE).write_text(content)
        sw = store.load_strategy_weights()
        assert len(sw.weights) == 16
        results = apply_weight_adjustments(sw, [{"key": "gasPressure", "direction": "increase"}])
        assert results[0].after == pytest.approx(1.1)

    def test_non_finite_weight_falls_back_to_neutral(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / STRATEGY_WEIGHTS_FILE).write_text(
            '{"weights": {"gasPressure": NaN, "feedJoy": Infinity, "kuruOrderbook": 0.5}}'
        )
        weights = store.load_strategy_weights().weights
        assert weights[StrategyWeightKey.GAS_PRESSURE] == 1.0
        assert weights[StrategyWeightKey.FEED_JOY] == 1.0
        assert weights[StrategyWeightKey.KURU_ORDERBOOK] == 0.5

    def test_non_finite_average_is_reseeded(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / ROLLING_AVERAGES_FILE).write_text(
            '{"gasPriceGwei": NaN, "failedTxCount": 9.0, "cyclesTracked": 12}'
        )
        avg = store.load_rolling_averages()
        assert avg.gas_price_gwei == 50.0
        assert avg.failed_tx_count == 9.0
        assert avg.cycles_tracked == 12

    def test_stats_survive_retired_category(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / PROPHECY_STATS_FILE).write_text(json.dumps({
            "totalEvaluated": 40,
            "totalCorrect": 25,
            "categoryEvaluated": {"retiredCategory": 3},
            "recentEvaluations": [
                {
                    "snapshotCycle": 1,
                    "evaluationCycle": 49,
                    "totalCategories": 2,
                    "correctCategories": 1,
                    "results": [
                        {"category": "retiredCategory", "predicted": "x", "actual": "y", "correct": True},
                        {"category": "gasPressure", "predicted": "x", "actual": "y", "correct": False},
                    ],
                },
                {"snapshotCycle": "garbage"},
            ],
        }))
        stats = store.load_prophecy_stats()
        assert (stats.total_evaluated, stats.total_correct) == (40, 25)
        assert stats.category_evaluated == {"retiredCategory": 3}
        assert len(stats.recent_evaluations) == 1
        assert [r.category for r in stats.recent_evaluations[0].results] == [StrategyWeightKey.GAS_PRESSURE]


class TestStateStoreRoundTrip:
    def test_emotion_state(self, store, default_state, stim):
        state = stimulate(default_state, [stim("fear", 0.8, "whale")])
        store.save_emotion_state(state)
        assert store.exists(EMOTION_STATE_FILE)
        loaded = store.load_emotion_state()
        assert loaded.emotions == pytest.approx(state.emotions)
        assert loaded.dominant_label == "terror"

    def test_history_skips_bad_items(self, store, default_state):
        store.save_emotion_history([default_state, default_state])
        path = store.data_dir / EMOTION_HISTORY_FILE
        raw = json.loads(path.read_text())
        path.write_text(json.dumps(raw + ["garbage", 42]))
        assert len(store.load_emotion_history()) == 2

    def test_rolling_averages(self, store):
        avg = update_rolling_averages(store.load_rolling_averages(), {"gasPriceGwei": 150})
        store.save_rolling_averages(avg)
        loaded = store.load_rolling_averages()
        assert loaded.gas_price_gwei == pytest.approx(60)
        assert loaded.cycles_tracked == 1

    def test_strategy_weights(self, store, default_weights):
        default_weights.weights[StrategyWeightKey.KURU_ORDERBOOK] = 0.45
        store.save_strategy_weights(default_weights)
        assert store.load_strategy_weights().weights[StrategyWeightKey.KURU_ORDERBOOK] == 0.45

    def test_snapshots_capped_on_save(self, tmp_path):
        store = StateStore(tmp_path, max_snapshots=3)
        snaps = [create_prophecy_snapshot(i, MarketFeatures(tvl=i), []) for i in range(1, 6)]
        store.save_prophecy_snapshots(snaps)
        assert [s.cycle for s in store.load_prophecy_snapshots()] == [3, 4, 5]

    def test_snapshot_bad_items_skipped(self, store):
        store.save_prophecy_snapshots([create_prophecy_snapshot(1, MarketFeatures(), [])])
        path = store.data_dir / PROPHECY_SNAPSHOTS_FILE
        path.write_text(json.dumps(json.loads(path.read_text()) + [{"cycle": "soon"}]))
        assert [s.cycle for s in store.load_prophecy_snapshots()] == [1]

    def test_prophecy_stats(self, store):
        store.save_prophecy_stats(ProphecyStats(total_evaluated=4, total_correct=3, overall_accuracy=0.75))
        loaded = store.load_prophecy_stats()
        assert (loaded.total_evaluated, loaded.total_correct) == (4, 3)
