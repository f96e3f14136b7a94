"""Tests for moodring.config — environment-driven settings with normalization."""

from __future__ import annotations

from pathlib import Path

from moodring.config import EngineConfig, LearningConfig, MoodringConfig


class TestEngineConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MOODRING_DATA_DIR", raising=False)
        cfg = EngineConfig()
        assert cfg.data_dir == Path("./moodring_data")
        assert cfg.history_length == 12
        assert cfg.max_decay_minutes == 1440.0

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MOODRING_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("MOODRING_HISTORY_LENGTH", "24")
        cfg = EngineConfig()
        assert cfg.data_dir == tmp_path
        assert cfg.history_length == 24

    def test_normalizes(self):
        cfg = EngineConfig(history_length=-5, max_decay_minutes=-1)
        assert cfg.history_length == 2
        assert cfg.max_decay_minutes == 0.0


class TestLearningConfig:
    def test_defaults(self):
        cfg = LearningConfig()
        assert cfg.weight_decay_rate == 0.005
        assert cfg.max_adjustments_per_batch == 3
        assert cfg.evaluation_delay == 48
        assert cfg.max_snapshots == 96
        assert cfg.max_recent_evaluations == 50
        assert cfg.weight_history_entries == 1000

    def test_snapshots_outlive_delay(self):
        cfg = LearningConfig(evaluation_delay=10, max_snapshots=3)
        assert cfg.max_snapshots == 11

    def test_clamps(self):
        cfg = LearningConfig(weight_decay_rate=4, max_adjustments_per_batch=-1, evaluation_delay=0)
        assert cfg.weight_decay_rate == 1.0
        assert cfg.max_adjustments_per_batch == 0
        assert cfg.evaluation_delay == 1

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MOODRING_EVALUATION_DELAY", "6")
        assert LearningConfig().evaluation_delay == 6


class TestMoodringConfig:
    def test_groups_subsystems(self, tmp_path):
        cfg = MoodringConfig(engine={"data_dir": tmp_path}, learning={"evaluation_delay": 4})
        assert cfg.data_dir == tmp_path
        assert cfg.learning.evaluation_delay == 4
        assert "evaluation_delay=4" in repr(cfg)

    def test_expands_user(self):
        cfg = MoodringConfig(engine={"data_dir": "~/moods"})
        assert "~" not in str(cfg.data_dir)
