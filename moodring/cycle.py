"""
EmotionCycle — one heartbeat of the engine, from observations to feelings.

A cycle is short-lived and crash-only: it loads every piece of state from the
data directory, runs the full pipeline, writes everything back, and keeps
nothing in memory afterwards. If the process dies mid-cycle the previous
files are still intact and the next run simply starts over.

Order of operations inside ``run``:

1. fold observations into the rolling averages and derive thresholds
2. decay strategy weights, then apply any weight adjustments
3. scale the incoming stimuli by their category weights
4. decay the emotion vector for the time elapsed since the last cycle
5. read inertia and self-reflective stimuli from emotional memory
6. stimulate, update mood, append to memory
7. snapshot the cycle for the prophecy tracker and score old snapshots
8. persist, then append the weight changes to the history log
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional

import structlog
from pydantic import ValidationError

from moodring.adaptive import (
    AdaptiveThresholds,
    compute_adaptive_thresholds,
    update_rolling_averages,
)
from moodring.affect.diagnostics import EmotionDiagnostics, build_diagnostics
from moodring.affect.memory import (
    analyze_emotion_memory,
    append_history,
    inertia_from_memory,
    memory_stimuli,
)
from moodring.affect.state import (
    EmotionState,
    EmotionStimulus,
    PrimaryEmotion,
    decay,
    stimulate,
    update_mood,
)
from moodring.config import MoodringConfig
from moodring.learning.history import ChangeType
from moodring.learning.prophecy import (
    MarketFeatures,
    ProphecyEvaluation,
    ProphecyStats,
    create_prophecy_snapshot,
    evaluate_prophecy,
    format_prophecy_report,
    pending_evaluations,
    update_prophecy_stats,
)
from moodring.learning.weights import (
    AdjustmentInput,
    StrategyWeightKey,
    StrategyWeights,
    WeightAdjustmentResult,
    apply_strategy_weights,
    apply_weight_adjustments,
    decay_weights,
    parse_weight_adjustments,
)
from moodring.persistence import dump_model
from moodring.store import StateStore

logger = structlog.get_logger(__name__)


def _parse_stimulus(item: Any) -> Optional[EmotionStimulus]:
    if not isinstance(item, Mapping):
        return None
    try:
        emotion = PrimaryEmotion(str(item.get("emotion", "")).lower())
        intensity = float(item.get("intensity", 0.0))
    except (TypeError, ValueError):
        return None
    return EmotionStimulus(
        emotion=emotion,
        intensity=intensity,
        source=str(item.get("source", "")),
        category=StrategyWeightKey.parse(item.get("category")) if item.get("category") else None,
    )


@dataclass
class CycleInputs:
    """Everything the outside world hands to one cycle."""

    stimuli: list[EmotionStimulus] = field(default_factory=list)
    observations: dict[str, Any] = field(default_factory=dict)
    market: Optional[MarketFeatures] = None
    adjustments: list[AdjustmentInput] = field(default_factory=list)
    adjustment_source: ChangeType = "reflection"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CycleInputs:
        """Build inputs from decoded JSON, dropping malformed items one by one."""
        stimuli: list[EmotionStimulus] = []
        for item in data.get("stimuli") or []:
            stimulus = _parse_stimulus(item)
            if stimulus is None:
                logger.debug("cycle.stimulus_dropped", item=repr(item)[:80])
                continue
            stimuli.append(stimulus)

        observations = data.get("observations")
        market: Optional[MarketFeatures] = None
        raw_market = data.get("market")
        if isinstance(raw_market, Mapping):
            try:
                market = MarketFeatures.model_validate(dict(raw_market))
            except ValidationError:
                logger.warning("cycle.market_invalid", exc_info=True)

        source = data.get("adjustmentSource", "reflection")
        return cls(
            stimuli=stimuli,
            observations=dict(observations) if isinstance(observations, Mapping) else {},
            market=market,
            adjustments=list(parse_weight_adjustments(data.get("weightAdjustments") or [])),
            adjustment_source=source if source in ("reflection", "prophecy") else "reflection",
        )


@dataclass
class CycleResult:
    """What one cycle produced. Thresholds are meant for the next cycle's producers."""

    cycle: int
    state: EmotionState
    thresholds: AdaptiveThresholds
    weights: StrategyWeights
    adjustments: list[WeightAdjustmentResult]
    evaluations: list[ProphecyEvaluation]
    prophecy_stats: ProphecyStats
    diagnostics: EmotionDiagnostics
    stimuli: list[EmotionStimulus] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "state": self.state.to_dict(),
            "thresholds": dump_model(self.thresholds),
            "weights": dump_model(self.weights),
            "adjustments": [dump_model(a) for a in self.adjustments],
            "evaluations": [dump_model(e) for e in self.evaluations],
            "prophecyStats": {
                "totalEvaluated": self.prophecy_stats.total_evaluated,
                "totalCorrect": self.prophecy_stats.total_correct,
                "overallAccuracy": self.prophecy_stats.overall_accuracy,
            },
            "diagnostics": self.diagnostics.report,
        }


class EmotionCycle:
    """Runs cycles against a :class:`StateStore` under a :class:`MoodringConfig`."""

    def __init__(
        self,
        config: Optional[MoodringConfig] = None,
        store: Optional[StateStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or MoodringConfig()
        learning = self._config.learning
        self._store = store or StateStore(
            self._config.data_dir,
            max_snapshots=learning.max_snapshots,
            weight_history_entries=learning.weight_history_entries,
        )
        self._clock = clock

    @property
    def store(self) -> StateStore:
        return self._store

    def run(self, inputs: Optional[CycleInputs] = None) -> CycleResult:
        inputs = inputs or CycleInputs()
        engine, learning = self._config.engine, self._config.learning
        store = self._store
        now = self._clock()

        state = store.load_emotion_state()
        history = store.load_emotion_history()
        averages = store.load_rolling_averages()
        sw = store.load_strategy_weights()
        snapshots = store.load_prophecy_snapshots()
        stats = store.load_prophecy_stats()

        averages = update_rolling_averages(averages, inputs.observations)
        cycle = averages.cycles_tracked
        thresholds = compute_adaptive_thresholds(averages)

        before_decay = sw.snapshot()
        decay_weights(sw, learning.weight_decay_rate)
        after_decay = sw.snapshot()

        batch = list(inputs.adjustments)[: learning.max_adjustments_per_batch]
        adjustments = apply_weight_adjustments(sw, batch)

        weighted = apply_strategy_weights(inputs.stimuli, sw)

        before = dict(state.emotions)
        elapsed = min(engine.max_decay_minutes, max(0.0, (now - state.last_updated) / 60.0))
        state = decay(state, elapsed)

        memory = analyze_emotion_memory(history)
        inertia = inertia_from_memory(memory)
        stimuli = weighted + memory_stimuli(memory)
        state = stimulate(state, stimuli, inertia)
        state = replace(update_mood(state), last_updated=now)
        history = append_history(history, state, engine.history_length)

        evaluations: list[ProphecyEvaluation] = []
        if inputs.market is not None:
            snapshot = create_prophecy_snapshot(cycle, inputs.market, weighted)
            snapshot.timestamp = now
            for pending in pending_evaluations(snapshots, cycle, learning.evaluation_delay):
                evaluation = evaluate_prophecy(pending, inputs.market, cycle)
                pending.evaluated = True
                update_prophecy_stats(stats, evaluation, learning.max_recent_evaluations)
                evaluations.append(evaluation)
            snapshots.append(snapshot)
        else:
            logger.debug("cycle.prophecy_skipped", cycle=cycle, reason="no_market_features")

        diagnostics = build_diagnostics(
            before,
            state,
            stimuli,
            sw,
            analyze_emotion_memory(history),
            prophecy_summary=format_prophecy_report(stats) if stats.total_evaluated else None,
        )

        store.save_rolling_averages(averages)
        store.save_strategy_weights(sw)
        store.save_emotion_state(state)
        store.save_emotion_history(history)
        store.save_prophecy_snapshots(snapshots)
        store.save_prophecy_stats(stats)

        # The audit log only describes weights that reached disk.
        store.weight_history.record_decay(cycle, before_decay, after_decay)
        store.weight_history.record_adjustments(
            cycle, inputs.adjustment_source, adjustments, sw.snapshot()
        )

        logger.info(
            "cycle.completed",
            cycle=cycle,
            dominant=state.dominant.value,
            label=state.dominant_label,
            stimuli=len(stimuli),
            adjustments=len(adjustments),
            evaluations=len(evaluations),
            inertia=inertia.streak_length if inertia else 0,
        )

        return CycleResult(
            cycle=cycle,
            state=state,
            thresholds=thresholds,
            weights=sw,
            adjustments=adjustments,
            evaluations=evaluations,
            prophecy_stats=stats,
            diagnostics=diagnostics,
            stimuli=stimuli,
        )
