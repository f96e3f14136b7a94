"""Per-cycle diagnostics: what moved, what is dead, what is stacking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from moodring.affect.memory import EmotionMemory
from moodring.affect.state import EmotionState, EmotionStimulus, PrimaryEmotion
from moodring.learning.weights import StrategyWeights

DEAD_THRESHOLD = 0.10
DEAD_MIN_CYCLES = 4
STACKING_ALERT_THRESHOLD = 0.8
TOP_STIMULI = 8


@dataclass
class DeadEmotion:
    emotion: PrimaryEmotion
    value: float
    dead_cycles: int


@dataclass
class StackingAlert:
    emotion: PrimaryEmotion
    source_count: int
    total_intensity: float


@dataclass
class EmotionDiagnostics:
    report: str
    dead_emotions: list[DeadEmotion] = field(default_factory=list)
    stacking_alerts: list[StackingAlert] = field(default_factory=list)
    dominant_streak: int = 0
    streak_emotion: PrimaryEmotion = PrimaryEmotion.ANTICIPATION


def _count_dead_cycles(history: Sequence[EmotionState], emotion: PrimaryEmotion) -> int:
    count = 0
    for state in reversed(history):
        if state.emotions[emotion] >= DEAD_THRESHOLD:
            break
        count += 1
    return count


def build_diagnostics(
    before: Mapping[PrimaryEmotion, float],
    after: EmotionState,
    stimuli: Sequence[EmotionStimulus],
    weights: StrategyWeights,
    memory: EmotionMemory,
    prophecy_summary: Optional[str] = None,
) -> EmotionDiagnostics:
    lines = ["EMOTION DIAGNOSTICS", "", "Before -> After (this cycle):"]
    for emotion in PrimaryEmotion:
        b, a = before[emotion], after.emotions[emotion]
        delta = a - b
        arrow = "up" if delta > 0.01 else "down" if delta < -0.01 else "."
        marker = "  <- DOMINANT" if emotion == after.dominant else ""
        lines.append(f"  {emotion.value:<13} {b:.2f} -> {a:.2f}  ({delta:+.2f}) {arrow}{marker}")

    dead: list[DeadEmotion] = []
    if len(memory.recent_states) >= DEAD_MIN_CYCLES:
        for emotion in PrimaryEmotion:
            cycles = _count_dead_cycles(memory.recent_states, emotion)
            if cycles >= DEAD_MIN_CYCLES:
                dead.append(DeadEmotion(emotion, after.emotions[emotion], cycles))
    if dead:
        lines += ["", f"Dead emotions (below {DEAD_THRESHOLD:.2f} for {DEAD_MIN_CYCLES}+ cycles):"]
        lines += [f"  {d.emotion.value}: {d.value:.2f} for {d.dead_cycles} cycles" for d in dead]

    load: dict[PrimaryEmotion, list[float]] = {}
    for s in stimuli:
        load.setdefault(s.emotion, []).append(s.intensity)
    alerts: list[StackingAlert] = []
    lines += ["", "Stimulus load per emotion:"]
    for emotion, values in sorted(load.items(), key=lambda kv: sum(kv[1]), reverse=True):
        total = sum(values)
        stacking = total >= STACKING_ALERT_THRESHOLD
        plural = "s" if len(values) > 1 else ""
        flag = "  STACKING" if stacking else ""
        lines.append(f"  {emotion.value}: {len(values)} source{plural}, total intensity {total:.2f}{flag}")
        if stacking:
            alerts.append(StackingAlert(emotion, len(values), total))

    top = sorted(stimuli, key=lambda s: s.intensity, reverse=True)[:TOP_STIMULI]
    if top:
        lines += ["", "Top stimuli (by intensity):"]
        for i, s in enumerate(top, 1):
            lines.append(
                f"  {i}. {s.source} -> {s.emotion.value} +{s.intensity * 100:.0f}% "
                f"(weight: {weights.get(s.category):.2f})"
            )

    plural = "s" if memory.dominant_streak != 1 else ""
    lines += [
        "",
        f"Dominance: {memory.streak_emotion.value} for {memory.dominant_streak} consecutive cycle{plural}",
    ]
    if memory.volatility > 0:
        lines.append(f"Volatility: {memory.volatility:.3f}")

    adjusted = sorted(
        ((k, v) for k, v in weights.weights.items() if abs(v - 1.0) > 0.01),
        key=lambda kv: abs(kv[1] - 1.0),
        reverse=True,
    )
    lines.append("")
    if adjusted:
        lines.append("Adjusted weights (non-default):")
        for key, value in adjusted:
            lines.append(f"  {key.value}: {value:.2f} ({'amplified' if value > 1.0 else 'dampened'})")
    else:
        lines.append("All weights at default (1.00)")

    if prophecy_summary:
        lines += ["", prophecy_summary]

    return EmotionDiagnostics(
        report="\n".join(lines),
        dead_emotions=dead,
        stacking_alerts=alerts,
        dominant_streak=memory.dominant_streak,
        streak_emotion=memory.streak_emotion,
    )
