"""
Emotion State — the eight-channel affective vector and its transitions.

The state is a Plutchik wheel: eight primary categories, each an intensity
in [0, 1], arranged as four opposing pairs. Stimuli push one category up and
pull its opposite down. Time pulls every category back toward a resting
baseline. A slower "mood" vector trails the instantaneous emotions and is the
part of the state that represents temperament rather than reaction.

Every transition here is a pure function: it takes a state and returns a new
one. Nothing in this module touches disk, the clock (except to stamp
``last_updated``), or process-wide caches.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

if TYPE_CHECKING:
    from moodring.learning.weights import StrategyWeightKey

DECAY_RATE = 0.05  # per minute
BASELINE = 0.15
COMPOUND_THRESHOLD = 0.3
SUPPRESSION_RATIO = 0.5
MOOD_ALPHA_MIN = 0.05
MOOD_ALPHA_MAX = 0.2
INITIAL_ANTICIPATION = 0.30


class PrimaryEmotion(str, Enum):
    """The eight primary categories, in wheel (and tie-break) order."""

    JOY = "joy"
    TRUST = "trust"
    FEAR = "fear"
    SURPRISE = "surprise"
    SADNESS = "sadness"
    DISGUST = "disgust"
    ANGER = "anger"
    ANTICIPATION = "anticipation"


@dataclass(frozen=True)
class IntensityTier:
    mild: str  # <= 0.33
    moderate: str  # <= 0.66
    intense: str


INTENSITY_TIERS: dict[PrimaryEmotion, IntensityTier] = {
    PrimaryEmotion.JOY: IntensityTier("serenity", "joy", "ecstasy"),
    PrimaryEmotion.TRUST: IntensityTier("acceptance", "trust", "admiration"),
    PrimaryEmotion.FEAR: IntensityTier("apprehension", "fear", "terror"),
    PrimaryEmotion.SURPRISE: IntensityTier("distraction", "surprise", "amazement"),
    PrimaryEmotion.SADNESS: IntensityTier("pensiveness", "sadness", "grief"),
    PrimaryEmotion.DISGUST: IntensityTier("boredom", "disgust", "loathing"),
    PrimaryEmotion.ANGER: IntensityTier("annoyance", "anger", "rage"),
    PrimaryEmotion.ANTICIPATION: IntensityTier("interest", "anticipation", "vigilance"),
}

OPPOSITION_PAIRS: tuple[tuple[PrimaryEmotion, PrimaryEmotion], ...] = (
    (PrimaryEmotion.JOY, PrimaryEmotion.SADNESS),
    (PrimaryEmotion.TRUST, PrimaryEmotion.DISGUST),
    (PrimaryEmotion.FEAR, PrimaryEmotion.ANGER),
    (PrimaryEmotion.SURPRISE, PrimaryEmotion.ANTICIPATION),
)

_OPPOSITES: dict[PrimaryEmotion, PrimaryEmotion] = {}
for _a, _b in OPPOSITION_PAIRS:
    _OPPOSITES[_a] = _b
    _OPPOSITES[_b] = _a


@dataclass(frozen=True)
class Dyad:
    """A named compound that appears when two categories are both elevated."""

    a: PrimaryEmotion
    b: PrimaryEmotion
    name: str


# Adjacent categories on the wheel.
PRIMARY_DYADS: tuple[Dyad, ...] = (
    Dyad(PrimaryEmotion.JOY, PrimaryEmotion.TRUST, "Love"),
    Dyad(PrimaryEmotion.TRUST, PrimaryEmotion.FEAR, "Submission"),
    Dyad(PrimaryEmotion.FEAR, PrimaryEmotion.SURPRISE, "Awe"),
    Dyad(PrimaryEmotion.SURPRISE, PrimaryEmotion.SADNESS, "Disapproval"),
    Dyad(PrimaryEmotion.SADNESS, PrimaryEmotion.DISGUST, "Remorse"),
    Dyad(PrimaryEmotion.DISGUST, PrimaryEmotion.ANGER, "Contempt"),
    Dyad(PrimaryEmotion.ANGER, PrimaryEmotion.ANTICIPATION, "Aggressiveness"),
    Dyad(PrimaryEmotion.ANTICIPATION, PrimaryEmotion.JOY, "Optimism"),
)

# Categories two steps apart.
SECONDARY_DYADS: tuple[Dyad, ...] = (
    Dyad(PrimaryEmotion.JOY, PrimaryEmotion.FEAR, "Guilt"),
    Dyad(PrimaryEmotion.TRUST, PrimaryEmotion.SURPRISE, "Curiosity"),
    Dyad(PrimaryEmotion.FEAR, PrimaryEmotion.SADNESS, "Despair"),
    Dyad(PrimaryEmotion.SADNESS, PrimaryEmotion.ANGER, "Envy"),
    Dyad(PrimaryEmotion.DISGUST, PrimaryEmotion.ANTICIPATION, "Cynicism"),
    Dyad(PrimaryEmotion.ANGER, PrimaryEmotion.JOY, "Pride"),
    Dyad(PrimaryEmotion.ANTICIPATION, PrimaryEmotion.TRUST, "Hope"),
    Dyad(PrimaryEmotion.ANTICIPATION, PrimaryEmotion.FEAR, "Anxiety"),
)

EmotionVector = dict[PrimaryEmotion, float]


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _coerce_vector(raw: Any, default: float = BASELINE) -> EmotionVector:
    """Build a full, clamped vector from loosely-typed persisted data."""
    source = raw if isinstance(raw, Mapping) else {}
    vector: EmotionVector = {}
    for emotion in PrimaryEmotion:
        value = source.get(emotion.value, source.get(emotion, default))
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            numeric = default
        if not math.isfinite(numeric):
            numeric = default
        vector[emotion] = _clamp01(numeric)
    return vector


@dataclass(frozen=True)
class EmotionStimulus:
    """A single nudge toward one category."""

    emotion: PrimaryEmotion
    intensity: float
    source: str
    category: Optional[StrategyWeightKey] = None


@dataclass(frozen=True)
class EmotionInertia:
    """Resistance to leaving a dominant streak."""

    streak_emotion: PrimaryEmotion
    streak_length: int


@dataclass
class EmotionState:
    """
    Complete snapshot of the affective vector at one moment.

    ``compounds``, ``dominant`` and ``dominant_label`` are derived from
    ``emotions``; the transition functions recompute them on every change so
    they never drift from the vector they describe.
    """

    emotions: EmotionVector = field(default_factory=lambda: _coerce_vector({}))
    mood: EmotionVector = field(default_factory=lambda: _coerce_vector({}))
    compounds: tuple[str, ...] = ()
    dominant: PrimaryEmotion = PrimaryEmotion.ANTICIPATION
    dominant_label: str = "interest"
    trigger: str = ""
    last_updated: float = field(default_factory=time.time)

    def intensity(self, emotion: PrimaryEmotion) -> float:
        return self.emotions[emotion]

    def to_prompt_fragment(self) -> str:
        """Describe the current feeling in words for downstream text generation."""
        lines = ["Current emotional state:"]
        ranked = sorted(self.emotions.items(), key=lambda kv: kv[1], reverse=True)
        dormant: list[str] = []
        for emotion, value in ranked:
            if value < 0.10:
                dormant.append(emotion.value)
                continue
            label = intensity_label(emotion, value)
            lines.append(f"  {emotion.value}: {_intensity_bucket(value)} ({label})")
        if dormant:
            lines.append(f"  dormant: {', '.join(dormant)}")
        if self.compounds:
            lines.append(f"Compound emotions: {', '.join(self.compounds)}")
        lines.append(f"Dominant feeling: {self.dominant_label} ({self.dominant.value})")
        lines.append(f"What triggered it: {self.trigger}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage."""
        return {
            "emotions": {e.value: v for e, v in self.emotions.items()},
            "mood": {e.value: v for e, v in self.mood.items()},
            "compounds": list(self.compounds),
            "dominant": self.dominant.value,
            "dominantLabel": self.dominant_label,
            "trigger": self.trigger,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EmotionState:
        """Rebuild a state from persisted data.

        Only the vectors, trigger and timestamp are trusted; everything
        derived is recomputed so a hand-edited or stale file cannot break the
        dominant/compound invariants.
        """
        emotions = _coerce_vector(data.get("emotions"))
        mood = _coerce_vector(data.get("mood"), default=BASELINE)
        if not isinstance(data.get("mood"), Mapping):
            mood = dict(emotions)
        try:
            last_updated = float(data.get("lastUpdated", data.get("last_updated", time.time())))
        except (TypeError, ValueError):
            last_updated = time.time()
        if not math.isfinite(last_updated):
            last_updated = time.time()
        state = cls(
            emotions=emotions,
            mood=mood,
            trigger=str(data.get("trigger", "")),
            last_updated=last_updated,
        )
        return _with_derived(state, emotions)


def _intensity_bucket(value: float) -> str:
    if value < 0.10:
        return "barely there"
    if value < 0.25:
        return "faint"
    if value < 0.40:
        return "moderate"
    if value < 0.55:
        return "strong"
    if value < 0.70:
        return "intense"
    if value < 0.85:
        return "overwhelming"
    return "all-consuming"


def opposite_of(emotion: PrimaryEmotion) -> PrimaryEmotion:
    return _OPPOSITES[emotion]


def dominant_of(emotions: Mapping[PrimaryEmotion, float]) -> PrimaryEmotion:
    """argmax over the vector; ties go to the earlier category."""
    best = PrimaryEmotion.ANTICIPATION
    best_value = -1.0
    for emotion in PrimaryEmotion:
        if emotions[emotion] > best_value:
            best_value = emotions[emotion]
            best = emotion
    return best


def intensity_label(emotion: PrimaryEmotion, value: float) -> str:
    tier = INTENSITY_TIERS[emotion]
    if value <= 0.33:
        return tier.mild
    if value <= 0.66:
        return tier.moderate
    return tier.intense


def detect_compounds(emotions: Mapping[PrimaryEmotion, float]) -> tuple[str, ...]:
    """
    Return the names of every active dyad.

    A geometric mean lets one strong and one moderate category combine:
    joy=0.6 with trust=0.2 gives sqrt(0.12) ~ 0.346, enough for Love, where
    requiring both to clear 0.3 would not.
    """
    found: list[str] = []
    for dyad in PRIMARY_DYADS + SECONDARY_DYADS:
        if math.sqrt(emotions[dyad.a] * emotions[dyad.b]) >= COMPOUND_THRESHOLD:
            found.append(dyad.name)
    return tuple(found)


def inertia_factor(streak_length: int) -> float:
    """
    Dampening applied to stimuli that would end a dominant streak.

    Deliberately non-monotonic: resistance builds for the first eight cycles,
    then relaxes so a long streak can always be broken.
    """
    if streak_length < 3:
        return 1.0
    if streak_length <= 4:
        return 0.8
    if streak_length <= 6:
        return 0.7
    if streak_length <= 8:
        return 0.6
    if streak_length <= 12:
        return 0.75
    return 0.9


def _with_derived(state: EmotionState, emotions: EmotionVector, **changes: Any) -> EmotionState:
    dominant = dominant_of(emotions)
    return replace(
        state,
        emotions=emotions,
        compounds=detect_compounds(emotions),
        dominant=dominant,
        dominant_label=intensity_label(dominant, emotions[dominant]),
        **changes,
    )


def stimulate(
    state: EmotionState,
    stimuli: Iterable[EmotionStimulus],
    inertia: Optional[EmotionInertia] = None,
) -> EmotionState:
    """Apply a batch of stimuli, suppressing each target's opposite."""
    stimuli = list(stimuli)
    emotions = dict(state.emotions)

    factor = inertia_factor(inertia.streak_length) if inertia else 1.0
    streak_opposite = opposite_of(inertia.streak_emotion) if inertia else None

    for stimulus in stimuli:
        intensity = float(stimulus.intensity)
        if not math.isfinite(intensity) or intensity <= 0.0:
            continue

        if stimulus.emotion == streak_opposite:
            intensity *= factor

        emotions[stimulus.emotion] = min(1.0, emotions[stimulus.emotion] + intensity)

        opposite = opposite_of(stimulus.emotion)
        suppression = intensity * SUPPRESSION_RATIO
        if inertia and opposite == inertia.streak_emotion:
            suppression *= factor
        emotions[opposite] = max(0.0, emotions[opposite] - suppression)

    trigger = "; ".join(s.source for s in stimuli) if stimuli else state.trigger
    return _with_derived(state, emotions, trigger=trigger, last_updated=time.time())


def decay(state: EmotionState, minutes_elapsed: float) -> EmotionState:
    """Pull every category toward the baseline, exponentially in time."""
    minutes = max(0.0, float(minutes_elapsed)) if math.isfinite(minutes_elapsed) else 0.0
    factor = math.exp(-DECAY_RATE * minutes)
    emotions = {
        emotion: _clamp01(BASELINE + (value - BASELINE) * factor)
        for emotion, value in state.emotions.items()
    }
    return _with_derived(state, emotions)


def update_mood(state: EmotionState) -> EmotionState:
    """Move mood toward the current emotions; faster when they diverge more."""
    volatility = sum(abs(state.emotions[e] - state.mood[e]) for e in PrimaryEmotion) / len(
        PrimaryEmotion
    )
    alpha = MOOD_ALPHA_MIN + (MOOD_ALPHA_MAX - MOOD_ALPHA_MIN) * min(volatility * 3, 1.0)
    mood = {
        e: _clamp01(state.mood[e] * (1 - alpha) + state.emotions[e] * alpha)
        for e in PrimaryEmotion
    }
    return replace(state, mood=mood)


def create_default_state() -> EmotionState:
    """Baseline everywhere, with anticipation raised: curious at first waking."""
    emotions = {e: BASELINE for e in PrimaryEmotion}
    emotions[PrimaryEmotion.ANTICIPATION] = INITIAL_ANTICIPATION
    state = EmotionState(
        emotions=emotions,
        mood=dict(emotions),
        trigger="initial state - just woke up",
    )
    return _with_derived(state, emotions)
