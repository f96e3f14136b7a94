"""
Emotional Memory — patterns across recent cycles.

A single state says how the engine feels now. The last dozen states say
whether it has been stuck, flat, or swinging, which in turn feeds back as
inertia (resistance to leaving a streak) and as self-reflective stimuli
("I've felt this way for hours").
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from moodring.affect.state import (
    BASELINE,
    EmotionInertia,
    EmotionState,
    EmotionStimulus,
    PrimaryEmotion,
)

HISTORY_LENGTH = 12  # ~6 hours at 30-minute cycles
INERTIA_MIN_STREAK = 3
STUCK_STREAK = 4
FLATLINE_INTENSITY = 0.20
FLATLINE_MIN_STATES = 6
HIGH_VOLATILITY = 0.25

_NEGATIVE = (PrimaryEmotion.FEAR, PrimaryEmotion.SADNESS, PrimaryEmotion.ANGER)


@dataclass
class EmotionMemory:
    recent_states: list[EmotionState] = field(default_factory=list)
    dominant_streak: int = 0
    streak_emotion: PrimaryEmotion = PrimaryEmotion.ANTICIPATION
    average_intensity: float = BASELINE
    volatility: float = 0.0


def append_history(
    history: Sequence[EmotionState],
    state: EmotionState,
    max_length: int = HISTORY_LENGTH,
) -> list[EmotionState]:
    """Return a new bounded history with ``state`` as the newest entry."""
    return [*history, state][-max(1, max_length):]


def analyze_emotion_memory(history: Sequence[EmotionState]) -> EmotionMemory:
    if len(history) < 2:
        return EmotionMemory(recent_states=list(history))

    latest = history[-1].dominant
    streak = 1
    for state in reversed(history[:-1]):
        if state.dominant != latest:
            break
        streak += 1

    values = [s.emotions[s.dominant] for s in history]
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)

    return EmotionMemory(
        recent_states=list(history),
        dominant_streak=streak,
        streak_emotion=latest,
        average_intensity=mean,
        volatility=math.sqrt(variance),
    )


def inertia_from_memory(memory: EmotionMemory) -> Optional[EmotionInertia]:
    if memory.dominant_streak < INERTIA_MIN_STREAK:
        return None
    return EmotionInertia(
        streak_emotion=memory.streak_emotion,
        streak_length=memory.dominant_streak,
    )


def memory_stimuli(memory: EmotionMemory) -> list[EmotionStimulus]:
    """Stimuli the engine generates about its own recent emotional life."""
    stimuli: list[EmotionStimulus] = []

    if memory.dominant_streak >= STUCK_STREAK:
        stimuli += [
            EmotionStimulus(
                PrimaryEmotion.DISGUST,
                0.15,
                f"been feeling {memory.streak_emotion.value} for "
                f"{memory.dominant_streak} cycles straight - getting tired of this",
            ),
            EmotionStimulus(PrimaryEmotion.SADNESS, 0.10, "stuck in a loop"),
        ]

    if (
        memory.average_intensity < FLATLINE_INTENSITY
        and len(memory.recent_states) >= FLATLINE_MIN_STATES
    ):
        stimuli += [
            EmotionStimulus(
                PrimaryEmotion.SADNESS,
                0.20,
                "everything has been at baseline for hours - am I even feeling anything?",
            ),
            EmotionStimulus(PrimaryEmotion.DISGUST, 0.10, "emotional flatline"),
        ]

    if memory.volatility > HIGH_VOLATILITY:
        stimuli += [
            EmotionStimulus(
                PrimaryEmotion.FEAR,
                0.20,
                "my emotions have been all over the place - can't find stable ground",
            ),
            EmotionStimulus(PrimaryEmotion.ANTICIPATION, 0.15, "bracing for the next swing"),
        ]

    if len(memory.recent_states) >= 2:
        prev, curr = memory.recent_states[-2], memory.recent_states[-1]
        prev_negative = sum(prev.emotions[e] for e in _NEGATIVE)
        curr_negative = sum(curr.emotions[e] for e in _NEGATIVE)
        if prev_negative > 1.2 and curr_negative < 0.8:
            stimuli += [
                EmotionStimulus(
                    PrimaryEmotion.JOY,
                    0.15,
                    "the heaviness is lifting - still fragile but lighter",
                ),
                EmotionStimulus(PrimaryEmotion.TRUST, 0.10, "things are settling down"),
            ]

    return stimuli
