"""Affective system — the emotion vector and its memory."""
from moodring.affect.memory import EmotionMemory, analyze_emotion_memory
from moodring.affect.state import (
    EmotionInertia,
    EmotionState,
    EmotionStimulus,
    PrimaryEmotion,
    create_default_state,
    decay,
    stimulate,
    update_mood,
)

__all__ = [
    "EmotionMemory",
    "analyze_emotion_memory",
    "EmotionInertia",
    "EmotionState",
    "EmotionStimulus",
    "PrimaryEmotion",
    "create_default_state",
    "decay",
    "stimulate",
    "update_mood",
]
