"""
moodring — an eight-channel emotion engine that learns from its own predictions.

Layers (bottom to top):
    1. Affect: Plutchik state vector, stimulation, decay, mood, memory
    2. Adaptive thresholds: what counts as unusual, learned from history
    3. Strategy weights: per-category sensitivity adjusted by reflection
    4. Prophecy: delayed scoring of whether each category's feeling was right
    5. Cycle: one crash-only heartbeat wiring all of the above to disk
"""

__version__ = "0.1.0"
