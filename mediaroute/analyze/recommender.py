"""
mediaroute.analyze.recommender - Pipeline decision table.

Maps (has_audio_track, average_loudness, silence_ratio) to the cheapest
viable pipeline. First matching rule wins:

1. no audio, loudness at or below 0.01, or silence at or above 0.75 -> visual
2. loudness below 0.035 or silence above 0.45 -> hybrid
3. otherwise -> audio
"""

from __future__ import annotations

from enum import Enum

from mediaroute.config import RecommenderConfig


class Pipeline(str, Enum):
    AUDIO = "audio"
    HYBRID = "hybrid"
    VISUAL = "visual"


def recommend_pipeline(
    has_audio_track: bool,
    average_loudness: float,
    silence_ratio: float,
    config: RecommenderConfig | None = None,
) -> Pipeline:
    """Recommend a processing pipeline. Pure and deterministic."""
    config = config or RecommenderConfig()

    if (
        not has_audio_track
        or average_loudness <= config.visual_max_loudness
        or silence_ratio >= config.visual_min_silence
    ):
        return Pipeline.VISUAL

    if average_loudness < config.hybrid_max_loudness or silence_ratio > config.hybrid_min_silence:
        return Pipeline.HYBRID

    return Pipeline.AUDIO
