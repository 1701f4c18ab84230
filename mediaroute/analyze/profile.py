"""
mediaroute.analyze.profile - Video metadata profiling.

Runs the analysis stages in order: load metadata, probe for an audio track,
sample loudness at a few positions, classify, reconcile and recommend. Only
metadata loading is fatal; every later stage degrades to partial data.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mediaroute.analyze.classifier import (
    LoudnessSummary,
    reconcile_audio_track,
    summarize_loudness,
)
from mediaroute.analyze.detector import detect_audio_track
from mediaroute.analyze.recommender import Pipeline, recommend_pipeline
from mediaroute.analyze.sampler import SamplingRun, plan_sampling, sample_audio
from mediaroute.config import DEFAULT_CONFIG, AnalysisConfig, RecommenderConfig
from mediaroute.logging import logger
from mediaroute.media.session import MediaSession, open_media
from mediaroute.utils import format_duration


class VideoMetadataProfile(BaseModel):
    """Per-file audio profile and routing decision."""

    model_config = ConfigDict(frozen=True)

    duration: float = Field(ge=0.0)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    has_audio_track: bool
    average_loudness: float = Field(ge=0.0, le=1.0)
    peak_loudness: float = Field(ge=0.0, le=1.0)
    silence_ratio: float = Field(ge=0.0, le=1.0)
    recommended_pipeline: Pipeline
    sampled_window_seconds: float = Field(default=0.0, ge=0.0)
    sample_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_invariants(self) -> VideoMetadataProfile:
        if self.sampled_window_seconds > self.duration:
            raise ValueError("sampled_window_seconds cannot exceed duration")
        if self.average_loudness > self.peak_loudness:
            raise ValueError("average_loudness cannot exceed peak_loudness")
        return self

    @classmethod
    def from_measurements(
        cls,
        duration: float,
        width: int,
        height: int,
        has_audio_track: bool,
        summary: LoudnessSummary,
        sampled_window_seconds: float,
        recommender: RecommenderConfig | None = None,
    ) -> VideoMetadataProfile:
        """Build a profile, deriving the pipeline from the measurements."""
        return cls(
            duration=duration,
            width=width,
            height=height,
            has_audio_track=has_audio_track,
            average_loudness=summary.average_loudness,
            peak_loudness=summary.peak_loudness,
            silence_ratio=summary.silence_ratio,
            recommended_pipeline=recommend_pipeline(
                has_audio_track,
                summary.average_loudness,
                summary.silence_ratio,
                recommender,
            ),
            sampled_window_seconds=min(sampled_window_seconds, duration),
            sample_count=summary.sample_count,
        )


async def analyze_video_metadata(
    source: Any,
    config: AnalysisConfig | None = None,
    max_analysis_seconds: float | None = None,
    session_factory: Callable[[Any], MediaSession] | None = None,
) -> VideoMetadataProfile:
    """Profile a video's audio without decoding the whole file.

    Args:
        source: Video bytes or a binary file object
        config: Analysis thresholds (defaults to DEFAULT_CONFIG)
        max_analysis_seconds: Override the sampling budget for short files
        session_factory: Builds the decode session; FFmpeg by default

    Returns:
        VideoMetadataProfile

    Raises:
        MetadataLoadError: If container metadata cannot be read
    """
    config = config or DEFAULT_CONFIG
    sampling = config.sampling
    if max_analysis_seconds is not None:
        sampling = sampling.model_copy(update={"max_analysis_seconds": max_analysis_seconds})

    async with open_media(source, session_factory, sampling.metadata_timeout) as session:
        duration = session.duration
        detection = detect_audio_track(session.detection_signals())
        logger.debug("Pre-data audio detection: %s", detection.value)

        plan = plan_sampling(duration, sampling)
        try:
            run = await sample_audio(session, plan, detection, sampling)
        except Exception as e:
            logger.warning("Audio analysis failed, keeping prior detection: %s", e)
            run = SamplingRun(detection=detection)

        summary = summarize_loudness(run.amplitudes, run.peak, config.classifier)
        has_audio = reconcile_audio_track(run.detection, summary, duration, config.classifier)

        profile = VideoMetadataProfile.from_measurements(
            duration=duration,
            width=session.width,
            height=session.height,
            has_audio_track=has_audio,
            summary=summary,
            sampled_window_seconds=run.sampled_seconds,
            recommender=config.recommender,
        )

    logger.info(
        "Audio analysis: %d samples from %d/%d positions, avg %.4f, peak %.4f, "
        "threshold %.4f, silence %.1f%%, detection %s, pipeline %s",
        summary.sample_count,
        run.positions_sampled,
        run.positions_attempted,
        summary.average_loudness,
        summary.peak_loudness,
        summary.silence_threshold,
        summary.silence_ratio * 100,
        run.detection.value,
        profile.recommended_pipeline.value,
    )
    return profile


def profile_video(
    source: Any,
    config: AnalysisConfig | None = None,
    max_analysis_seconds: float | None = None,
    session_factory: Callable[[Any], MediaSession] | None = None,
) -> VideoMetadataProfile:
    """Synchronous wrapper around analyze_video_metadata()."""
    return asyncio.run(
        analyze_video_metadata(
            source,
            config=config,
            max_analysis_seconds=max_analysis_seconds,
            session_factory=session_factory,
        )
    )


def resolve_pipeline(profile: VideoMetadataProfile | None) -> Pipeline:
    """Pipeline to route to, given a profile that may have failed.

    A missing profile routes to audio. A profile that presumes audio but
    never got any loudness data routes to hybrid rather than visual, so a
    stalled analysis does not silently discard usable speech.
    """
    if profile is None:
        return Pipeline.AUDIO
    if profile.has_audio_track and profile.sample_count == 0:
        return Pipeline.HYBRID
    return profile.recommended_pipeline


def describe_profile(profile: VideoMetadataProfile) -> str:
    """One-line human-readable summary of a profile."""
    loudness = f"{profile.average_loudness:.3f}"
    silence = f"{round(profile.silence_ratio * 100)}%"
    duration_text = format_duration(profile.duration)

    return (
        f"Duration: {duration_text}, Avg Loudness: {loudness}, "
        f"Silence Ratio: {silence}, Pipeline: {profile.recommended_pipeline.value}"
    )
