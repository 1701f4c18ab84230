"""
mediaroute.analyze.sampler - Multi-point loudness sampling.

Plays a few short stretches of the file at accelerated speed and polls the
time-domain window at the play head. Positions are visited strictly one after
another because the session has a single playback cursor.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import numpy as np

from mediaroute.analyze.detector import DetectionState, combine, detect_audio_track
from mediaroute.config import SamplingConfig
from mediaroute.exceptions import SamplingTimeout
from mediaroute.logging import logger
from mediaroute.media.session import MediaSession


@dataclass(frozen=True)
class SamplingPlan:
    """Where to sample and how fast to play."""

    positions: tuple[float, ...]
    window_seconds: float
    playback_rate: float
    duration: float

    @property
    def segment_seconds(self) -> float:
        if not self.positions:
            return 0.0
        return self.window_seconds / len(self.positions)

    def segment_start(self, position: float) -> float:
        """Centre a segment on position, kept inside the file."""
        segment = self.segment_seconds
        return max(0.0, min(self.duration - segment, position - segment / 2))


@dataclass
class SamplingRun:
    """Raw output of a sampling pass."""

    amplitudes: list[float] = field(default_factory=list)
    peak: float = 0.0
    detection: DetectionState = DetectionState.UNKNOWN
    positions_attempted: int = 0
    positions_sampled: int = 0
    sampled_seconds: float = 0.0


def plan_sampling(duration: float, config: SamplingConfig) -> SamplingPlan:
    """Pick sample positions, total budget and playback rate for a file.

    Short files are sampled once at the midpoint, medium files at 30% and
    60%, long files at 25%, 50% and 75%. Longer files get a larger budget
    and a faster playback rate.
    """
    short_rate, medium_rate, long_rate = config.playback_rates

    if duration > config.long_file_seconds:
        budget = min(config.long_budget_seconds, duration * config.long_budget_fraction)
        fractions = (0.25, 0.50, 0.75)
        rate = long_rate
    elif duration > config.medium_file_seconds:
        budget = min(config.medium_budget_seconds, duration * config.medium_budget_fraction)
        fractions = (0.30, 0.60)
        rate = medium_rate
    else:
        budget = config.max_analysis_seconds
        fractions = (0.50,)
        rate = short_rate

    window = min(max(duration, 0.0), budget)
    if window <= 0:
        return SamplingPlan(positions=(), window_seconds=0.0, playback_rate=rate, duration=duration)

    return SamplingPlan(
        positions=tuple(duration * f for f in fractions),
        window_seconds=window,
        playback_rate=rate,
        duration=duration,
    )


async def _poll_position(
    session: MediaSession,
    start: float,
    plan: SamplingPlan,
    config: SamplingConfig,
) -> tuple[list[float], float]:
    """Seek, play and poll one segment. Returns (per-poll averages, peak)."""
    await session.seek(start)
    if not await session.wait_for("seeked", config.seek_timeout):
        logger.debug("Seek to %.1fs not confirmed, continuing", start)

    await session.play(plan.playback_rate)
    if not await session.wait_for("playing", config.play_timeout):
        logger.debug("Playback at %.1fs not confirmed, continuing", start)

    loop = asyncio.get_running_loop()
    wall_clock_limit = plan.segment_seconds / plan.playback_rate
    started = loop.time()

    amplitudes: list[float] = []
    peak = 0.0
    while (
        loop.time() - started < wall_clock_limit
        and not session.ended
        and session.current_time < session.duration
    ):
        window = session.time_domain_data(config.fft_size)
        if window is not None and len(window) > 0:
            magnitude = np.abs(np.clip(window, -1.0, 1.0))
            amplitudes.append(float(magnitude.mean()))
            peak = max(peak, float(magnitude.max()))
        await asyncio.sleep(config.poll_interval)

    return amplitudes, peak


async def sample_audio(
    session: MediaSession,
    plan: SamplingPlan,
    detection: DetectionState,
    config: SamplingConfig,
) -> SamplingRun:
    """Sample loudness at every planned position.

    A position that stalls or fails contributes no samples; it is not
    retried. The detector is re-run after each position while decoded data
    is still buffered.

    Args:
        session: Loaded media session
        plan: Output of plan_sampling()
        detection: Detection state from the pre-data probe
        config: Sampling configuration

    Returns:
        SamplingRun with the flat amplitude sequence and merged detection
    """
    run = SamplingRun(detection=detection)
    wall_clock_limit = plan.segment_seconds / plan.playback_rate if plan.positions else 0.0
    deadline = (
        config.seek_timeout
        + config.play_timeout
        + wall_clock_limit
        + config.poll_interval
        + config.position_grace_seconds
    )

    for index, position in enumerate(plan.positions):
        start = plan.segment_start(position)
        run.positions_attempted += 1

        try:
            try:
                amplitudes, peak = await asyncio.wait_for(
                    _poll_position(session, start, plan, config), deadline
                )
            except asyncio.TimeoutError:
                raise SamplingTimeout(start, deadline) from None

            run.detection = combine(run.detection, detect_audio_track(session.detection_signals()))
        except SamplingTimeout as e:
            logger.warning("%s; position contributes no samples", e)
            amplitudes, peak = [], 0.0
        except Exception as e:
            logger.warning("Sampling at %.1fs failed: %s", start, e)
            amplitudes, peak = [], 0.0
        finally:
            try:
                await session.pause()
            except Exception as e:
                logger.debug("Pause after %.1fs failed: %s", start, e)

        if amplitudes:
            run.amplitudes.extend(amplitudes)
            run.peak = max(run.peak, peak)
            run.positions_sampled += 1

        logger.debug(
            "Position %d/%d at %.1fs: %d polls, peak %.4f",
            index + 1,
            len(plan.positions),
            start,
            len(amplitudes),
            peak,
        )

        if index < len(plan.positions) - 1 and config.settle_interval > 0:
            await asyncio.sleep(config.settle_interval)

    run.sampled_seconds = min(plan.window_seconds, plan.segment_seconds * run.positions_sampled)
    return run
