"""
mediaroute.analyze.classifier - Loudness and silence classification.

Reduces the sampler's per-poll amplitudes to average and peak loudness and a
silence ratio. The silence threshold is derived from each file's own
amplitude distribution rather than fixed, so quiet dialogue is not counted as
silence and steady background hum is not counted as speech.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from mediaroute.analyze.detector import DetectionState
from mediaroute.config import ClassifierConfig


@dataclass(frozen=True)
class LoudnessSummary:
    average_loudness: float
    peak_loudness: float
    silence_ratio: float
    silence_threshold: float
    sample_count: int


def adaptive_silence_threshold(sorted_samples: np.ndarray, config: ClassifierConfig) -> float:
    """Threshold from the median and first quartile of sorted amplitudes.

    threshold = max(floor, median * median_factor, q1 * q1_factor)
    """
    n = len(sorted_samples)
    if n == 0:
        return config.silence_floor

    median = float(sorted_samples[n // 2])
    q1 = float(sorted_samples[int(n * 0.25)])
    return max(config.silence_floor, max(median * config.median_factor, q1 * config.q1_factor))


def summarize_loudness(
    samples: Sequence[float],
    peak: float,
    config: ClassifierConfig,
) -> LoudnessSummary:
    """Compute average, peak and silence ratio for a run of amplitude samples.

    Args:
        samples: Mean absolute amplitude per poll, each in [0, 1]
        peak: Running maximum amplitude reported by the sampler
        config: Classifier thresholds

    Returns:
        LoudnessSummary. With no samples, loudness is 0 and the file is
        treated as entirely silent.
    """
    values = np.clip(np.asarray(samples, dtype=np.float64), 0.0, 1.0)

    if len(values) == 0:
        return LoudnessSummary(
            average_loudness=0.0,
            peak_loudness=float(np.clip(peak, 0.0, 1.0)),
            silence_ratio=1.0,
            silence_threshold=config.silence_floor,
            sample_count=0,
        )

    peak_loudness = float(np.clip(max(peak, float(values.max())), 0.0, 1.0))
    # A float64 mean of equal values can land one ulp above their max.
    average = min(float(values.mean()), peak_loudness)

    threshold = adaptive_silence_threshold(np.sort(values), config)
    silent = int(np.count_nonzero(values < threshold))

    return LoudnessSummary(
        average_loudness=average,
        peak_loudness=peak_loudness,
        silence_ratio=silent / len(values),
        silence_threshold=threshold,
        sample_count=len(values),
    )


def has_significant_audio(
    summary: LoudnessSummary,
    duration: float,
    config: ClassifierConfig,
) -> bool:
    """Whether sampled loudness shows a real audio signal."""
    if duration > config.long_file_seconds:
        peak_threshold = config.long_peak_threshold
        average_threshold = config.long_average_threshold
    else:
        peak_threshold = config.peak_threshold
        average_threshold = config.average_threshold

    return summary.peak_loudness > peak_threshold or summary.average_loudness > average_threshold


def reconcile_audio_track(
    state: DetectionState,
    summary: LoudnessSummary,
    duration: float,
    config: ClassifierConfig,
) -> bool:
    """Settle has_audio_track from detection state and measured loudness.

    A confirmed detection is never overturned. Without any samples there is
    nothing to reconcile against, so the detector's presumption stands.
    Otherwise the measured loudness decides.
    """
    if state is DetectionState.CONFIRMED:
        return True
    if summary.sample_count == 0:
        return state.presumes_audio
    return has_significant_audio(summary, duration, config)
