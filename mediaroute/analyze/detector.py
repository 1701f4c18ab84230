"""
mediaroute.analyze.detector - Audio track detection.

Turns the session's detection signals into a DetectionState. Detection before
any audio is buffered is unreliable, so the detector runs once after metadata
loads and again while the sampler has data buffered; combine() merges passes.
"""

from __future__ import annotations

from enum import Enum

from mediaroute.media.session import DetectionSignals


class DetectionState(str, Enum):
    UNKNOWN = "unknown"
    WEAK_NEGATIVE = "weak_negative"
    CONFIRMED = "confirmed"

    @property
    def presumes_audio(self) -> bool:
        """Whether downstream stages should assume an audio track exists."""
        return self is not DetectionState.WEAK_NEGATIVE


def detect_audio_track(signals: DetectionSignals) -> DetectionState:
    """Classify detection signals; the first positive signal wins.

    Returns:
        CONFIRMED if any signal is positive, WEAK_NEGATIVE if every available
        signal is negative, UNKNOWN if no signal is available
    """
    available = False

    if signals.vendor_has_audio is not None:
        if signals.vendor_has_audio:
            return DetectionState.CONFIRMED
        available = True

    if signals.decoded_audio_bytes is not None:
        if signals.decoded_audio_bytes > 0:
            return DetectionState.CONFIRMED
        available = True

    if signals.audio_track_count is not None:
        if signals.audio_track_count > 0:
            return DetectionState.CONFIRMED
        available = True

    return DetectionState.WEAK_NEGATIVE if available else DetectionState.UNKNOWN


def combine(prior: DetectionState, later: DetectionState) -> DetectionState:
    """Merge two detection passes. CONFIRMED never reverts."""
    if DetectionState.CONFIRMED in (prior, later):
        return DetectionState.CONFIRMED
    if DetectionState.WEAK_NEGATIVE in (prior, later):
        return DetectionState.WEAK_NEGATIVE
    return DetectionState.UNKNOWN
