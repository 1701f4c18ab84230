"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import numpy as np
import pytest

from mediaroute.config import AnalysisConfig, SamplingConfig
from mediaroute.media.session import DetectionSignals, MediaSession


class SyntheticSession(MediaSession):
    """In-memory session whose audio amplitude is scripted by source position.

    Playback advances in real time at the requested rate; the time-domain
    window is a square wave with the scripted amplitude at the play head.
    """

    def __init__(
        self,
        source: Any = b"",
        duration: float = 180.0,
        amplitude: Callable[[float], float] = lambda t: 0.3,
        signals: DetectionSignals | None = None,
        confirm_seek: bool = True,
        confirm_play: bool = True,
        play_delay: float = 0.0,
        play_error: Exception | None = None,
        load_delay: float = 0.0,
        load_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self.amplitude = amplitude
        self.signals = signals or DetectionSignals()
        self.confirm_seek = confirm_seek
        self.confirm_play = confirm_play
        self.play_delay = play_delay
        self.play_error = play_error
        self.load_delay = load_delay
        self.load_error = load_error
        self.seeks: list[float] = []
        self.playing_count = 0
        self.max_playing = 0
        self._duration = duration
        self._position = 0.0
        self._playing_since: float | None = None

    async def _load(self) -> None:
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error
        self.duration = self._duration
        self.width = 1280
        self.height = 720

    async def seek(self, time_: float) -> None:
        self.check_open()
        await self.pause()
        self._clear("seeked", "playing")
        self.seeks.append(time_)
        self._position = time_
        if self.confirm_seek:
            self._emit("seeked")

    async def play(self, rate: float = 1.0) -> None:
        self.check_open()
        if self.play_error is not None:
            raise self.play_error
        if self.play_delay:
            await asyncio.sleep(self.play_delay)
        self.playback_rate = rate
        self._playing_since = time.monotonic()
        self.playing_count += 1
        self.max_playing = max(self.max_playing, self.playing_count)
        if self.confirm_play:
            self._emit("playing")

    async def pause(self) -> None:
        if self._playing_since is None:
            return
        self._position = self.current_time
        self._playing_since = None
        self.playing_count -= 1

    @property
    def current_time(self) -> float:
        if self._playing_since is None:
            return self._position
        elapsed = (time.monotonic() - self._playing_since) * self.playback_rate
        return min(self._position + elapsed, self.duration)

    @property
    def ended(self) -> bool:
        return self.current_time >= self.duration

    def time_domain_data(self, size: int) -> np.ndarray | None:
        if self._playing_since is None:
            return None
        level = self.amplitude(self.current_time)
        signs = np.where(np.arange(size) % 2 == 0, 1.0, -1.0)
        return (signs * level).astype(np.float32)

    def detection_signals(self) -> DetectionSignals:
        return self.signals


@pytest.fixture
def session_factory() -> Callable[..., Callable[[Any], SyntheticSession]]:
    """Build a session factory that records the session it creates."""

    def make(**kwargs: Any) -> Callable[[Any], SyntheticSession]:
        def factory(source: Any) -> SyntheticSession:
            session = SyntheticSession(source, **kwargs)
            factory.sessions.append(session)
            return session

        factory.sessions = []
        return factory

    return make


@pytest.fixture
def fast_sampling() -> SamplingConfig:
    """Sampling config with budgets and timeouts shrunk for test speed."""
    return SamplingConfig(
        max_analysis_seconds=0.6,
        medium_budget_seconds=1.2,
        long_budget_seconds=3.0,
        poll_interval=0.01,
        seek_timeout=0.2,
        play_timeout=0.2,
        settle_interval=0.0,
        position_grace_seconds=0.5,
        metadata_timeout=1.0,
    )


@pytest.fixture
def fast_config(fast_sampling: SamplingConfig) -> AnalysisConfig:
    return AnalysisConfig(sampling=fast_sampling)


@pytest.fixture
def video_bytes() -> bytes:
    """Stand-in for a video file's contents."""
    return b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 4096
