"""
mediaroute.media.session - Single-cursor decode session.

A MediaSession behaves like a muted media element: it exposes seek, play and
pause, a play head, a readiness signal and a short time-domain window of the
audio at the play head. Backends fire named events; callers suspend on them
with wait_for(), which always resolves, either because the event fired or
because it timed out, errored or the session was torn down.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import numpy as np

from mediaroute.exceptions import MetadataLoadError, SessionClosedError
from mediaroute.logging import logger

EVENTS = ("loadedmetadata", "seeked", "canplay", "playing", "error")


class ReadyState(IntEnum):
    HAVE_NOTHING = 0
    HAVE_METADATA = 1
    HAVE_CURRENT_DATA = 2
    HAVE_FUTURE_DATA = 3
    HAVE_ENOUGH_DATA = 4


@dataclass(frozen=True)
class DetectionSignals:
    """Raw audio-presence signals; None means the backend can't tell."""

    decoded_audio_bytes: int | None = None
    audio_track_count: int | None = None
    vendor_has_audio: bool | None = None


class MediaSession:
    """Base class for decode sessions.

    Subclasses implement _load, seek, play, pause, current_time, ended,
    time_domain_data, detection_signals and _release.
    """

    def __init__(self) -> None:
        self.duration = 0.0
        self.width = 0
        self.height = 0
        self.playback_rate = 1.0
        self.ready_state = ReadyState.HAVE_NOTHING
        self.closed = False
        self.error: str | None = None
        self._events = {name: asyncio.Event() for name in EVENTS}
        self._torn_down = asyncio.Event()

    async def load(self, timeout: float) -> None:
        """Load container metadata.

        Raises:
            MetadataLoadError: If metadata is unreadable or not ready in time
        """
        try:
            await asyncio.wait_for(self._load(), timeout)
        except asyncio.TimeoutError:
            raise MetadataLoadError(f"Metadata did not load within {timeout:.1f}s") from None

        self.ready_state = ReadyState.HAVE_METADATA
        self._emit("loadedmetadata")

    async def _load(self) -> None:
        raise NotImplementedError

    async def seek(self, time: float) -> None:
        raise NotImplementedError

    async def play(self, rate: float = 1.0) -> None:
        raise NotImplementedError

    async def pause(self) -> None:
        raise NotImplementedError

    @property
    def current_time(self) -> float:
        raise NotImplementedError

    @property
    def ended(self) -> bool:
        raise NotImplementedError

    def time_domain_data(self, size: int) -> np.ndarray | None:
        raise NotImplementedError

    def detection_signals(self) -> DetectionSignals:
        return DetectionSignals()

    async def _release(self) -> None:
        pass

    async def wait_for(self, event: str, timeout: float) -> bool:
        """Suspend until event fires; False on timeout, error or teardown."""
        if self.closed:
            return False

        watched = {
            asyncio.ensure_future(self._events[event].wait()),
            asyncio.ensure_future(self._events["error"].wait()),
            asyncio.ensure_future(self._torn_down.wait()),
        }
        try:
            await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in watched:
                task.cancel()

        fired = self._events[event].is_set() and not self.closed
        if not fired:
            logger.debug("Gave up waiting for %r after %.1fs", event, timeout)
        return fired

    def check_open(self) -> None:
        if self.closed:
            raise SessionClosedError("Media session has been closed")

    async def close(self) -> None:
        """Rewind, stop decoding and free buffers. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        self._torn_down.set()
        await self._release()
        self.ready_state = ReadyState.HAVE_NOTHING

    def _emit(self, event: str) -> None:
        self._events[event].set()

    def _clear(self, *events: str) -> None:
        for event in events:
            self._events[event].clear()

    def _fail(self, message: str) -> None:
        self.error = message
        logger.debug("Media session error: %s", message)
        self._emit("error")


@asynccontextmanager
async def open_media(
    source: Any,
    session_factory: Callable[[Any], MediaSession] | None = None,
    metadata_timeout: float = 10.0,
) -> AsyncIterator[MediaSession]:
    """Open a decode session for source and release it on every exit path.

    Args:
        source: Bytes or a binary file object
        session_factory: Builds the session; defaults to the FFmpeg backend
        metadata_timeout: Seconds allowed for container metadata to load

    Raises:
        MetadataLoadError: If metadata cannot be loaded
    """
    if session_factory is None:
        from mediaroute.media.ffmpeg import FFmpegSession

        session_factory = FFmpegSession

    session = session_factory(source)
    try:
        await session.load(metadata_timeout)
        yield session
    finally:
        await session.close()
