"""
mediaroute.media.ffmpeg - FFmpeg-backed media loading.

Container metadata comes from ffprobe; audio for sampling comes from an ffmpeg
decoder that streams mono float32 PCM from the seek position. Decoded audio is
released to the play head at the session's playback rate, so polling the
session sees the same window a player would be rendering.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess
import tempfile
import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager, suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from mediaroute.exceptions import DependencyError, MetadataLoadError
from mediaroute.logging import logger
from mediaroute.media.session import DetectionSignals, MediaSession, ReadyState
from mediaroute.utils import format_size
from mediaroute.validation import FFMPEG_INSTALL_HINT, validate_source

ANALYSIS_SAMPLE_RATE = 16000
READ_CHUNK_BYTES = 16384
READ_AHEAD_SECONDS = 2.0


@dataclass(frozen=True)
class AudioStreamInfo:
    codec: str | None
    channels: int
    sample_rate: int


@dataclass(frozen=True)
class MediaInfo:
    """Container-level metadata for one source."""

    duration: float
    width: int = 0
    height: int = 0
    audio_streams: tuple[AudioStreamInfo, ...] = ()

    @property
    def has_audio(self) -> bool:
        return len(self.audio_streams) > 0


def _reserve_spool_path() -> Path:
    fd, name = tempfile.mkstemp(prefix="mediaroute-", suffix=".media")
    os.close(fd)
    return Path(name)


def _write_source(path: Path, source: Any) -> int:
    """Copy source into path and return the number of bytes written."""
    with open(path, "wb") as f:
        if isinstance(source, (bytes, bytearray, memoryview)):
            f.write(source)
        else:
            shutil.copyfileobj(source, f)
        return f.tell()


@contextmanager
def spooled_source(source: Any) -> Iterator[tuple[Path, int]]:
    """Copy a byte source into a private temp file for the FFmpeg tools.

    Yields:
        Tuple of (temp file path, source size in bytes). The file is removed
        on exit.
    """
    validate_source(source)

    tmp_path = _reserve_spool_path()
    try:
        yield tmp_path, _write_source(tmp_path, source)
    finally:
        tmp_path.unlink(missing_ok=True)


def probe_command(path: Path) -> list[str]:
    return [
        "ffprobe",
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]


def decoder_command(path: Path, start: float, sample_rate: int) -> list[str]:
    """ffmpeg command streaming mono float32 PCM from start to stdout."""
    return [
        "ffmpeg",
        "-v",
        "error",
        "-nostdin",
        "-ss",
        f"{start:.3f}",
        "-i",
        str(path),
        "-vn",
        "-map",
        "0:a:0",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "-acodec",
        "pcm_f32le",
        "-f",
        "f32le",
        "pipe:1",
    ]


def _parse_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_probe_output(data: dict[str, Any]) -> MediaInfo:
    """Build MediaInfo from ffprobe JSON output.

    Raises:
        MetadataLoadError: If the container lists no streams
    """
    streams = data.get("streams", [])
    if not streams:
        raise MetadataLoadError("Container lists no streams")

    video_stream = None
    audio_streams = []
    for stream in streams:
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio":
            audio_streams.append(
                AudioStreamInfo(
                    codec=stream.get("codec_name"),
                    channels=int(stream.get("channels") or 1),
                    sample_rate=int(stream.get("sample_rate") or 48000),
                )
            )

    format_info = data.get("format", {})
    duration = _parse_float(format_info.get("duration"))
    if duration is None:
        stream_durations = [_parse_float(s.get("duration")) for s in streams]
        duration = max((d for d in stream_durations if d is not None), default=0.0)

    width = 0
    height = 0
    if video_stream:
        width = int(video_stream.get("width") or 0)
        height = int(video_stream.get("height") or 0)

    return MediaInfo(
        duration=max(0.0, duration),
        width=width,
        height=height,
        audio_streams=tuple(audio_streams),
    )


def _decode_probe_json(stdout: str) -> MediaInfo:
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise MetadataLoadError(f"ffprobe returned invalid JSON: {e}") from e
    return parse_probe_output(data)


def probe_media(path: Path) -> MediaInfo:
    """Probe a media file for metadata using ffprobe.

    Raises:
        DependencyError: If ffprobe is not installed
        MetadataLoadError: If the container cannot be read
    """
    try:
        proc = subprocess.run(probe_command(path), capture_output=True, text=True)
    except FileNotFoundError as e:
        raise DependencyError("ffprobe", "ffprobe not found in PATH", FFMPEG_INSTALL_HINT) from e

    if proc.returncode != 0:
        raise MetadataLoadError(f"ffprobe failed: {proc.stderr.strip() or 'unreadable container'}")

    return _decode_probe_json(proc.stdout)


class FFmpegSession(MediaSession):
    """Decode session over a spooled copy of the source."""

    def __init__(self, source: Any, sample_rate: int = ANALYSIS_SAMPLE_RATE) -> None:
        super().__init__()
        self.sample_rate = sample_rate
        self.info: MediaInfo | None = None
        self._source = source
        self._spool = ExitStack()
        self._path: Path | None = None
        self._position = 0.0
        self._samples = np.zeros(0, dtype=np.float32)
        self._decoded_bytes = 0
        self._decoder_ran = False
        self._decoder_done = False
        self._proc: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task | None = None
        self._play_started_at: float | None = None

    async def _load(self) -> None:
        validate_source(self._source)
        self._path = _reserve_spool_path()
        self._spool.callback(self._path.unlink, missing_ok=True)

        source, self._source = self._source, None
        size = await asyncio.to_thread(_write_source, self._path, source)
        logger.debug("Spooled %s source to %s", format_size(size), self._path)

        try:
            proc = await asyncio.create_subprocess_exec(
                *probe_command(self._path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DependencyError("ffprobe", "ffprobe not found in PATH", FFMPEG_INSTALL_HINT) from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            with suppress(ProcessLookupError):
                proc.kill()
            raise

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or "unreadable container"
            raise MetadataLoadError(f"ffprobe failed: {message}")

        self.info = _decode_probe_json(stdout.decode(errors="replace"))
        self.duration = self.info.duration
        self.width = self.info.width
        self.height = self.info.height
        logger.debug(
            "Loaded metadata: %.1fs, %dx%d, %d audio stream(s)",
            self.duration,
            self.width,
            self.height,
            len(self.info.audio_streams),
        )

    async def seek(self, time: float) -> None:
        self.check_open()
        await self._stop_decoder()
        self._clear("seeked", "canplay", "playing", "error")
        self.error = None
        self._position = min(max(0.0, time), self.duration)
        self.ready_state = ReadyState.HAVE_METADATA
        self._emit("seeked")

    async def play(self, rate: float = 1.0) -> None:
        self.check_open()
        if self._proc is not None:
            return

        self.playback_rate = rate
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *decoder_command(self._path, self._position, self.sample_rate),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise DependencyError("ffmpeg", "ffmpeg not found in PATH", FFMPEG_INSTALL_HINT) from e

        self._decoder_ran = True
        self._decoder_done = False
        self._play_started_at = None
        self._pump_task = asyncio.ensure_future(self._pump(self._proc))

    async def pause(self) -> None:
        if self._proc is None:
            return
        self._position = self.current_time
        await self._stop_decoder()

    @property
    def current_time(self) -> float:
        return min(self._position + self._played_seconds(), self.duration)

    @property
    def ended(self) -> bool:
        if not self._decoder_done:
            return False
        return self._played_seconds() * self.sample_rate >= len(self._samples)

    def time_domain_data(self, size: int) -> np.ndarray | None:
        head = int(self._played_seconds() * self.sample_rate)
        if head <= 0:
            return None
        return self._samples[max(0, head - size) : head]

    def detection_signals(self) -> DetectionSignals:
        return DetectionSignals(
            decoded_audio_bytes=self._decoded_bytes if self._decoder_ran else None,
            audio_track_count=len(self.info.audio_streams) if self.info is not None else None,
        )

    async def _release(self) -> None:
        await self._stop_decoder()
        self._position = 0.0
        self._spool.close()

    def _buffered_seconds(self) -> float:
        return len(self._samples) / self.sample_rate

    def _played_seconds(self) -> float:
        if self._play_started_at is None:
            return 0.0
        elapsed = (time.monotonic() - self._play_started_at) * self.playback_rate
        return min(elapsed, self._buffered_seconds())

    async def _pump(self, proc: asyncio.subprocess.Process) -> None:
        """Read decoder output, staying a short distance ahead of the play head."""
        pending = b""
        try:
            while True:
                chunk = await proc.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                self._decoded_bytes += len(chunk)
                pending += chunk
                usable = len(pending) - len(pending) % 4
                if usable:
                    frames = np.frombuffer(pending[:usable], dtype="<f4")
                    self._samples = np.concatenate([self._samples, frames])
                    pending = pending[usable:]

                if self._play_started_at is None:
                    self._play_started_at = time.monotonic()
                    self.ready_state = ReadyState.HAVE_ENOUGH_DATA
                    self._emit("canplay")
                    self._emit("playing")

                while self._buffered_seconds() - self._played_seconds() > READ_AHEAD_SECONDS:
                    await asyncio.sleep(0.05)

            returncode = await proc.wait()
        except Exception as e:
            logger.warning("Audio decoder failed: %s", e)
            self._decoder_done = True
            self._fail(str(e))
            return

        self._decoder_done = True
        if self._play_started_at is None:
            self._fail(f"ffmpeg produced no audio (exit code {returncode})")

    async def _stop_decoder(self) -> None:
        proc, task = self._proc, self._pump_task
        self._proc = None
        self._pump_task = None

        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if proc is not None and proc.returncode is None:
            with suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

        self._play_started_at = None
        self._samples = np.zeros(0, dtype=np.float32)
