"""
mediaroute.extract.audio - Audio extraction and compression.

Decodes the audio track (optionally only a leading prefix) with FFmpeg,
downmixes to mono, resamples to a speech-adequate rate with librosa and
packs the result into a minimal PCM WAV ready for a transcription service.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from mediaroute.config import ExtractionConfig
from mediaroute.exceptions import (
    AudioDecodeError,
    DependencyError,
    MediaRouteError,
    ValidationError,
)
from mediaroute.extract.wav import encode_wav
from mediaroute.logging import logger
from mediaroute.media.ffmpeg import AudioStreamInfo, probe_media, spooled_source
from mediaroute.utils import format_size
from mediaroute.validation import FFMPEG_INSTALL_HINT


class AudioExtractionResult(BaseModel):
    """Compressed audio artifact and its size accounting."""

    model_config = ConfigDict(frozen=True)

    audio_bytes: bytes = Field(repr=False)
    original_size: int = Field(ge=0)
    compressed_size: int = Field(gt=0)
    compression_ratio: float = Field(ge=0.0)
    duration: float = Field(ge=0.0)
    sample_rate: int = Field(gt=0)
    bit_depth: int


def select_output_format(target_bitrate: int) -> tuple[int, int]:
    """Pick (sample_rate, bit_depth) for a target bitrate in bits/s.

    Lower targets trade fidelity for size; 32 kbps and up gets 16kHz 16-bit.
    """
    if target_bitrate <= 16000:
        return 8000, 8
    if target_bitrate <= 20000:
        return 11025, 16
    if target_bitrate <= 24000:
        return 12000, 16
    return 16000, 16


def decode_audio(
    path: Path,
    stream: AudioStreamInfo,
    duration: float,
    timeout: float | None = None,
) -> np.ndarray:
    """Decode the first audio stream to float32 PCM at its native rate.

    Args:
        path: Media file path
        stream: Probed info for the first audio stream
        duration: Seconds to decode from the start
        timeout: Optional wall-clock limit for ffmpeg

    Returns:
        Array of shape (channels, samples)

    Raises:
        AudioDecodeError: If ffmpeg fails or produces no samples
    """
    cmd = [
        "ffmpeg",
        "-v",
        "error",
        "-nostdin",
        "-i",
        str(path),
        "-vn",
        "-map",
        "0:a:0",
        "-t",
        f"{duration:.3f}",
        "-ac",
        str(stream.channels),
        "-ar",
        str(stream.sample_rate),
        "-acodec",
        "pcm_f32le",
        "-f",
        "f32le",
        "pipe:1",
    ]

    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except FileNotFoundError as e:
        raise DependencyError("ffmpeg", "ffmpeg not found in PATH", FFMPEG_INSTALL_HINT) from e
    except subprocess.TimeoutExpired as e:
        raise AudioDecodeError(f"FFmpeg decode timed out after {timeout}s") from e

    if proc.returncode != 0:
        stderr = proc.stderr.decode(errors="replace").strip()
        raise AudioDecodeError(f"FFmpeg audio decode failed: {stderr}")

    frame_bytes = 4 * stream.channels
    usable = len(proc.stdout) - len(proc.stdout) % frame_bytes
    if usable == 0:
        raise AudioDecodeError("FFmpeg produced no audio samples")

    frames = np.frombuffer(proc.stdout[:usable], dtype="<f4")
    return frames.reshape(-1, stream.channels).T


def downmix_and_resample(
    buffer: np.ndarray,
    source_rate: int,
    target_rate: int,
    duration: float,
) -> np.ndarray:
    """Downmix to mono and render exactly floor(duration * target_rate) samples."""
    import librosa

    mono = librosa.to_mono(np.ascontiguousarray(buffer, dtype=np.float32))
    if source_rate != target_rate:
        mono = librosa.resample(mono, orig_sr=source_rate, target_sr=target_rate)

    output_samples = int(np.floor(duration * target_rate))
    return librosa.util.fix_length(mono, size=output_samples)


def extract_and_compress_audio(
    source: Any,
    max_duration_seconds: float | None = None,
    config: ExtractionConfig | None = None,
    console=None,
) -> AudioExtractionResult:
    """Extract a compact mono WAV from a video byte source.

    Only the first max_duration_seconds are extracted when a cap is given;
    longer coverage needs multiple calls by the caller.

    Args:
        source: Video bytes or a binary file object
        max_duration_seconds: Optional cap on extracted duration
        config: Extraction settings (target bitrate, decode timeout)
        console: Optional rich console for output

    Returns:
        AudioExtractionResult

    Raises:
        MetadataLoadError: If the container cannot be read
        AudioDecodeError: If no audio can be decoded
    """
    config = config or ExtractionConfig()
    sample_rate, bit_depth = select_output_format(config.target_bitrate)

    if max_duration_seconds is not None and max_duration_seconds <= 0:
        raise ValidationError("max_duration_seconds must be positive")

    with spooled_source(source) as (path, original_size):
        if console:
            console.print("[dim]  Loading video...[/dim]")
        info = probe_media(path)

        if not info.has_audio:
            raise AudioDecodeError("Source has no audio stream")

        duration = info.duration
        if max_duration_seconds is not None:
            duration = min(duration, max_duration_seconds)
        if duration <= 0:
            raise AudioDecodeError("Source audio has zero duration")

        logger.info(
            "Extracting %.1fs of %.1fs from %s source at %dHz %d-bit",
            duration,
            info.duration,
            format_size(original_size),
            sample_rate,
            bit_depth,
        )

        stream = info.audio_streams[0]
        try:
            if console:
                console.print("[dim]  Decoding audio...[/dim]")
            buffer = decode_audio(path, stream, duration, timeout=config.decode_timeout)

            if console:
                console.print("[dim]  Compressing audio...[/dim]")
            mono = downmix_and_resample(buffer, stream.sample_rate, sample_rate, duration)
        except MediaRouteError:
            raise
        except Exception as e:
            raise AudioDecodeError(f"Audio extraction failed: {e}") from e

    audio_bytes = encode_wav(mono, sample_rate, bit_depth)
    compressed_size = len(audio_bytes)

    result = AudioExtractionResult(
        audio_bytes=audio_bytes,
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=original_size / compressed_size,
        duration=len(mono) / sample_rate,
        sample_rate=sample_rate,
        bit_depth=bit_depth,
    )

    logger.info(
        "Compression complete: %s -> %s (%.1fx)",
        format_size(original_size),
        format_size(compressed_size),
        result.compression_ratio,
    )
    return result
