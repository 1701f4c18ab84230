"""
mediaroute.extract.wav - Minimal PCM WAV container.

Layout (little-endian, 44-byte header):

    "RIFF" <36 + dataLen> "WAVE"
    "fmt " <16> <format=1> <channels> <sampleRate> <byteRate> <blockAlign> <bitDepth>
    "data" <dataLen> <samples...>
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from mediaroute.exceptions import ValidationError

HEADER_SIZE = 44
PCM_FORMAT = 1
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    sample_rate: int
    channels: int
    bit_depth: int
    data_length: int
    byte_rate: int
    block_align: int

    @property
    def sample_count(self) -> int:
        """Samples per channel."""
        return self.data_length // self.block_align

    @property
    def duration(self) -> float:
        return self.sample_count / self.sample_rate


def _quantize(samples: np.ndarray, bit_depth: int) -> bytes:
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    if bit_depth == 8:
        # Unsigned, 128 is silence.
        return np.round((clipped + 1.0) * 127.5).astype(np.uint8).tobytes()
    scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
    return np.trunc(scaled).astype("<i2").tobytes()


def encode_wav(samples: np.ndarray, sample_rate: int, bit_depth: int = 16) -> bytes:
    """Serialize mono float samples to a PCM WAV byte string.

    Args:
        samples: Mono samples; values outside [-1, 1] are clipped
        sample_rate: Sample rate written to the header
        bit_depth: 8 (unsigned) or 16 (signed)

    Returns:
        Complete WAV file bytes
    """
    if bit_depth not in (8, 16):
        raise ValueError(f"Unsupported bit depth: {bit_depth}")

    channels = 1
    block_align = channels * bit_depth // 8
    data = _quantize(samples, bit_depth)

    header = _HEADER.pack(
        b"RIFF",
        36 + len(data),
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bit_depth,
        b"data",
        len(data),
    )
    return header + data


def parse_wav_header(data: bytes) -> WavHeader:
    """Parse the 44-byte header written by encode_wav().

    Raises:
        ValidationError: If the bytes are not a PCM WAV in this layout
    """
    if len(data) < HEADER_SIZE:
        raise ValidationError(f"WAV data too short: {len(data)} bytes")

    (
        riff,
        _riff_size,
        wave,
        fmt,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bit_depth,
        data_tag,
        data_length,
    ) = _HEADER.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValidationError("Missing RIFF/WAVE/fmt/data markers")
    if fmt_size != 16 or audio_format != PCM_FORMAT:
        raise ValidationError(f"Not a PCM WAV (format {audio_format}, fmt size {fmt_size})")
    if channels < 1 or block_align != channels * bit_depth // 8:
        raise ValidationError("Inconsistent channel count and block alignment")
    if HEADER_SIZE + data_length > len(data):
        raise ValidationError("Data chunk extends past end of buffer")

    return WavHeader(
        sample_rate=sample_rate,
        channels=channels,
        bit_depth=bit_depth,
        data_length=data_length,
        byte_rate=byte_rate,
        block_align=block_align,
    )


def read_wav(data: bytes) -> tuple[WavHeader, np.ndarray]:
    """Parse a WAV produced by encode_wav() back into float samples."""
    header = parse_wav_header(data)
    payload = data[HEADER_SIZE : HEADER_SIZE + header.data_length]

    if header.bit_depth == 8:
        samples = np.frombuffer(payload, dtype=np.uint8).astype(np.float32) / 127.5 - 1.0
    elif header.bit_depth == 16:
        samples = np.frombuffer(payload, dtype="<i2").astype(np.float32) / 0x8000
    else:
        raise ValidationError(f"Unsupported bit depth: {header.bit_depth}")

    if header.channels > 1:
        samples = samples.reshape(-1, header.channels)
    return header, samples
