"""
mediaroute.validation - Dependency checks and input validation.

Validates the FFmpeg toolchain and incoming byte sources before processing,
and estimates extraction output sizes up front.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Any

from mediaroute.exceptions import DependencyError, ValidationError

FFMPEG_INSTALL_HINT = "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"

# Output megabytes per minute of audio, keyed by the highest target bitrate
# that selects each output format.
_MB_PER_MINUTE = (
    (12000, 0.48),
    (16000, 0.96),
    (20000, 1.32),
    (24000, 1.44),
)
_DEFAULT_MB_PER_MINUTE = 1.92


def require_tool(name: str) -> str:
    """Return the path of an FFmpeg tool or raise DependencyError."""
    path = shutil.which(name)
    if not path:
        raise DependencyError(name, f"{name} not found in PATH", FFMPEG_INSTALL_HINT)
    return path


def check_ffmpeg() -> dict[str, str]:
    """Check that ffmpeg and ffprobe are installed and report their versions.

    Returns:
        Dict with 'ffmpeg_version' and 'ffprobe_version'

    Raises:
        DependencyError: If either tool is missing
    """
    result = {}
    for tool in ("ffmpeg", "ffprobe"):
        tool_path = require_tool(tool)
        try:
            proc = subprocess.run(
                [tool_path, "-version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            version_line = proc.stdout.split("\n")[0]
            result[f"{tool}_version"] = version_line.split()[2] if version_line else "unknown"
        except (subprocess.TimeoutExpired, IndexError):
            result[f"{tool}_version"] = "unknown"
    return result


def is_extraction_supported() -> bool:
    """Whether this environment can probe and decode media."""
    try:
        check_ffmpeg()
    except DependencyError:
        return False
    return True


def estimate_compressed_size(
    video_duration_seconds: float,
    target_bitrate: int = 32000,
) -> float:
    """Estimate the extracted WAV size in megabytes before extracting.

    Args:
        video_duration_seconds: Duration of audio that will be extracted
        target_bitrate: Target bitrate used to pick the output format

    Returns:
        Estimated size in megabytes, never below 0.5
    """
    mb_per_minute = _DEFAULT_MB_PER_MINUTE
    for max_bitrate, rate in _MB_PER_MINUTE:
        if target_bitrate <= max_bitrate:
            mb_per_minute = rate
            break

    estimated = (video_duration_seconds / 60) * mb_per_minute
    return max(0.5, estimated)


def validate_source(source: Any) -> None:
    """Reject byte sources the loader cannot read.

    Raises:
        ValidationError: If the source is empty or not byte-addressable
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        if len(source) == 0:
            raise ValidationError("Source is empty")
        return

    if hasattr(source, "read"):
        return

    raise ValidationError(f"Unsupported source type: {type(source).__name__}")
