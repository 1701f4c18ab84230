"""
mediaroute.exceptions - Custom exception classes.

All mediaroute-specific exceptions inherit from MediaRouteError.
"""


class MediaRouteError(Exception):
    """Base exception for all mediaroute errors."""

    pass


class ConfigError(MediaRouteError):
    """Configuration loading or validation error."""

    pass


class MetadataLoadError(MediaRouteError):
    """Container metadata could not be read. Analysis cannot proceed."""

    pass


class AudioDecodeError(MediaRouteError):
    """The decoder could not produce PCM audio for extraction."""

    pass


class SamplingTimeout(MediaRouteError):
    """A single sample position stalled past its deadline."""

    def __init__(self, position: float, deadline: float):
        self.position = position
        self.deadline = deadline
        super().__init__(f"Sample position {position:.1f}s stalled after {deadline:.1f}s")


class SessionClosedError(MediaRouteError):
    """Operation attempted on a media session that has been torn down."""

    pass


class ValidationError(MediaRouteError):
    """Data validation error."""

    pass


class DependencyError(MediaRouteError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
