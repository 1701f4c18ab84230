"""
mediaroute.config - Tuning thresholds, YAML loading, validation.

Every threshold used by the sampler, classifier, recommender and extraction
engine lives here as an immutable pydantic model. Callers pass a config
explicitly; DEFAULT_CONFIG is the shared read-only default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from mediaroute.exceptions import ConfigError


class SamplingConfig(BaseModel):
    """Sampling budget, positions and async wait timeouts."""

    model_config = ConfigDict(frozen=True)

    max_analysis_seconds: float = Field(default=18.0, gt=0.0)
    medium_budget_seconds: float = Field(default=24.0, gt=0.0)
    long_budget_seconds: float = Field(default=30.0, gt=0.0)
    medium_budget_fraction: float = Field(default=0.08, gt=0.0, le=1.0)
    long_budget_fraction: float = Field(default=0.05, gt=0.0, le=1.0)

    medium_file_seconds: float = Field(default=300.0, gt=0.0)
    long_file_seconds: float = Field(default=600.0, gt=0.0)
    playback_rates: tuple[float, float, float] = (2.0, 3.0, 4.0)

    poll_interval: float = Field(default=0.12, gt=0.0)
    fft_size: int = Field(default=2048, gt=0)
    seek_timeout: float = Field(default=3.0, gt=0.0)
    play_timeout: float = Field(default=3.0, gt=0.0)
    settle_interval: float = Field(default=0.1, ge=0.0)
    position_grace_seconds: float = Field(default=2.0, ge=0.0)
    metadata_timeout: float = Field(default=10.0, gt=0.0)

    @field_validator("playback_rates")
    @classmethod
    def validate_playback_rates(cls, v: tuple[float, float, float]) -> tuple[float, float, float]:
        if any(rate <= 0 for rate in v):
            raise ValueError("playback_rates must all be positive")
        return v

    @model_validator(mode="after")
    def validate_bands(self) -> SamplingConfig:
        if self.medium_file_seconds >= self.long_file_seconds:
            raise ValueError("medium_file_seconds must be below long_file_seconds")
        return self


class ClassifierConfig(BaseModel):
    """Adaptive silence threshold and significant-audio thresholds."""

    model_config = ConfigDict(frozen=True)

    silence_floor: float = Field(default=0.01, ge=0.0, le=1.0)
    median_factor: float = Field(default=0.3, ge=0.0)
    q1_factor: float = Field(default=0.5, ge=0.0)

    peak_threshold: float = Field(default=0.02, ge=0.0, le=1.0)
    average_threshold: float = Field(default=0.005, ge=0.0, le=1.0)

    # Dialogue in long recordings is sparse and dilutes the average.
    long_file_seconds: float = Field(default=1800.0, gt=0.0)
    long_peak_threshold: float = Field(default=0.015, ge=0.0, le=1.0)
    long_average_threshold: float = Field(default=0.003, ge=0.0, le=1.0)


class RecommenderConfig(BaseModel):
    """Decision table thresholds for pipeline recommendation."""

    model_config = ConfigDict(frozen=True)

    visual_max_loudness: float = Field(default=0.01, ge=0.0, le=1.0)
    visual_min_silence: float = Field(default=0.75, ge=0.0, le=1.0)
    hybrid_max_loudness: float = Field(default=0.035, ge=0.0, le=1.0)
    hybrid_min_silence: float = Field(default=0.45, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_ordering(self) -> RecommenderConfig:
        if self.visual_max_loudness > self.hybrid_max_loudness:
            raise ValueError("visual_max_loudness must not exceed hybrid_max_loudness")
        if self.hybrid_min_silence > self.visual_min_silence:
            raise ValueError("hybrid_min_silence must not exceed visual_min_silence")
        return self


class ExtractionConfig(BaseModel):
    """Output format selection for the extraction engine."""

    model_config = ConfigDict(frozen=True)

    target_bitrate: int = Field(default=32000, gt=0)
    decode_timeout: float | None = Field(default=None, gt=0.0)


class AnalysisConfig(BaseModel):
    """Resolved configuration for a mediaroute run."""

    model_config = ConfigDict(frozen=True)

    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    recommender: RecommenderConfig = Field(default_factory=RecommenderConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)


DEFAULT_CONFIG = AnalysisConfig()


def load_config(path: Path) -> AnalysisConfig:
    """Load and validate configuration from a YAML file.

    Sections that are absent fall back to their defaults.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the YAML is malformed or a value is out of range
    """
    if not path.exists():
        raise FileNotFoundError(f"No config file found at {path}")

    try:
        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    try:
        return AnalysisConfig(**raw_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def config_to_dict(config: AnalysisConfig) -> dict[str, Any]:
    """Convert a config to plain YAML-safe data."""
    return config.model_dump(mode="json")


def write_config(config: AnalysisConfig, path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)
