"""Tests for mediaroute.config module."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from mediaroute.config import (
    DEFAULT_CONFIG,
    AnalysisConfig,
    ClassifierConfig,
    RecommenderConfig,
    SamplingConfig,
    config_to_dict,
    load_config,
    write_config,
)
from mediaroute.exceptions import ConfigError


class TestSamplingConfig:
    def test_defaults(self) -> None:
        config = SamplingConfig()
        assert config.max_analysis_seconds == 18.0
        assert config.playback_rates == (2.0, 3.0, 4.0)
        assert config.poll_interval == 0.12
        assert config.fft_size == 2048

    def test_non_positive_budget_raises(self) -> None:
        with pytest.raises(ValueError):
            SamplingConfig(max_analysis_seconds=0)

    def test_non_positive_rate_raises(self) -> None:
        with pytest.raises(ValueError, match="playback_rates"):
            SamplingConfig(playback_rates=(2.0, 0.0, 4.0))

    def test_band_ordering(self) -> None:
        with pytest.raises(ValueError, match="medium_file_seconds"):
            SamplingConfig(medium_file_seconds=900.0)

    def test_frozen(self) -> None:
        config = SamplingConfig()
        with pytest.raises(Exception):
            config.poll_interval = 1.0


class TestClassifierConfig:
    def test_defaults(self) -> None:
        config = ClassifierConfig()
        assert config.silence_floor == 0.01
        assert config.peak_threshold == 0.02
        assert config.average_threshold == 0.005
        assert config.long_file_seconds == 1800.0

    def test_threshold_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            ClassifierConfig(peak_threshold=1.5)


class TestRecommenderConfig:
    def test_defaults(self) -> None:
        config = RecommenderConfig()
        assert (config.visual_max_loudness, config.visual_min_silence) == (0.01, 0.75)
        assert (config.hybrid_max_loudness, config.hybrid_min_silence) == (0.035, 0.45)

    def test_silence_ordering(self) -> None:
        with pytest.raises(ValueError, match="hybrid_min_silence"):
            RecommenderConfig(hybrid_min_silence=0.8)


class TestAnalysisConfig:
    def test_default_instance(self) -> None:
        assert DEFAULT_CONFIG == AnalysisConfig()
        assert DEFAULT_CONFIG.extraction.target_bitrate == 32000

    def test_partial_sections(self) -> None:
        config = AnalysisConfig(sampling={"max_analysis_seconds": 6})
        assert config.sampling.max_analysis_seconds == 6.0
        assert config.sampling.poll_interval == 0.12


class TestLoadConfig:
    def test_load_config_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text(
            "sampling:\n  max_analysis_seconds: 10\nextraction:\n  target_bitrate: 16000\n"
        )

        config = load_config(path)

        assert config.sampling.max_analysis_seconds == 10.0
        assert config.extraction.target_bitrate == 16000
        assert config.recommender == RecommenderConfig()

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text("")
        assert load_config(path) == AnalysisConfig()

    def test_load_missing_config_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text("sampling: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_out_of_range_value_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text("classifier:\n  silence_floor: -1\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_unknown_section_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        path.write_text("notes: hello\n")
        assert load_config(path) == AnalysisConfig()


class TestWriteConfig:
    def test_round_trip(self, tmp_path: Path) -> None:
        config = AnalysisConfig(recommender={"hybrid_max_loudness": 0.05})
        path = tmp_path / "nested" / "mediaroute.yaml"

        write_config(config, path)

        assert load_config(path) == config

    def test_plain_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "mediaroute.yaml"
        write_config(DEFAULT_CONFIG, path)

        data = yaml.safe_load(path.read_text())
        assert data["sampling"]["playback_rates"] == [2.0, 3.0, 4.0]
        assert data == config_to_dict(DEFAULT_CONFIG)
