"""Tests for mediaroute CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
from typer.testing import CliRunner

from mediaroute import __version__, cli
from mediaroute.analyze.profile import VideoMetadataProfile
from mediaroute.analyze.recommender import Pipeline
from mediaroute.cli import app
from mediaroute.config import AnalysisConfig
from mediaroute.exceptions import AudioDecodeError, MetadataLoadError
from mediaroute.extract.audio import AudioExtractionResult
from mediaroute.extract.wav import encode_wav

runner = CliRunner()


def _profile() -> VideoMetadataProfile:
    return VideoMetadataProfile(
        duration=125.0,
        width=1920,
        height=1080,
        has_audio_track=True,
        average_loudness=0.12,
        peak_loudness=0.6,
        silence_ratio=0.1,
        recommended_pipeline=Pipeline.AUDIO,
        sampled_window_seconds=18.0,
        sample_count=75,
    )


def _result() -> AudioExtractionResult:
    audio_bytes = encode_wav(np.zeros(16000), 16000)
    return AudioExtractionResult(
        audio_bytes=audio_bytes,
        original_size=1_000_000,
        compressed_size=len(audio_bytes),
        compression_ratio=1_000_000 / len(audio_bytes),
        duration=1.0,
        sample_rate=16000,
        bit_depth=16,
    )


def _video(tmp_path: Path) -> Path:
    video = tmp_path / "interview.mp4"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
    return video


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestProbeCommand:
    def test_prints_profile(self, tmp_path: Path, monkeypatch) -> None:
        profile_video = MagicMock(return_value=_profile())
        monkeypatch.setattr(cli, "profile_video", profile_video)

        result = runner.invoke(app, ["probe", str(_video(tmp_path))])

        assert result.exit_code == 0
        assert "audio" in result.output
        assert "Silence Ratio: 10%" in result.output
        args, kwargs = profile_video.call_args
        assert args[0].startswith(b"\x00\x00\x00\x18ftyp")
        assert kwargs["max_analysis_seconds"] is None

    def test_writes_json(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr(cli, "profile_video", MagicMock(return_value=_profile()))
        output = tmp_path / "out" / "profile.json"

        result = runner.invoke(app, ["probe", str(_video(tmp_path)), "-o", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert data["recommended_pipeline"] == "audio"
        assert data["sample_count"] == 75
        assert data["resolved_pipeline"] == "audio"

    def test_passes_options(self, tmp_path: Path, monkeypatch) -> None:
        profile_video = MagicMock(return_value=_profile())
        monkeypatch.setattr(cli, "profile_video", profile_video)
        config_file = tmp_path / "mediaroute.yaml"
        config_file.write_text("sampling:\n  poll_interval: 0.2\n")

        result = runner.invoke(
            app,
            ["probe", str(_video(tmp_path)), "-m", "6", "-c", str(config_file)],
        )

        assert result.exit_code == 0
        kwargs = profile_video.call_args.kwargs
        assert kwargs["max_analysis_seconds"] == 6.0
        assert isinstance(kwargs["config"], AnalysisConfig)
        assert kwargs["config"].sampling.poll_interval == 0.2

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["probe", str(tmp_path / "missing.mp4")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_bad_config(self, tmp_path: Path) -> None:
        config_file = tmp_path / "mediaroute.yaml"
        config_file.write_text("classifier:\n  silence_floor: -1\n")

        result = runner.invoke(app, ["probe", str(_video(tmp_path)), "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Error loading config" in result.output

    def test_json_carries_resolved_pipeline(self, tmp_path: Path, monkeypatch) -> None:
        stalled = _profile().model_copy(
            update={
                "average_loudness": 0.0,
                "peak_loudness": 0.0,
                "silence_ratio": 1.0,
                "recommended_pipeline": Pipeline.VISUAL,
                "sampled_window_seconds": 0.0,
                "sample_count": 0,
            }
        )
        monkeypatch.setattr(cli, "profile_video", MagicMock(return_value=stalled))
        output = tmp_path / "profile.json"

        result = runner.invoke(app, ["probe", str(_video(tmp_path)), "-o", str(output)])

        assert result.exit_code == 0
        assert "hybrid" in result.output
        data = json.loads(output.read_text())
        assert data["recommended_pipeline"] == "visual"
        assert data["resolved_pipeline"] == "hybrid"

    def test_metadata_failure(self, tmp_path: Path, monkeypatch) -> None:
        failing = MagicMock(side_effect=MetadataLoadError("unreadable container"))
        monkeypatch.setattr(cli, "profile_video", failing)

        result = runner.invoke(app, ["probe", str(_video(tmp_path))])

        assert result.exit_code == 1
        assert "unreadable container" in result.output


class TestExtractCommand:
    def test_writes_wav(self, tmp_path: Path, monkeypatch) -> None:
        extract = MagicMock(return_value=_result())
        monkeypatch.setattr(cli, "extract_and_compress_audio", extract)
        output = tmp_path / "audio.wav"

        result = runner.invoke(app, ["extract", str(_video(tmp_path)), "-o", str(output)])

        assert result.exit_code == 0
        assert output.read_bytes() == _result().audio_bytes
        assert extract.call_args.kwargs["max_duration_seconds"] is None
        assert extract.call_args.kwargs["config"].target_bitrate == 32000

    def test_passes_duration_and_bitrate(self, tmp_path: Path, monkeypatch) -> None:
        extract = MagicMock(return_value=_result())
        monkeypatch.setattr(cli, "extract_and_compress_audio", extract)

        result = runner.invoke(
            app,
            [
                "extract",
                str(_video(tmp_path)),
                "-o",
                str(tmp_path / "audio.wav"),
                "-t",
                "600",
                "-b",
                "16000",
            ],
        )

        assert result.exit_code == 0
        kwargs = extract.call_args.kwargs
        assert kwargs["max_duration_seconds"] == 600.0
        assert kwargs["config"].target_bitrate == 16000

    def test_decode_failure(self, tmp_path: Path, monkeypatch) -> None:
        failing = MagicMock(side_effect=AudioDecodeError("Source has no audio stream"))
        monkeypatch.setattr(cli, "extract_and_compress_audio", failing)
        output = tmp_path / "audio.wav"

        result = runner.invoke(app, ["extract", str(_video(tmp_path)), "-o", str(output)])

        assert result.exit_code == 1
        assert "no audio stream" in result.output
        assert not output.exists()

    def test_output_required(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["extract", str(_video(tmp_path))])
        assert result.exit_code != 0
