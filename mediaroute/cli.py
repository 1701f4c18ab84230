"""
mediaroute.cli - Typer CLI entry point.

A thin file-based front end: reads a video into memory, hands the bytes to
the analysis core and prints or saves what comes back.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from mediaroute import __version__
from mediaroute.analyze.profile import describe_profile, profile_video, resolve_pipeline
from mediaroute.config import DEFAULT_CONFIG, AnalysisConfig, load_config
from mediaroute.exceptions import MediaRouteError
from mediaroute.extract.audio import extract_and_compress_audio
from mediaroute.io import write_bytes, write_json
from mediaroute.logging import configure_logging
from mediaroute.utils import format_duration, format_size
from mediaroute.validation import estimate_compressed_size

app = typer.Typer(
    name="mediaroute",
    help="Speech-audio triage for video files.\n\n"
    "Profiles a video's audio to pick the audio, hybrid or visual pipeline, "
    "and extracts a compact mono WAV for transcription.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"mediaroute {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """mediaroute - Speech-audio triage for video files."""
    configure_logging(verbose)


def _read_video(path: Path) -> bytes:
    video_file = path.expanduser().resolve()
    if not video_file.is_file():
        console.print(f"[red]Error: File not found: {video_file}[/red]")
        raise typer.Exit(1)
    return video_file.read_bytes()


def _load_config(config_path: Path | None) -> AnalysisConfig:
    if config_path is None:
        return DEFAULT_CONFIG
    try:
        return load_config(config_path)
    except (FileNotFoundError, MediaRouteError) as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)


@app.command("probe")
def probe(
    video: Path = typer.Argument(..., help="Video file to profile"),
    max_analysis_seconds: float | None = typer.Option(
        None,
        "--max-analysis-seconds",
        "-m",
        help="Seconds of short videos to sample",
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="YAML config file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write profile JSON here"),
) -> None:
    """Profile a video's audio and recommend a processing pipeline."""
    data = _read_video(video)
    config = _load_config(config_path)

    console.print(f"[dim]Sampling audio in {video.name}...[/dim]")
    try:
        profile = profile_video(data, config=config, max_analysis_seconds=max_analysis_seconds)
    except MediaRouteError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Audio Profile: {video.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Duration", format_duration(profile.duration))
    table.add_row("Resolution", f"{profile.width}x{profile.height}")
    table.add_row("Audio track", "yes" if profile.has_audio_track else "no")
    table.add_row("Average loudness", f"{profile.average_loudness:.4f}")
    table.add_row("Peak loudness", f"{profile.peak_loudness:.4f}")
    table.add_row("Silence ratio", f"{profile.silence_ratio:.1%}")
    table.add_row("Sampled", f"{profile.sampled_window_seconds:.1f}s ({profile.sample_count} polls)")
    pipeline = resolve_pipeline(profile)
    table.add_row("Recommended", profile.recommended_pipeline.value)
    table.add_row("Route", f"[bold]{pipeline.value}[/bold]")
    console.print(table)
    console.print(f"[dim]{describe_profile(profile)}[/dim]")

    if output:
        data = profile.model_dump(mode="json")
        data["resolved_pipeline"] = pipeline.value
        write_json(output, data)
        console.print(f"[green]✓[/green] Profile written to {output}")


@app.command("extract")
def extract(
    video: Path = typer.Argument(..., help="Video file to extract audio from"),
    output: Path = typer.Option(..., "--output", "-o", help="Destination WAV file"),
    max_duration: float | None = typer.Option(
        None,
        "--max-duration",
        "-t",
        help="Only extract the first N seconds",
    ),
    bitrate: int | None = typer.Option(
        None,
        "--bitrate",
        "-b",
        help="Target bitrate in bits/s (default 32000)",
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """Extract a compact mono WAV for transcription."""
    data = _read_video(video)
    extraction = _load_config(config_path).extraction
    if bitrate is not None:
        extraction = extraction.model_copy(update={"target_bitrate": bitrate})

    console.print(f"[cyan]Extracting audio from {video.name}...[/cyan]")
    try:
        result = extract_and_compress_audio(
            data,
            max_duration_seconds=max_duration,
            config=extraction,
            console=console,
        )
    except MediaRouteError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    write_bytes(output, result.audio_bytes)

    table = Table(title="Audio Extraction")
    table.add_column("Original", style="cyan")
    table.add_column("Compressed", style="green")
    table.add_column("Ratio", style="yellow")
    table.add_column("Duration", style="green")
    table.add_row(
        format_size(result.original_size),
        format_size(result.compressed_size),
        f"{result.compression_ratio:.1f}x",
        format_duration(result.duration),
    )
    console.print(table)

    estimate = estimate_compressed_size(result.duration, extraction.target_bitrate)
    console.print(f"[dim]  Estimated {estimate:.2f} MB for this duration[/dim]")
    console.print(f"[green]✓[/green] Wrote {output}")
