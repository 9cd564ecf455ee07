from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from gamescore.catalog import expected_platform, is_valid_region, platform_mismatch
from gamescore.config import Settings, load_settings
from gamescore.ingest.probe import probe_metadata
from gamescore.ingest.source import VideoSourceError, materialize_video_source
from gamescore.logging_config import configure_logging
from gamescore.pipeline import AnalysisOrchestrator
from gamescore.store import JsonResultStore

app = typer.Typer(help="Gameplay clip analysis and anomaly scoring.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLICY_EXIT_CODE = 2


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


@config_app.command("show")
def show_config(
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="GAMESCORE_CONFIG",
        help="Path to YAML configuration file.",
    ),
) -> None:
    """Print resolved runtime configuration (the API key is masked)."""

    settings = _bootstrap(config_path)
    payload = settings.model_dump(mode="json")
    if payload["reasoning"].get("api_key"):
        payload["reasoning"]["api_key"] = "***"
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def probe(
    source: str,
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="GAMESCORE_CONFIG",
        help="Path to YAML configuration file.",
    ),
) -> None:
    """Probe duration, resolution and frame rate of a video path or URL."""

    settings = _bootstrap(config_path)
    try:
        with materialize_video_source(source, timeout_seconds=settings.pipeline.download_timeout_seconds) as path:
            metadata = probe_metadata(path)
    except VideoSourceError as exc:
        logger.error("Probe failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    logger.info("Probe completed for %s", source)
    typer.echo(json.dumps(asdict(metadata), indent=2))


@app.command()
def analyze(
    source: str,
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="GAMESCORE_CONFIG",
        help="Path to YAML configuration file.",
    ),
    frames: int | None = typer.Option(None, help="Number of frames to sample (defaults to pipeline.frame_count)."),
    game: str | None = typer.Option(None, help="Game title the clip was recorded in."),
    region: str | None = typer.Option(None, help="Region/server for the selected game."),
    owner: str = typer.Option("local", help="Owner identifier recorded with a saved analysis."),
    save: bool = typer.Option(False, help="Persist the analysis as JSON under pipeline.output_dir."),
    enforce_policy: bool = typer.Option(
        False,
        help="Reject non-gameplay clips and clips whose detected platform contradicts the selected game.",
    ),
) -> None:
    """Analyze a video path or URL and print the analysis JSON."""

    settings = _bootstrap(config_path)
    if frames is not None:
        settings.pipeline.frame_count = frames

    if game is not None and (region is None or not is_valid_region(game, region)):
        typer.echo(f"Error: The selected region '{region}' is not valid for '{game}'.", err=True)
        raise typer.Exit(code=1)

    total_steps = 2 if save else 1
    orchestrator = AnalysisOrchestrator(settings)
    try:
        result = _run_with_progress(1, total_steps, "Analyze video", lambda: orchestrator.analyze(source))
    except (VideoSourceError, RuntimeError, ValueError) as exc:
        logger.error("Analysis failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    payload = result.to_payload()

    if enforce_policy:
        if result.content_type != "gameplay":
            typer.echo(f"Error: Video does not appear to be gameplay. Detected content: {result.content_type}", err=True)
            raise typer.Exit(code=POLICY_EXIT_CODE)
        if game is not None:
            expected = expected_platform(game)
            if platform_mismatch(expected, result.platform):
                typer.echo(
                    "Error: Selected game/platform does not match the uploaded clip. "
                    f"Expected {expected}, detected {result.platform}.",
                    err=True,
                )
                raise typer.Exit(code=POLICY_EXIT_CODE)

    if save:
        store = JsonResultStore(settings.pipeline.output_dir)
        analysis_id = _run_with_progress(
            2,
            total_steps,
            "Save analysis",
            lambda: store.save(result, owner_id=owner, game=game or "unknown", region=region or "unknown"),
        )
        payload = {"id": analysis_id, "path": str(store.path_for(analysis_id)), **payload}

    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
