from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import gamescore.cli as cli
from gamescore.config import Settings
from gamescore.ingest.source import VideoSourceError
from gamescore.models import AnalysisResult, VideoMetadata


def _result(content_type: str = "gameplay", platform: str = "pc") -> AnalysisResult:
    return AnalysisResult(
        content_type=content_type,
        content_summary="Analyzed 3 sampled frames over 30.0s. 2 key moments identified.",
        confidence=0.9,
        highlights=(),
        detections=(),
        quality_caveats=(),
        metadata=VideoMetadata(duration=30.0, width=1920, height=1080, fps=60.0),
        headshot_rate=18.5,
        anomaly_flag=False,
        anomaly_score=0.1,
        recommendations=("Tip",),
        platform=platform,
    )


def _fake_orchestrator(outcome):
    class _FakeOrchestrator:
        def __init__(self, settings):
            self.settings = settings

        def analyze(self, source):
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    return _FakeOrchestrator


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    loaded = Settings()
    loaded.pipeline.output_dir = tmp_path / "outputs"
    monkeypatch.setattr(cli, "_bootstrap", lambda _: loaded)
    return loaded


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"data")
    return path


def test_analyze_prints_payload_with_progress(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result()))

    result = CliRunner().invoke(cli.app, ["analyze", str(video_file)])

    assert result.exit_code == 0
    assert "[1/1] Analyze video..." in result.output
    assert "[1/1] Analyze video done" in result.output
    assert '"content_type": "gameplay"' in result.output
    assert '"cheat_score": 0.1' in result.output


def test_analyze_overrides_frame_count(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result()))

    result = CliRunner().invoke(cli.app, ["analyze", str(video_file), "--frames", "4"])

    assert result.exit_code == 0
    assert settings.pipeline.frame_count == 4


def test_analyze_prints_clean_error_without_traceback(settings: Settings, tmp_path: Path, monkeypatch) -> None:
    missing = tmp_path / "missing.mp4"
    monkeypatch.setattr(
        cli,
        "AnalysisOrchestrator",
        _fake_orchestrator(VideoSourceError(f"Video file not found: {missing}")),
    )

    result = CliRunner().invoke(cli.app, ["analyze", str(missing)])

    assert result.exit_code == 1
    assert "[1/1] Analyze video failed" in result.output
    assert "Error: Video file not found" in result.output
    assert "Traceback" not in result.output


def test_analyze_rejects_invalid_region(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(AssertionError("should not run")))

    result = CliRunner().invoke(cli.app, ["analyze", str(video_file), "--game", "BGMI", "--region", "NA"])

    assert result.exit_code == 1
    assert "is not valid for 'BGMI'" in result.output


def test_analyze_enforces_gameplay_policy(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result(content_type="vlog")))

    result = CliRunner().invoke(cli.app, ["analyze", str(video_file), "--enforce-policy"])

    assert result.exit_code == 2
    assert "Detected content: vlog" in result.output


def test_analyze_enforces_platform_policy(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result(platform="mobile")))

    result = CliRunner().invoke(
        cli.app,
        ["analyze", str(video_file), "--game", "Valorant", "--region", "NA", "--enforce-policy"],
    )

    assert result.exit_code == 2
    assert "Expected pc, detected mobile" in result.output


def test_analyze_without_policy_accepts_non_gameplay(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result(content_type="vlog")))

    result = CliRunner().invoke(cli.app, ["analyze", str(video_file)])

    assert result.exit_code == 0


def test_analyze_saves_result(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "AnalysisOrchestrator", _fake_orchestrator(_result()))

    result = CliRunner().invoke(
        cli.app,
        ["analyze", str(video_file), "--game", "Valorant", "--region", "NA", "--owner", "user-7", "--save"],
    )

    assert result.exit_code == 0
    assert "[2/2] Save analysis done" in result.output
    saved = list(settings.pipeline.output_dir.glob("analysis_*.json"))
    assert len(saved) == 1
    document = json.loads(saved[0].read_text(encoding="utf-8"))
    assert document["owner_id"] == "user-7"
    assert document["game"] == "Valorant"
    assert document["id"] in result.output


def test_probe_prints_metadata(settings: Settings, video_file: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "probe_metadata", lambda _path: VideoMetadata(duration=12.0, width=1280, height=720, fps=30.0))

    result = CliRunner().invoke(cli.app, ["probe", str(video_file)])

    assert result.exit_code == 0
    assert '"duration": 12.0' in result.output
    assert '"fps": 30.0' in result.output


def test_probe_missing_file_exits_with_error(settings: Settings, tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.app, ["probe", str(tmp_path / "missing.mp4")])

    assert result.exit_code == 1
    assert "Error: Video file not found" in result.output


def test_config_show_masks_api_key(settings: Settings) -> None:
    settings.reasoning.api_key = "sk-secret"

    result = CliRunner().invoke(cli.app, ["config", "show"])

    assert result.exit_code == 0
    assert "sk-secret" not in result.output
    assert '"api_key": "***"' in result.output
