from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from gamescore.ingest import probe
from gamescore.ingest.probe import _run_ffprobe, parse_frame_rate, probe_metadata
from gamescore.models import VideoMetadata


def test_run_ffprobe_wraps_missing_binary_error(tmp_path: Path) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    def _raise_missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        raise FileNotFoundError("ffprobe")

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(subprocess, "run", _raise_missing)
        with pytest.raises(RuntimeError, match="ffprobe executable was not found"):
            _run_ffprobe(video_path)


def test_run_ffprobe_reports_shared_library_issue(tmp_path: Path) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    def _raise_process_error(*args: object, **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        raise subprocess.CalledProcessError(
            returncode=127,
            cmd=["ffprobe", str(video_path)],
            output=b"",
            stderr=(
                b"ffprobe: error while loading shared libraries: "
                b"libSvtAv1Enc.so.4: cannot open shared object file: No such file or directory"
            ),
        )

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(subprocess, "run", _raise_process_error)
        with pytest.raises(RuntimeError, match="failed to start because required shared libraries are missing"):
            _run_ffprobe(video_path)


def test_run_ffprobe_wraps_other_called_process_error(tmp_path: Path) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    def _raise_process_error(*args: object, **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        raise subprocess.CalledProcessError(
            returncode=1,
            cmd=["ffprobe", str(video_path)],
            output=b"",
            stderr=b"invalid data found when processing input",
        )

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(subprocess, "run", _raise_process_error)
        with pytest.raises(RuntimeError, match="ffprobe failed while probing media file"):
            _run_ffprobe(video_path)


def test_run_ffprobe_rejects_invalid_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    monkeypatch.setattr(
        subprocess,
        "run",
        lambda *args, **kwargs: subprocess.CompletedProcess(args=args, returncode=0, stdout=b"not json", stderr=b""),
    )

    with pytest.raises(RuntimeError, match="invalid JSON"):
        _run_ffprobe(video_path)


def test_probe_metadata_returns_empty_metadata_when_ffprobe_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    def _raise_missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        raise FileNotFoundError("ffprobe")

    monkeypatch.setattr(subprocess, "run", _raise_missing)

    assert probe_metadata(video_path) == VideoMetadata.empty()


def test_probe_metadata_normalizes_video_stream(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    monkeypatch.setattr(
        probe,
        "_run_ffprobe",
        lambda *_args, **_kwargs: {
            "format": {"duration": "42.5"},
            "streams": [
                {"codec_type": "audio", "duration": "42.4"},
                {"codec_type": "video", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001"},
            ],
        },
    )

    metadata = probe_metadata(video_path)

    assert metadata.duration == pytest.approx(42.5)
    assert (metadata.width, metadata.height) == (1920, 1080)
    assert metadata.fps == pytest.approx(29.97, abs=0.01)


def test_probe_metadata_leaves_unreadable_fields_null(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    video_path = tmp_path / "clip.mp4"
    video_path.write_bytes(b"data")

    monkeypatch.setattr(
        probe,
        "_run_ffprobe",
        lambda *_args, **_kwargs: {"format": {"duration": "N/A"}, "streams": [{"codec_type": "video", "width": 640}]},
    )

    metadata = probe_metadata(video_path)

    assert metadata == VideoMetadata(duration=None, width=640, height=None, fps=None)


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [
        ("60/1", 60.0),
        ("25", 25.0),
        ("30/0", None),
        ("0/0", None),
        ("abc", None),
        (None, None),
    ],
)
def test_parse_frame_rate(raw_value: object, expected: float | None) -> None:
    assert parse_frame_rate(raw_value) == expected
