from __future__ import annotations

import json
import logging
import math
import subprocess
from pathlib import Path
from typing import Any, BinaryIO

from gamescore.models import VideoMetadata

logger = logging.getLogger(__name__)

STDIN_INPUT = "pipe:0"


def probe_metadata(video: str | Path | BinaryIO) -> VideoMetadata:
    """Read duration, resolution and frame rate; any probe failure yields all-null metadata."""

    try:
        if isinstance(video, (str, Path)):
            payload = _run_ffprobe(Path(video))
        else:
            payload = _run_ffprobe(STDIN_INPUT, stdin_bytes=video.read())
    except (RuntimeError, OSError, ValueError) as exc:
        logger.warning("Metadata probe failed; continuing with empty metadata: %s", exc)
        return VideoMetadata.empty()

    return _normalize_probe_payload(payload)


def _run_ffprobe(video: Path | str, stdin_bytes: bytes | None = None) -> dict[str, Any]:
    command = [
        "ffprobe",
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(video),
    ]

    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            input=stdin_bytes,
        )
    except FileNotFoundError as exc:
        raise RuntimeError(
            "ffprobe executable was not found. Install FFmpeg so ffprobe is available on PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = _decode(exc.stderr).strip()
        if "error while loading shared libraries" in stderr:
            raise RuntimeError(
                "ffprobe is installed but failed to start because required shared libraries are missing. "
                f"ffprobe stderr: {stderr}"
            ) from exc
        details = f" ffprobe stderr: {stderr}" if stderr else ""
        raise RuntimeError(f"ffprobe failed while probing media file: {video}.{details}") from exc

    try:
        return json.loads(_decode(completed.stdout))
    except json.JSONDecodeError as exc:
        raise RuntimeError("ffprobe returned invalid JSON output.") from exc


def _normalize_probe_payload(payload: dict[str, Any]) -> VideoMetadata:
    streams = payload.get("streams") or []
    format_entry = payload.get("format") or {}
    video_stream = next((stream for stream in streams if stream.get("codec_type") == "video"), {})

    duration = _to_positive_float(format_entry.get("duration"))
    if duration is None:
        duration = _to_positive_float(video_stream.get("duration"))

    return VideoMetadata(
        duration=duration,
        width=_to_int(video_stream.get("width")),
        height=_to_int(video_stream.get("height")),
        fps=parse_frame_rate(video_stream.get("r_frame_rate")),
    )


def parse_frame_rate(raw_value: Any) -> float | None:
    """Parse ffprobe's ``num/den`` frame-rate notation; malformed or zero rates give ``None``."""

    if raw_value in (None, "N/A", ""):
        return None

    text = str(raw_value).strip()
    try:
        if "/" in text:
            numerator, denominator = text.split("/", 1)
            if float(denominator) == 0:
                return None
            value = float(numerator) / float(denominator)
        else:
            value = float(text)
    except ValueError:
        return None

    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _to_positive_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        return None


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw
