from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO
from urllib import request
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_SUFFIX = ".mp4"

VideoSource = str | Path | BinaryIO


class VideoSourceError(RuntimeError):
    """Raised when the source video cannot be obtained at all."""


@contextmanager
def materialize_video_source(
    source: VideoSource,
    *,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
) -> Iterator[Path]:
    """Yield a local file path holding the full video bytes.

    Local paths are used in place. URLs are downloaded and open streams are
    spooled into a temporary file that is removed when the context exits, so
    the probe and the frame sampler can each open their own handle.
    """

    if isinstance(source, (str, Path)) and not _is_url(str(source)):
        path = Path(source).expanduser().resolve()
        if not path.is_file():
            raise VideoSourceError(f"Video file not found: {path}")
        yield path
        return

    with tempfile.TemporaryDirectory(prefix="gamescore-source-") as work_dir:
        if isinstance(source, (str, Path)):
            url = str(source)
            target = Path(work_dir) / f"source{_url_suffix(url)}"
            _download(url, target, timeout_seconds=timeout_seconds)
        else:
            target = Path(work_dir) / f"source{DEFAULT_SUFFIX}"
            _spool_stream(source, target)

        logger.debug("Materialized video source at %s (%d bytes)", target, target.stat().st_size)
        yield target


def _download(url: str, target: Path, *, timeout_seconds: int) -> None:
    try:
        with request.urlopen(url, timeout=timeout_seconds) as response, target.open("wb") as handle:
            shutil.copyfileobj(response, handle)
    except HTTPError as exc:
        raise VideoSourceError(f"Failed to fetch video from {url}: HTTP {exc.code}") from exc
    except (URLError, TimeoutError, OSError, ValueError) as exc:
        raise VideoSourceError(f"Failed to fetch video from {url}: {exc}") from exc


def _spool_stream(stream: BinaryIO, target: Path) -> None:
    if not hasattr(stream, "read"):
        raise VideoSourceError(f"Unsupported video source type: {type(stream).__name__}")
    try:
        with target.open("wb") as handle:
            shutil.copyfileobj(stream, handle)
    except (OSError, ValueError) as exc:
        raise VideoSourceError(f"Failed to read video stream: {exc}") from exc


def _is_url(value: str) -> bool:
    return urlparse(value).scheme in {"http", "https"}


def _url_suffix(url: str) -> str:
    suffix = Path(urlparse(url).path).suffix
    return suffix if 1 < len(suffix) <= 5 else DEFAULT_SUFFIX
