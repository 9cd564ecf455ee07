from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from gamescore.models import Frame

logger = logging.getLogger(__name__)

DEFAULT_FRAME_COUNT = 10
DEFAULT_FALLBACK_FPS = 1.0


def sample_timestamps(duration_seconds: float, count: int) -> list[float]:
    """Evenly spaced interior timestamps; never 0 and never the clip end."""

    if duration_seconds <= 0 or count <= 0:
        return []
    return [duration_seconds * (index + 1) / (count + 1) for index in range(count)]


def extract_frames(
    video_path: str | Path,
    duration_seconds: float | None,
    *,
    count: int = DEFAULT_FRAME_COUNT,
    max_workers: int = 4,
    fallback_fps: float = DEFAULT_FALLBACK_FPS,
    processing_width: int = 0,
    cv2_module: Any = None,
) -> list[Frame]:
    """Extract up to ``count`` representative frames, best effort per timestamp.

    With a known duration each timestamp is seeked independently on a bounded
    worker pool and the results are reassembled in timestamp order. Without a
    duration the first ``count`` frames at ``fallback_fps`` are read instead.
    Frames that fail to decode are dropped, so the result may be shorter than
    ``count`` or empty.
    """

    if cv2_module is None:
        import cv2 as cv2_module

    source = str(video_path)
    if duration_seconds is None or duration_seconds <= 0:
        frames = _read_leading_frames(source, count, fallback_fps, processing_width, cv2_module)
    else:
        timestamps = sample_timestamps(duration_seconds, count)
        workers = max(1, min(max_workers, len(timestamps)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="frame-sampler") as executor:
            extracted = executor.map(
                lambda timestamp: _read_frame_at(source, timestamp, processing_width, cv2_module),
                timestamps,
            )
            frames = [frame for frame in extracted if frame is not None]

    logger.info("Sampled %d/%d frames from %s", len(frames), count, source)
    return frames


def _read_frame_at(source: str, timestamp_seconds: float, processing_width: int, cv2_module: Any) -> Frame | None:
    capture = None
    try:
        capture = cv2_module.VideoCapture(source)
        if not capture.isOpened():
            logger.debug("Unable to open %s for frame at %.3fs", source, timestamp_seconds)
            return None
        capture.set(cv2_module.CAP_PROP_POS_MSEC, timestamp_seconds * 1000.0)
        ok, image = capture.read()
        if not ok or image is None:
            return None
        image = _resize_frame(image, processing_width=processing_width, cv2_module=cv2_module)
    except Exception as exc:
        # one bad seek, decode or resize must not cost the other frames
        logger.debug("Frame extraction failed at %.3fs: %s", timestamp_seconds, exc)
        return None
    finally:
        if capture is not None:
            capture.release()

    return Frame(timestamp_seconds=timestamp_seconds, image=image)


def _read_leading_frames(
    source: str,
    count: int,
    fallback_fps: float,
    processing_width: int,
    cv2_module: Any,
) -> list[Frame]:
    try:
        capture = cv2_module.VideoCapture(source)
    except Exception as exc:
        logger.warning("Unable to open video for frame sampling: %s (%s)", source, exc)
        return []
    if not capture.isOpened():
        capture.release()
        logger.warning("Unable to open video for frame sampling: %s", source)
        return []

    native_fps = float(capture.get(cv2_module.CAP_PROP_FPS) or 0.0)
    if native_fps <= 0:
        native_fps = max(fallback_fps, 1.0)
    frame_interval = max(int(round(native_fps / max(fallback_fps, 0.1))), 1)

    frames: list[Frame] = []
    frame_index = 0
    try:
        while len(frames) < count:
            try:
                ok, image = capture.read()
            except Exception as exc:
                logger.debug("Frame read failed at index %d: %s", frame_index, exc)
                break
            if not ok:
                break

            if frame_index % frame_interval == 0:
                try:
                    resized = _resize_frame(image, processing_width=processing_width, cv2_module=cv2_module)
                except Exception as exc:
                    logger.debug("Frame resize failed at index %d: %s", frame_index, exc)
                else:
                    frames.append(Frame(timestamp_seconds=frame_index / native_fps, image=resized))
            frame_index += 1
    finally:
        capture.release()

    return frames


def _resize_frame(image: Any, *, processing_width: int, cv2_module: Any) -> Any:
    if processing_width <= 0:
        return image

    height, width = image.shape[:2]
    if width <= processing_width:
        return image

    target_height = max(1, int(round(height * processing_width / width)))
    return cv2_module.resize(image, (processing_width, target_height), interpolation=cv2_module.INTER_AREA)
