from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Literal

from gamescore.config import DetectionSettings
from gamescore.detection.zero_shot import ZeroShotImageClassifier, resolve_torch_device
from gamescore.models import DetectedObject, Detection, Frame

logger = logging.getLogger(__name__)

BackendKind = Literal["trained-model", "zero-shot", "heuristic"]
BACKEND_ORDER: tuple[BackendKind, ...] = ("trained-model", "zero-shot", "heuristic")

# COCO classes the downstream classifier and platform inference look for
ZERO_SHOT_VOCABULARY: tuple[str, ...] = (
    "person",
    "tv",
    "laptop",
    "keyboard",
    "mouse",
    "cell phone",
    "book",
    "sports ball",
    "car",
    "motorcycle",
    "skateboard",
    "kite",
    "snowboard",
    "surfboard",
    "tennis racket",
)

HEURISTIC_DETAIL_BYTES = 200 * 1024
HEURISTIC_JPEG_QUALITY = 90

DetectFn = Callable[[Any], list[DetectedObject]]


@dataclass(frozen=True, slots=True)
class DetectorBackend:
    """A capability-tagged detection strategy selected once per pipeline."""

    kind: BackendKind
    name: str
    detect: DetectFn


def select_detector_backend(
    settings: DetectionSettings,
    *,
    zero_shot_factory: Callable[[], ZeroShotImageClassifier | None] | None = None,
    loaders: dict[str, Callable[[], DetectorBackend | None]] | None = None,
) -> DetectorBackend:
    """Return the first available backend in preference order; heuristic is always available.

    ``zero_shot_factory`` is only called when the trained model is unavailable,
    so the CLIP weights are not loaded unless they are needed.
    """

    enabled = [kind for kind in BACKEND_ORDER if kind in set(settings.backends)]
    available_loaders = loaders or {
        "trained-model": lambda: _load_yolo_backend(settings),
        "zero-shot": lambda: _zero_shot_backend(
            zero_shot_factory() if zero_shot_factory else None,
            settings.zero_shot_min_score,
        ),
    }

    for kind in enabled:
        loader = available_loaders.get(kind)
        if loader is None:
            continue
        try:
            backend = loader()
        except Exception as exc:
            logger.warning("Detector backend %s failed to load: %s", kind, exc)
            continue
        if backend is not None:
            logger.info("Using %s detector backend (%s)", backend.kind, backend.name)
            return backend

    logger.info("Using heuristic detector backend")
    return heuristic_backend()


def detect_frames(frames: Sequence[Frame], backend: DetectorBackend, *, max_workers: int = 1) -> list[Detection]:
    """Run one backend over every frame, keeping frame order; a failing frame yields no objects."""

    if not frames:
        return []

    def _detect(frame: Frame) -> Detection:
        try:
            objects = backend.detect(frame.image)
        except Exception as exc:
            logger.warning("Detection failed at %.3fs with %s backend: %s", frame.timestamp_seconds, backend.kind, exc)
            objects = []
        return Detection(timestamp_seconds=frame.timestamp_seconds, objects=_normalize_objects(objects))

    workers = max(1, min(max_workers, len(frames)))
    if workers == 1:
        return [_detect(frame) for frame in frames]

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detector") as executor:
        return list(executor.map(_detect, frames))


def heuristic_backend(cv2_module: Any = None) -> DetectorBackend:
    def _detect(image: Any) -> list[DetectedObject]:
        module = cv2_module
        if module is None:
            import cv2 as module

        ok, encoded = module.imencode(".jpg", image, [module.IMWRITE_JPEG_QUALITY, HEURISTIC_JPEG_QUALITY])
        if not ok:
            return []
        return [heuristic_scene_object(len(encoded))]

    return DetectorBackend(kind="heuristic", name="jpeg-detail-proxy", detect=_detect)


def heuristic_scene_object(encoded_bytes: int) -> DetectedObject:
    """Map encoded image size to a coarse detail label; larger files mean busier scenes."""

    detail = min(1.0, encoded_bytes / HEURISTIC_DETAIL_BYTES)
    return DetectedObject(label="scene-rich" if detail > 0.5 else "scene-simple", score=detail)


def _load_yolo_backend(settings: DetectionSettings) -> DetectorBackend | None:
    try:
        from ultralytics import YOLO
    except ImportError:
        logger.info("ultralytics is not installed; skipping trained-model detector")
        return None

    model = YOLO(settings.yolo_model)
    model.to(resolve_torch_device(settings.device))
    threshold = settings.confidence_threshold

    def _detect(image: Any) -> list[DetectedObject]:
        objects: list[DetectedObject] = []
        for result in model(image, conf=threshold, verbose=False):
            boxes = result.boxes
            if boxes is None:
                continue
            for index in range(len(boxes)):
                label = model.names[int(boxes.cls[index])]
                objects.append(DetectedObject(label=str(label), score=float(boxes.conf[index])))
        return objects

    return DetectorBackend(kind="trained-model", name=settings.yolo_model, detect=_detect)


def _zero_shot_backend(zero_shot: ZeroShotImageClassifier | None, min_score: float) -> DetectorBackend | None:
    if zero_shot is None:
        return None

    def _detect(image: Any) -> list[DetectedObject]:
        return [
            DetectedObject(label=label, score=score)
            for label, score in zero_shot.score(image, ZERO_SHOT_VOCABULARY)
            if score >= min_score
        ]

    return DetectorBackend(kind="zero-shot", name="clip-vocabulary", detect=_detect)


def _normalize_objects(objects: Sequence[DetectedObject]) -> tuple[DetectedObject, ...]:
    normalized = [DetectedObject(label=obj.label, score=_clamp(obj.score)) for obj in objects]
    normalized.sort(key=lambda obj: obj.score, reverse=True)
    return tuple(normalized)


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
