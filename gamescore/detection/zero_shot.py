from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openai/clip-vit-base-patch32"


class ZeroShotImageClassifier:
    """CLIP zero-shot scoring of one image against a caller-supplied label set."""

    def __init__(self, pipeline: Any, *, image_module: Any = None, cv2_module: Any = None):
        self._pipeline = pipeline
        self._image_module = image_module
        self._cv2_module = cv2_module

    def score(self, image: Any, labels: Sequence[str]) -> list[tuple[str, float]]:
        """Return ``(label, score)`` pairs ordered by score descending."""

        predictions = self._pipeline(self._to_pil(image), candidate_labels=list(labels))
        scored = [(str(item["label"]), float(item["score"])) for item in predictions or []]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored

    def _to_pil(self, image: Any) -> Any:
        image_module = self._image_module
        if image_module is None:
            from PIL import Image as image_module

        if isinstance(image, image_module.Image):
            return image

        cv2_module = self._cv2_module
        if cv2_module is None:
            import cv2 as cv2_module

        # sampled frames are BGR arrays straight from OpenCV
        return image_module.fromarray(cv2_module.cvtColor(image, cv2_module.COLOR_BGR2RGB))


def load_zero_shot_classifier(model: str = DEFAULT_MODEL, device: str = "auto") -> ZeroShotImageClassifier | None:
    """Load the CLIP pipeline, or return ``None`` when transformers/torch or the weights are unavailable."""

    try:
        from transformers import pipeline

        classifier = pipeline(
            "zero-shot-image-classification",
            model=model,
            device=resolve_torch_device(device),
        )
    except Exception as exc:
        logger.info("Zero-shot image classifier unavailable (%s): %s", model, exc)
        return None

    logger.info("Loaded zero-shot image classifier %s", model)
    return ZeroShotImageClassifier(classifier)


def resolve_torch_device(device: str) -> Any:
    import torch

    normalized = device.strip().lower()
    if normalized == "auto":
        normalized = "cuda" if torch.cuda.is_available() else "cpu"

    return torch.device(normalized)
