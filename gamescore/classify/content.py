from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from gamescore.catalog import infer_platform
from gamescore.detection.zero_shot import ZeroShotImageClassifier
from gamescore.models import Classification, Detection, Frame, VideoMetadata
from gamescore.reasoning.client import ReasoningClient, summarize_detections

logger = logging.getLogger(__name__)

ZERO_SHOT_LABELS: tuple[str, ...] = ("gameplay", "tutorial", "vlog", "screen recording", "non-game")
ZERO_SHOT_LABEL_MAP = {"screen recording": "tutorial"}
ZERO_SHOT_CONFIDENCE_BOOST = 0.2
ZERO_SHOT_CONFIDENCE_CAP = 0.98

GAMEPLAY_LABELS = frozenset(
    {"sports ball", "car", "motorcycle", "skateboard", "kite", "snowboard", "surfboard", "tennis racket"}
)
SCREEN_UI_LABELS = frozenset({"tv", "laptop", "keyboard", "mouse", "cell phone"})
PERSON_LABELS = frozenset({"person"})
READING_LABELS = frozenset({"book"})

Tier = tuple[str, Callable[[], Classification | None]]


def classify_content(
    detections: Sequence[Detection],
    frames: Sequence[Frame],
    metadata: VideoMetadata,
    *,
    reasoning: ReasoningClient | None = None,
    zero_shot: ZeroShotImageClassifier | None = None,
) -> Classification:
    """Classify the clip through remote reasoning, zero-shot vision, then heuristics.

    The first tier that produces a verdict wins; a tier that is unavailable or
    fails in any way falls through to the next one. The heuristic tier always
    answers.
    """

    tiers: list[Tier] = []
    if reasoning is not None and reasoning.configured:
        tiers.append(("remote-reasoning", lambda: classify_remote(reasoning, detections, len(frames), metadata)))
    if zero_shot is not None:
        tiers.append(("zero-shot", lambda: classify_zero_shot(zero_shot, frames, detections)))

    for name, attempt in tiers:
        try:
            verdict = attempt()
        except Exception as exc:
            logger.warning("Classification tier %s failed; falling through: %s", name, exc)
            continue
        if verdict is not None:
            logger.info("Classification from %s tier: %s (%.2f)", name, verdict.type, verdict.confidence)
            return verdict
        logger.info("Classification tier %s produced no verdict; falling through", name)

    verdict = classify_heuristic(detections)
    logger.info("Classification from heuristic tier: %s (%.2f)", verdict.type, verdict.confidence)
    return verdict


def classify_remote(
    reasoning: ReasoningClient,
    detections: Sequence[Detection],
    frames_count: int,
    metadata: VideoMetadata,
) -> Classification | None:
    response = reasoning.classify(summarize_detections(detections, frames_count), metadata)
    if not response:
        return None

    platform = response.get("platform", "unknown")
    if platform == "unknown":
        platform = infer_platform(detections)

    return Classification(
        type=response["type"],
        confidence=_clamp(float(response.get("confidence", 0.5))),
        reasons=tuple(response.get("reasons", [])),
        source="remote-reasoning",
        platform=platform,
    )


def classify_zero_shot(
    zero_shot: ZeroShotImageClassifier,
    frames: Sequence[Frame],
    detections: Sequence[Detection] = (),
) -> Classification | None:
    if not frames:
        return None

    totals: dict[str, float] = {label: 0.0 for label in ZERO_SHOT_LABELS}
    for frame in frames:
        for label, score in zero_shot.score(frame.image, ZERO_SHOT_LABELS):
            totals[label] = totals.get(label, 0.0) + score

    grand_total = sum(totals.values()) or 1.0
    top_label, top_total = max(totals.items(), key=lambda item: item[1])
    top_share = top_total / grand_total

    return Classification(
        type=ZERO_SHOT_LABEL_MAP.get(top_label, top_label),
        confidence=round(min(ZERO_SHOT_CONFIDENCE_CAP, top_share + ZERO_SHOT_CONFIDENCE_BOOST), 2),
        reasons=(f"zero-shot top: {top_label} ({top_share:.2f})",),
        source="zero-shot",
        platform=infer_platform(detections),
    )


def classify_heuristic(detections: Sequence[Detection]) -> Classification:
    counts = count_frame_signals(detections)
    gameplay_score = counts["gameplay_score"]
    screen_frames = counts["screen_frames"]
    person_frames = counts["person_frames"]
    platform = infer_platform(detections)

    if gameplay_score >= 2 and screen_frames >= 1:
        return Classification(
            type="gameplay",
            confidence=min(0.95, 0.6 + 0.15 * gameplay_score),
            reasons=("game-related objects", "screen/UI elements detected"),
            platform=platform,
        )
    if person_frames >= 2 and screen_frames >= 1:
        return Classification(
            type="tutorial",
            confidence=min(0.9, 0.5 + 0.1 * person_frames),
            reasons=("person present", "screen/UI elements likely instructional"),
            platform=platform,
        )
    if person_frames >= 2 and screen_frames == 0:
        return Classification(
            type="vlog",
            confidence=min(0.85, 0.5 + 0.1 * person_frames),
            reasons=("person present", "no screen/UI typical of vlog"),
            platform=platform,
        )
    return Classification(
        type="unknown",
        confidence=0.4,
        reasons=("insufficient evidence for classification",),
        platform=platform,
    )


def count_frame_signals(detections: Sequence[Detection]) -> dict[str, int]:
    """Per-frame label presence counts used by the heuristic decision table."""

    counts = {"gameplay_score": 0, "screen_frames": 0, "person_frames": 0, "reading_frames": 0}
    for detection in detections:
        labels = detection.labels()
        if labels & PERSON_LABELS:
            counts["person_frames"] += 1
        if labels & SCREEN_UI_LABELS:
            counts["screen_frames"] += 1
        if labels & READING_LABELS:
            counts["reading_frames"] += 1
        if labels & GAMEPLAY_LABELS:
            counts["gameplay_score"] += 1
    return counts


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
