from __future__ import annotations

from collections.abc import Sequence

from gamescore.models import Detection, Highlight, VideoMetadata

HIGHLIGHT_MIN_SCORE = 0.6
SHORT_DURATION_SECONDS = 10.0
LOW_RESOLUTION_WIDTH = 640

SHORT_DURATION_CAVEAT = "Very short duration may cause misclassification"
LOW_RESOLUTION_CAVEAT = "Low resolution may reduce detection accuracy"
MISSING_RESOLUTION_CAVEAT = "Missing resolution reduces confidence for gameplay classification"


def build_highlights(detections: Sequence[Detection], min_score: float = HIGHLIGHT_MIN_SCORE) -> list[Highlight]:
    """One highlight per frame whose strongest detection clears ``min_score``, in timeline order."""

    highlights: list[Highlight] = []
    for detection in detections:
        if not detection.objects:
            continue
        top = max(detection.objects, key=lambda obj: obj.score)
        if top.score > min_score:
            highlights.append(
                Highlight(
                    timestamp_seconds=round(detection.timestamp_seconds, 2),
                    label=f"Detected {top.label}",
                    confidence=round(top.score, 2),
                )
            )
    return highlights


def build_summary(detections: Sequence[Detection], duration: float | None) -> tuple[str, list[Highlight]]:
    highlights = build_highlights(detections)
    span = f" over {duration:.1f}s" if duration else ""
    summary = f"Analyzed {len(detections)} sampled frames{span}. {len(highlights)} key moments identified."
    return summary, highlights


def quality_caveats(content_type: str, metadata: VideoMetadata) -> list[str]:
    """Independent, additive data-quality warnings; a missing value counts as failing its check."""

    caveats: list[str] = []
    if not metadata.duration or metadata.duration < SHORT_DURATION_SECONDS:
        caveats.append(SHORT_DURATION_CAVEAT)
    if not metadata.width or not metadata.height or metadata.width < LOW_RESOLUTION_WIDTH:
        caveats.append(LOW_RESOLUTION_CAVEAT)
    if content_type == "gameplay" and (not metadata.width or not metadata.height):
        caveats.append(MISSING_RESOLUTION_CAVEAT)
    return caveats
