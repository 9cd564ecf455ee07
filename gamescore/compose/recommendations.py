from __future__ import annotations

from collections.abc import Iterable

from gamescore.models import Classification, VideoMetadata

MAX_RECOMMENDATIONS = 4
RECORDING_WIDTH_TARGET = 1280
FPS_TARGET = 50

TIPS_BY_TYPE: dict[str, tuple[str, ...]] = {
    "gameplay": (
        "Work on crosshair placement: keep it at head level around corners.",
        "Improve recoil control: fire in controlled bursts and reset aim between sprays.",
        "Positioning matters: use cover and off-angles to take favorable fights.",
    ),
    "tutorial": (
        "Follow along with drills and pause to practice each step.",
        "Record your own attempts to compare against the tutorial progress.",
    ),
}
FUNDAMENTALS_TIPS = ("Focus on fundamentals: aim training, movement drills, and decision-making.",)

RESOLUTION_TIP = "Consider recording at 1280x720 or higher for clearer review of micro-adjustments."
FRAME_RATE_TIP = "Higher FPS (60+) improves motion clarity; adjust game and capture settings."


def build_recommendations(classification: Classification, metadata: VideoMetadata) -> list[str]:
    """Type-specific tips first, then recording-quality tips, deduplicated and capped."""

    tips = list(TIPS_BY_TYPE.get(classification.type, FUNDAMENTALS_TIPS))
    if metadata.width and metadata.width < RECORDING_WIDTH_TARGET:
        tips.append(RESOLUTION_TIP)
    if metadata.fps and metadata.fps < FPS_TARGET:
        tips.append(FRAME_RATE_TIP)
    return merge_tips(tips)


def merge_tips(*tip_groups: Iterable[str], limit: int = MAX_RECOMMENDATIONS) -> list[str]:
    merged: list[str] = []
    for group in tip_groups:
        for tip in group:
            if isinstance(tip, str) and tip not in merged:
                merged.append(tip)
    return merged[: max(limit, 0)]
