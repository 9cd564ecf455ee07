"""Heuristic headshot-rate proxy and composite anomaly ("cheat") score.

Neither number is a validated cheat signal. The headshot rate is derived from
detection-confidence distributions, not from observed shots, and falls back
to a random placeholder when there is no evidence at all. Both are reported
as heuristics so callers can replace the placeholder with real telemetry
while keeping the clamping, threshold table and flag rule below.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from gamescore.config import ScoringSettings
from gamescore.models import Classification, Detection

Evidence = Literal["detections", "insufficient", "not-gameplay"]

UNDEFINED_EVIDENCE_MAX_RATE = 40.0
RATE_VARIANCE_SPAN = 10.0


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True, slots=True)
class HeadshotEstimate:
    rate: float
    evidence: Evidence
    headshot_indicators: int = 0
    total_shot_indicators: int = 0


@dataclass(frozen=True, slots=True)
class AnomalyAssessment:
    """Explainable output of anomaly scoring."""

    headshot_rate: float
    score: float
    flag: bool
    evidence: Evidence
    consistency_ratio: float
    headshot_indicators: int = 0
    total_shot_indicators: int = 0
    reason_tags: tuple[str, ...] = ()


def estimate_headshot_rate(
    detections: Sequence[Detection],
    classification: Classification,
    *,
    rng: RandomSource,
    settings: ScoringSettings | None = None,
) -> HeadshotEstimate:
    """Approximate precision-kill frequency from detection confidences (gameplay only)."""

    settings = settings or ScoringSettings()
    if classification.type != "gameplay":
        return HeadshotEstimate(rate=0.0, evidence="not-gameplay")

    headshot_indicators = 0
    total_shot_indicators = 0
    for detection in detections:
        high = sum(1 for obj in detection.objects if obj.score > settings.high_precision_score)
        medium = sum(
            1
            for obj in detection.objects
            if settings.medium_precision_score < obj.score <= settings.high_precision_score
        )
        headshot_indicators += high
        total_shot_indicators += high + medium

    if total_shot_indicators == 0:
        # no evidence must not read as "clean"
        return HeadshotEstimate(rate=rng.random() * UNDEFINED_EVIDENCE_MAX_RATE, evidence="insufficient")

    base_rate = 100.0 * headshot_indicators / total_shot_indicators
    variance = (rng.random() - 0.5) * RATE_VARIANCE_SPAN
    return HeadshotEstimate(
        rate=round(_clamp(base_rate + variance, 0.0, 100.0), 1),
        evidence="detections",
        headshot_indicators=headshot_indicators,
        total_shot_indicators=total_shot_indicators,
    )


def compute_anomaly_score(
    detections: Sequence[Detection],
    classification: Classification,
    headshot_rate: float,
    settings: ScoringSettings | None = None,
) -> tuple[float, bool, float, tuple[str, ...]]:
    """Additive, capped anomaly score; returns ``(score, flag, consistency_ratio, reason_tags)``."""

    settings = settings or ScoringSettings()
    score = 0.0
    reason_tags: list[str] = []

    if headshot_rate > settings.flag_headshot_rate:
        score += 0.8
        reason_tags.append("signal:headshot_rate_high")
        if headshot_rate > settings.severe_headshot_rate:
            score += 0.2
            reason_tags.append("signal:headshot_rate_severe")

    if classification.type == "gameplay" and classification.confidence > 0.8:
        score += 0.1
        reason_tags.append("signal:confident_gameplay")

    high_confidence_frames = sum(
        1
        for detection in detections
        if any(obj.score > settings.consistency_detection_score for obj in detection.objects)
    )
    consistency_ratio = high_confidence_frames / max(1, len(detections))
    if consistency_ratio > settings.consistency_ratio and headshot_rate > settings.consistency_headshot_rate:
        score += 0.1
        reason_tags.append("signal:uniform_precision")

    final_score = round(min(1.0, score), 3)
    flag = headshot_rate > settings.flag_headshot_rate or final_score > settings.flag_score
    return final_score, flag, consistency_ratio, tuple(reason_tags)


def assess_anomaly(
    detections: Sequence[Detection],
    classification: Classification,
    *,
    rng: RandomSource | None = None,
    settings: ScoringSettings | None = None,
) -> AnomalyAssessment:
    settings = settings or ScoringSettings()
    estimate = estimate_headshot_rate(
        detections,
        classification,
        rng=rng or random.Random(settings.seed),
        settings=settings,
    )
    score, flag, consistency_ratio, reason_tags = compute_anomaly_score(
        detections,
        classification,
        estimate.rate,
        settings,
    )
    return AnomalyAssessment(
        headshot_rate=estimate.rate,
        score=score,
        flag=flag,
        evidence=estimate.evidence,
        consistency_ratio=consistency_ratio,
        headshot_indicators=estimate.headshot_indicators,
        total_shot_indicators=estimate.total_shot_indicators,
        reason_tags=(f"evidence:{estimate.evidence}", *reason_tags),
    )


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
