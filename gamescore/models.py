from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

ContentType = Literal["gameplay", "tutorial", "vlog", "non-game", "unknown"]
CONTENT_TYPES: tuple[str, ...] = ("gameplay", "tutorial", "vlog", "non-game", "unknown")
LOW_CONFIDENCE_CAVEAT = "Low confidence due to limited evidence"


@dataclass(frozen=True, slots=True)
class VideoMetadata:
    """Technical metadata for one video; ``None`` marks a value the probe could not read."""

    duration: float | None = None
    width: int | None = None
    height: int | None = None
    fps: float | None = None

    @classmethod
    def empty(cls) -> VideoMetadata:
        return cls()


@dataclass(frozen=True, slots=True)
class Frame:
    """A decoded still frame, owned by the sampler and released after classification."""

    timestamp_seconds: float
    image: Any = field(repr=False)


@dataclass(frozen=True, slots=True)
class DetectedObject:
    label: str
    score: float


@dataclass(frozen=True, slots=True)
class Detection:
    """All objects recognised in a single sampled frame, ordered by score descending."""

    timestamp_seconds: float
    objects: tuple[DetectedObject, ...] = ()

    def labels(self) -> set[str]:
        return {obj.label for obj in self.objects}


@dataclass(frozen=True, slots=True)
class Classification:
    type: str
    confidence: float
    reasons: tuple[str, ...] = ()
    source: str = "heuristic"
    platform: str = "unknown"


@dataclass(frozen=True, slots=True)
class Highlight:
    timestamp_seconds: float
    label: str
    confidence: float


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Terminal aggregate of one analysis, handed to the persistence collaborator."""

    content_type: str
    content_summary: str
    confidence: float
    highlights: tuple[Highlight, ...]
    detections: tuple[Detection, ...]
    quality_caveats: tuple[str, ...]
    metadata: VideoMetadata
    headshot_rate: float
    anomaly_flag: bool
    anomaly_score: float
    recommendations: tuple[str, ...]
    classification_reasons: tuple[str, ...] = ()
    classification_source: str = "heuristic"
    detector_backend: str = "heuristic"
    platform: str = "unknown"
    anomaly_reasons: tuple[str, ...] = ()
    low_confidence: bool = False

    @property
    def potential_misclassifications(self) -> list[str]:
        caveats = [LOW_CONFIDENCE_CAVEAT] if self.low_confidence else []
        caveats.extend(self.quality_caveats)
        return caveats

    def to_payload(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type,
            "content_summary": self.content_summary,
            "analysis_confidence": self.confidence,
            "timestamped_highlights": [
                {"t": round(item.timestamp_seconds, 3), "label": item.label, "confidence": item.confidence}
                for item in self.highlights
            ],
            "detected_objects/scenes": [
                {
                    "t": round(detection.timestamp_seconds, 3),
                    "objects": [{"name": obj.label, "score": obj.score} for obj in detection.objects],
                }
                for detection in self.detections
            ],
            "potential_misclassifications": self.potential_misclassifications,
            "metadata": asdict(self.metadata),
            "cheat_flag": self.anomaly_flag,
            "cheat_score": self.anomaly_score,
            "headshot_rate": self.headshot_rate,
            "headshot_rate_method": "heuristic-proxy",
            "recommendations": list(self.recommendations),
            "classification_reasons": list(self.classification_reasons),
            "classification_source": self.classification_source,
            "detector_backend": self.detector_backend,
            "platform": self.platform,
            "anomaly_reasons": list(self.anomaly_reasons),
        }
