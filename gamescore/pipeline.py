from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable, Sequence
from time import perf_counter
from typing import Any

from gamescore.classify.content import classify_content
from gamescore.compose.recommendations import build_recommendations, merge_tips
from gamescore.compose.summary import build_summary, quality_caveats
from gamescore.config import Settings
from gamescore.detection.backends import DetectorBackend, detect_frames, select_detector_backend
from gamescore.detection.zero_shot import ZeroShotImageClassifier, load_zero_shot_classifier
from gamescore.ingest.frames import extract_frames
from gamescore.ingest.probe import probe_metadata
from gamescore.ingest.source import VideoSource, materialize_video_source
from gamescore.models import AnalysisResult, Classification, Detection, Frame, Highlight, VideoMetadata
from gamescore.reasoning.client import ReasoningClient
from gamescore.scoring.anomaly import RandomSource, assess_anomaly

logger = logging.getLogger(__name__)

ProbeFn = Callable[[Any], VideoMetadata]
SamplerFn = Callable[..., list[Frame]]


class AnalysisOrchestrator:
    """Runs probe → sample → detect → classify → score → summarize → recommend for one video.

    Backends are resolved once, on first use, and reused read-only by later
    calls, so one orchestrator can serve concurrent analyses of different
    videos. Collaborators can be injected for tests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        detector: DetectorBackend | None = None,
        zero_shot: ZeroShotImageClassifier | None = None,
        reasoning: ReasoningClient | None = None,
        rng: RandomSource | None = None,
        probe: ProbeFn = probe_metadata,
        sampler: SamplerFn = extract_frames,
    ):
        self.settings = settings or Settings()
        self.reasoning = reasoning or ReasoningClient(self.settings.reasoning)
        self._detector = detector
        self._zero_shot = zero_shot
        self._zero_shot_resolved = zero_shot is not None
        self._rng = rng
        self._probe = probe
        self._sampler = sampler
        self._lock = threading.Lock()

    def analyze(self, video_source: VideoSource) -> AnalysisResult:
        started_at = perf_counter()
        pipeline = self.settings.pipeline

        with materialize_video_source(video_source, timeout_seconds=pipeline.download_timeout_seconds) as video_path:
            metadata = self._probe(video_path)
            frames = self._sample(video_path, metadata)
            detector = self.detector_backend()
            detections = detect_frames(frames, detector, max_workers=self.settings.detection.max_workers)
            classification = classify_content(
                detections,
                frames,
                metadata,
                reasoning=self.reasoning,
                zero_shot=self._classification_zero_shot(),
            )
            # decoded images are not needed past classification
            del frames

        result = self._assemble(metadata, detections, classification, detector)
        logger.info(
            "Analysis completed in %.1fs: %s (%.2f), anomaly %.3f",
            perf_counter() - started_at,
            result.content_type,
            result.confidence,
            result.anomaly_score,
        )
        return result

    def detector_backend(self) -> DetectorBackend:
        with self._lock:
            if self._detector is None:
                self._detector = select_detector_backend(
                    self.settings.detection,
                    zero_shot_factory=self._zero_shot_unlocked,
                )
            return self._detector

    def _classification_zero_shot(self) -> ZeroShotImageClassifier | None:
        if not self.settings.classification.zero_shot_enabled:
            return None
        with self._lock:
            return self._zero_shot_unlocked()

    def _zero_shot_unlocked(self) -> ZeroShotImageClassifier | None:
        if not self._zero_shot_resolved:
            detection = self.settings.detection
            self._zero_shot = load_zero_shot_classifier(detection.zero_shot_model, detection.device)
            self._zero_shot_resolved = True
        return self._zero_shot

    def _sample(self, video_path: Any, metadata: VideoMetadata) -> list[Frame]:
        pipeline = self.settings.pipeline
        try:
            return self._sampler(
                video_path,
                metadata.duration,
                count=pipeline.frame_count,
                max_workers=pipeline.max_workers,
                fallback_fps=pipeline.fallback_fps,
                processing_width=pipeline.processing_width,
            )
        except ImportError as exc:
            logger.warning("Frame sampling unavailable (%s); continuing without frames", exc)
            return []

    def _assemble(
        self,
        metadata: VideoMetadata,
        detections: Sequence[Detection],
        classification: Classification,
        detector: DetectorBackend,
    ) -> AnalysisResult:
        scoring = self.settings.scoring
        rng = self._rng or random.Random(scoring.seed)
        anomaly = assess_anomaly(detections, classification, rng=rng, settings=scoring)

        summary, highlights = build_summary(detections, metadata.duration)
        recommendations = build_recommendations(classification, metadata)
        summary, recommendations = self._polish(
            classification, metadata, highlights, anomaly.headshot_rate, summary, recommendations
        )

        return AnalysisResult(
            content_type=classification.type,
            content_summary=summary,
            confidence=round(_clamp(classification.confidence), 2),
            highlights=tuple(highlights),
            detections=tuple(detections),
            quality_caveats=tuple(quality_caveats(classification.type, metadata)),
            metadata=metadata,
            headshot_rate=_clamp(anomaly.headshot_rate, 0.0, 100.0),
            anomaly_flag=anomaly.flag,
            anomaly_score=_clamp(anomaly.score),
            recommendations=tuple(recommendations),
            classification_reasons=tuple(classification.reasons),
            classification_source=classification.source,
            detector_backend=detector.kind,
            platform=classification.platform,
            anomaly_reasons=anomaly.reason_tags,
            low_confidence=classification.confidence < self.settings.classification.low_confidence_threshold,
        )

    def _polish(
        self,
        classification: Classification,
        metadata: VideoMetadata,
        highlights: Sequence[Highlight],
        headshot_rate: float,
        summary: str,
        recommendations: list[str],
    ) -> tuple[str, list[str]]:
        if not self.reasoning.configured:
            return summary, recommendations

        try:
            polished = self.reasoning.summarize(classification, metadata, highlights, headshot_rate, summary)
        except Exception as exc:
            logger.warning("Summary polish failed; keeping heuristic summary: %s", exc)
            return summary, recommendations

        if not polished:
            return summary, recommendations

        if isinstance(polished.get("summary"), str) and polished["summary"].strip():
            summary = polished["summary"]
        if isinstance(polished.get("tips"), list):
            recommendations = merge_tips(recommendations, polished["tips"])
        return summary, recommendations


def analyze(video_source: VideoSource, settings: Settings | None = None) -> AnalysisResult:
    """Analyze one complete video from a URL, a local path, or an open binary stream."""

    return AnalysisOrchestrator(settings).analyze(video_source)


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
