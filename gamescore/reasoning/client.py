from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any
from urllib import request
from urllib.error import HTTPError, URLError

from gamescore.config import ReasoningSettings
from gamescore.models import CONTENT_TYPES, Classification, Detection, Highlight, VideoMetadata

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
CLASSIFY_PROMPT_PATH = PROMPTS_DIR / "classify_prompt.txt"
SUMMARY_PROMPT_PATH = PROMPTS_DIR / "summary_prompt.txt"
ALLOWED_PLATFORMS = {"mobile", "pc", "console", "unknown"}
DEFAULT_CONFIDENCE = 0.5
MAX_SAMPLE_OBJECTS = 12

_RECOVERABLE_ERRORS = (json.JSONDecodeError, ValueError, HTTPError, URLError, TimeoutError, OSError, KeyError, TypeError)


class ReasoningClient:
    """Remote LLM collaborator (OpenRouter chat completions).

    Both calls return ``None`` on any failure: a missing key, a network error or
    a malformed response. They are single attempts with no retry.
    """

    def __init__(self, settings: ReasoningSettings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.api_key)

    def classify(self, detection_summary: dict[str, Any], metadata: VideoMetadata) -> dict[str, Any] | None:
        if not self.configured:
            return None

        user_payload = {**detection_summary, "metadata": asdict(metadata)}
        try:
            content = self._complete(CLASSIFY_PROMPT_PATH, user_payload, temperature=0.1)
            return _validate_classification(_extract_json_object(content))
        except _RECOVERABLE_ERRORS as exc:
            logger.warning("Remote classification unavailable: %s", exc)
            return None

    def summarize(
        self,
        classification: Classification,
        metadata: VideoMetadata,
        highlights: Sequence[Highlight],
        headshot_rate: float,
        base_summary: str,
    ) -> dict[str, Any] | None:
        if not self.configured:
            return None

        user_payload = {
            "classification": {
                "type": classification.type,
                "confidence": classification.confidence,
                "reasons": list(classification.reasons),
            },
            "metadata": asdict(metadata),
            "highlights": [
                {"t": item.timestamp_seconds, "label": item.label, "confidence": item.confidence}
                for item in highlights
            ],
            "headshotRate": headshot_rate,
            "baseSummary": base_summary,
        }
        try:
            content = self._complete(SUMMARY_PROMPT_PATH, user_payload, temperature=0.2)
            return _validate_summary(_extract_json_object(content))
        except _RECOVERABLE_ERRORS as exc:
            logger.warning("Remote summary unavailable: %s", exc)
            return None

    def _complete(self, prompt_path: Path, user_payload: dict[str, Any], *, temperature: float) -> str:
        system_prompt = prompt_path.read_text(encoding="utf-8").strip()
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": f"DATA:\n{json.dumps(user_payload, ensure_ascii=False)}"},
        ]
        return _request_openrouter(
            endpoint=self.settings.endpoint,
            api_key=str(self.settings.api_key),
            model=self.settings.model,
            messages=messages,
            temperature=temperature,
            timeout_seconds=self.settings.timeout_seconds,
        )


def summarize_detections(detections: Sequence[Detection], frames_count: int) -> dict[str, Any]:
    """Reduce per-frame detections to the compact counts sent to the remote classifier."""

    object_counts: dict[str, int] = {}
    for detection in detections:
        for obj in detection.objects:
            name = obj.label.lower()
            object_counts[name] = object_counts.get(name, 0) + 1

    return {
        "framesCount": frames_count,
        "objectCounts": object_counts,
        "sampleObjects": list(object_counts)[:MAX_SAMPLE_OBJECTS],
    }


def _request_openrouter(
    *,
    endpoint: str,
    api_key: str,
    model: str,
    messages: list[dict[str, str]],
    temperature: float,
    timeout_seconds: int,
) -> str:
    body = json.dumps(
        {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
    ).encode("utf-8")

    req = request.Request(
        f"{endpoint.rstrip('/')}/chat/completions",
        data=body,
        method="POST",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
    )

    with request.urlopen(req, timeout=timeout_seconds) as response:
        payload = json.loads(response.read().decode("utf-8"))

    content = (((payload.get("choices") or [{}])[0]).get("message") or {}).get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Chat completion response missing message content.")
    return content


def _extract_json_object(content: str) -> dict[str, Any]:
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("Model response did not contain a JSON object.")

    parsed = json.loads(content[start : end + 1])
    if not isinstance(parsed, dict):
        raise ValueError("Model response JSON must be an object.")
    return parsed


def _validate_classification(payload: dict[str, Any]) -> dict[str, Any]:
    content_type = payload.get("type")
    if not isinstance(content_type, str) or content_type.strip().lower() not in CONTENT_TYPES:
        raise ValueError(f"type must be one of {list(CONTENT_TYPES)}.")

    raw_confidence = payload.get("confidence")
    if isinstance(raw_confidence, bool) or not isinstance(raw_confidence, int | float):
        confidence = DEFAULT_CONFIDENCE
    else:
        confidence = max(0.0, min(1.0, float(raw_confidence)))

    reasons = payload.get("reasons")
    platform = payload.get("platform")

    return {
        "type": content_type.strip().lower(),
        "confidence": confidence,
        "reasons": [reason for reason in reasons if isinstance(reason, str)] if isinstance(reasons, list) else [],
        "platform": platform if platform in ALLOWED_PLATFORMS else "unknown",
    }


def _validate_summary(payload: dict[str, Any]) -> dict[str, Any]:
    summary = payload.get("summary")
    tips = payload.get("tips")

    validated: dict[str, Any] = {}
    if isinstance(summary, str) and summary.strip():
        validated["summary"] = summary.strip()
    if isinstance(tips, list):
        validated["tips"] = [tip.strip() for tip in tips if isinstance(tip, str) and tip.strip()]
    return validated
