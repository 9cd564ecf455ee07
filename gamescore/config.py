from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "GAMESCORE_"
REASONING_KEY_ENV = "OPENROUTER_API_KEY"
REASONING_MODEL_ENV = "OPENROUTER_MODEL"


class PipelineSettings(BaseModel):
    frame_count: int = 10
    max_workers: int = 4
    fallback_fps: float = 1.0
    processing_width: int = 1280
    download_timeout_seconds: int = 60
    output_dir: Path = Path("data/outputs")


class DetectionSettings(BaseModel):
    backends: list[str] = Field(default_factory=lambda: ["trained-model", "zero-shot", "heuristic"])
    yolo_model: str = "yolo11n.pt"
    confidence_threshold: float = 0.25
    zero_shot_model: str = "openai/clip-vit-base-patch32"
    zero_shot_min_score: float = 0.1
    device: str = "auto"
    max_workers: int = 1


class ClassificationSettings(BaseModel):
    zero_shot_enabled: bool = True
    low_confidence_threshold: float = 0.6


class ScoringSettings(BaseModel):
    high_precision_score: float = 0.85
    medium_precision_score: float = 0.6
    flag_headshot_rate: float = 25.0
    severe_headshot_rate: float = 40.0
    consistency_headshot_rate: float = 20.0
    consistency_detection_score: float = 0.9
    consistency_ratio: float = 0.8
    flag_score: float = 0.7
    seed: int | None = None


class ReasoningSettings(BaseModel):
    api_key: str | None = None
    model: str = "openrouter/auto"
    endpoint: str = "https://openrouter.ai/api/v1"
    timeout_seconds: int = 30


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    classification: ClassificationSettings = Field(default_factory=ClassificationSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    reasoning: ReasoningSettings = Field(default_factory=ReasoningSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides."""

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    reasoning = data["reasoning"]
    if not reasoning.get("api_key") and os.getenv(REASONING_KEY_ENV):
        reasoning["api_key"] = os.environ[REASONING_KEY_ENV]
    if os.getenv(REASONING_MODEL_ENV):
        reasoning["model"] = os.environ[REASONING_MODEL_ENV]

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
