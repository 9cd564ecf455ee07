from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from gamescore.models import AnalysisResult


class ResultStore(Protocol):
    def save(self, result: AnalysisResult, *, owner_id: str, game: str, region: str) -> str: ...


class JsonResultStore:
    """File-backed persistence collaborator: one JSON document per analysis."""

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def save(self, result: AnalysisResult, *, owner_id: str, game: str, region: str) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        analysis_id = uuid.uuid4().hex
        document = build_record(result, analysis_id=analysis_id, owner_id=owner_id, game=game, region=region)

        path = self.path_for(analysis_id)
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        return analysis_id

    def path_for(self, analysis_id: str) -> Path:
        return self.output_dir / f"analysis_{analysis_id}.json"


def build_record(
    result: AnalysisResult,
    *,
    analysis_id: str,
    owner_id: str,
    game: str,
    region: str,
) -> dict[str, Any]:
    return {
        "id": analysis_id,
        "owner_id": owner_id,
        "game": game,
        "region": region,
        "status": "completed",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "confidence_label": _confidence_label(result.confidence),
        "analysis": result.to_payload(),
    }


def _confidence_label(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.6:
        return "medium"
    return "low"
