from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ScoreEvaluation:
    id: str
    min_score: float
    max_score: float
    evaluation_text: str | None
    images: list[str] = field(default_factory=list)
    created_at: str = ""
