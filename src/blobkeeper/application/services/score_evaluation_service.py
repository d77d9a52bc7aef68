from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from blobkeeper.application.services.eager_cleanup_service import EagerCleanupService
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.application.services.reconciliation import reconcile_images
from blobkeeper.core.errors import ValidationError
from blobkeeper.core.ids import new_record_id
from blobkeeper.core.time import now_utc_iso
from blobkeeper.domain.models.score_evaluation import ScoreEvaluation
from blobkeeper.infrastructure.db.repos.score_evaluation_repo import ScoreEvaluationRepo

logger = logging.getLogger(__name__)

SCORE_EVALUATIONS_KIND = "score_evaluations"


@dataclass(slots=True)
class ScoreEvaluationInput:
    min_score: float
    max_score: float
    evaluation_text: str | None = None
    images: list[str] = field(default_factory=list)
    deleted_images: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ScoreEvaluationReplaceResult:
    evaluations: list[ScoreEvaluation]
    delete_candidates: list[str]


class ScoreEvaluationService:
    def __init__(
        self,
        repo: ScoreEvaluationRepo,
        *,
        eager_cleanup: EagerCleanupService | None = None,
        registry: ImageRootRegistry | None = None,
    ) -> None:
        self.repo = repo
        self.eager_cleanup = eager_cleanup
        if registry is not None:
            registry.register(SCORE_EVALUATIONS_KIND, repo.list_live_image_ids)

    def list(self) -> list[ScoreEvaluation]:
        return self.repo.list()

    def replace_all(self, items: list[ScoreEvaluationInput]) -> ScoreEvaluationReplaceResult:
        """Replace every evaluation rule with ``items``, reconciling each rule's images."""
        for index, item in enumerate(items):
            self._validate(index, item)

        now = now_utc_iso()
        evaluations: list[ScoreEvaluation] = []
        kept: set[str] = set()
        candidates: list[str] = []
        for item in items:
            reconciliation = reconcile_images(item.images, item.deleted_images, item.evaluation_text)
            kept.update(reconciliation.keep_ids)
            candidates.extend(reconciliation.delete_candidates)
            evaluations.append(
                ScoreEvaluation(
                    id=new_record_id(),
                    min_score=float(item.min_score),
                    max_score=float(item.max_score),
                    evaluation_text=item.evaluation_text,
                    images=reconciliation.keep_ids,
                    created_at=now,
                )
            )

        self.repo.replace_all(evaluations)

        # One rule's deleted image may be another rule's kept image.
        delete_candidates = [i for i in dict.fromkeys(candidates) if i not in kept]
        if delete_candidates and self.eager_cleanup is not None:
            self.eager_cleanup.collect(delete_candidates, kind=SCORE_EVALUATIONS_KIND)
        logger.info(
            "Replaced score evaluations with %d rule(s); %d image(s) offered for cleanup",
            len(evaluations),
            len(delete_candidates),
        )
        return ScoreEvaluationReplaceResult(evaluations=evaluations, delete_candidates=delete_candidates)

    @staticmethod
    def _validate(index: int, item: ScoreEvaluationInput) -> None:
        try:
            low = float(item.min_score)
            high = float(item.max_score)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Evaluation rule {index}: scores must be numbers.") from exc
        if math.isnan(low) or math.isnan(high):
            raise ValidationError(f"Evaluation rule {index}: scores must be numbers.")
        if low > high:
            raise ValidationError(f"Evaluation rule {index}: min_score {low} exceeds max_score {high}.")
