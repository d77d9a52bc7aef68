from __future__ import annotations

from dataclasses import dataclass

from blobkeeper.application.services.article_service import ArticleService
from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.application.services.eager_cleanup_service import EagerCleanupService
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.application.services.score_evaluation_service import ScoreEvaluationService
from blobkeeper.application.services.sweep_scheduler_service import SweepSchedulerService
from blobkeeper.application.services.sweep_service import OrphanSweepService
from blobkeeper.core.config import AppPaths, GCSettings
from blobkeeper.infrastructure.blobs.store import ImageFileStore
from blobkeeper.infrastructure.db.repos.article_repo import ArticleRepo
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo
from blobkeeper.infrastructure.db.repos.score_evaluation_repo import ScoreEvaluationRepo


@dataclass(slots=True)
class ImageLifecycle:
    blob_service: BlobService
    registry: ImageRootRegistry
    eager_cleanup: EagerCleanupService
    sweep_service: OrphanSweepService
    scheduler: SweepSchedulerService
    article_service: ArticleService
    score_evaluation_service: ScoreEvaluationService

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.eager_cleanup.drain(timeout=5.0)
        self.eager_cleanup.shutdown()


def build_image_lifecycle(paths: AppPaths, settings: GCSettings) -> ImageLifecycle:
    """Wire the image store, both collectors and every referencing record kind."""
    blob_service = BlobService(ImageRepo(paths.db_path), ImageFileStore(paths.images_dir))
    registry = ImageRootRegistry()
    eager_cleanup = EagerCleanupService(blob_service, registry=registry, mode=settings.eager_mode)
    sweep_service = OrphanSweepService(
        blob_service,
        registry,
        grace_seconds=settings.sweep_grace_seconds,
    )
    article_service = ArticleService(
        ArticleRepo(paths.db_path),
        blob_service,
        eager_cleanup=eager_cleanup,
        registry=registry,
    )
    score_evaluation_service = ScoreEvaluationService(
        ScoreEvaluationRepo(paths.db_path),
        eager_cleanup=eager_cleanup,
        registry=registry,
    )
    return ImageLifecycle(
        blob_service=blob_service,
        registry=registry,
        eager_cleanup=eager_cleanup,
        sweep_service=sweep_service,
        scheduler=SweepSchedulerService(sweep_service, at=settings.sweep_at),
        article_service=article_service,
        score_evaluation_service=score_evaluation_service,
    )
