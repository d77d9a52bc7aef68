from __future__ import annotations

import logging
from dataclasses import dataclass

from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.application.services.eager_cleanup_service import EagerCleanupService
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.application.services.reconciliation import (
    Reconciliation,
    reconcile_deletion,
    reconcile_images,
)
from blobkeeper.core.errors import RecordNotFoundError, ValidationError
from blobkeeper.core.ids import new_record_id
from blobkeeper.core.time import now_utc_iso
from blobkeeper.domain.models.article import Article
from blobkeeper.infrastructure.db.repos.article_repo import ArticleRepo

logger = logging.getLogger(__name__)

ARTICLES_KIND = "articles"


@dataclass(slots=True)
class ArticleSaveResult:
    article: Article
    reconciliation: Reconciliation


class ArticleService:
    def __init__(
        self,
        article_repo: ArticleRepo,
        blob_service: BlobService,
        *,
        eager_cleanup: EagerCleanupService | None = None,
        registry: ImageRootRegistry | None = None,
    ) -> None:
        self.article_repo = article_repo
        self.blob_service = blob_service
        self.eager_cleanup = eager_cleanup
        if registry is not None:
            registry.register(ARTICLES_KIND, article_repo.list_live_image_ids)

    def create(
        self,
        title: str,
        content: str | None = None,
        images: list[str] | None = None,
        deleted_images: list[str] | None = None,
    ) -> ArticleSaveResult:
        clean_title = self._validate_title(title)
        reconciliation = reconcile_images(images, deleted_images, content)
        self._note_unknown_images(reconciliation.keep_ids)

        now = now_utc_iso()
        article = Article(
            id=new_record_id(),
            title=clean_title,
            content=content,
            images=reconciliation.keep_ids,
            created_at=now,
            updated_at=now,
        )
        self.article_repo.insert(article)
        self._hand_off(reconciliation)
        return ArticleSaveResult(article=article, reconciliation=reconciliation)

    def update(
        self,
        article_id: str,
        title: str,
        content: str | None = None,
        images: list[str] | None = None,
        deleted_images: list[str] | None = None,
    ) -> ArticleSaveResult:
        existing = self.article_repo.get_by_id(article_id)
        if existing is None:
            raise RecordNotFoundError(f"Article not found: {article_id}")

        clean_title = self._validate_title(title)
        reconciliation = reconcile_images(images, deleted_images, content)
        self._note_unknown_images(reconciliation.keep_ids)

        existing.title = clean_title
        existing.content = content
        existing.images = reconciliation.keep_ids
        existing.updated_at = now_utc_iso()
        if not self.article_repo.update(existing):
            raise RecordNotFoundError(f"Article not found: {article_id}")
        self._hand_off(reconciliation)
        return ArticleSaveResult(article=existing, reconciliation=reconciliation)

    def delete(self, article_id: str) -> Reconciliation:
        existing = self.article_repo.get_by_id(article_id)
        if existing is None:
            raise RecordNotFoundError(f"Article not found: {article_id}")
        if not self.article_repo.soft_delete(article_id, now_utc_iso()):
            raise RecordNotFoundError(f"Article not found: {article_id}")
        reconciliation = reconcile_deletion(existing.images)
        self._hand_off(reconciliation)
        return reconciliation

    def get(self, article_id: str) -> Article:
        article = self.article_repo.get_by_id(article_id)
        if article is None:
            raise RecordNotFoundError(f"Article not found: {article_id}")
        return article

    def list(self, *, limit: int = 20, offset: int = 0, title: str = "") -> tuple[list[Article], int]:
        return self.article_repo.list(limit=limit, offset=offset, title=title.strip())

    @staticmethod
    def _validate_title(title: str) -> str:
        clean = (title or "").strip()
        if not clean:
            raise ValidationError("Article title is required.")
        return clean

    def _note_unknown_images(self, image_ids: list[str]) -> None:
        unknown = self.blob_service.unknown_ids(image_ids)
        if unknown:
            logger.debug("Article references image ids unknown to the store: %s", ", ".join(unknown))

    def _hand_off(self, reconciliation: Reconciliation) -> None:
        if reconciliation.is_noop or self.eager_cleanup is None:
            return
        self.eager_cleanup.collect(reconciliation.delete_candidates, kind=ARTICLES_KIND)
