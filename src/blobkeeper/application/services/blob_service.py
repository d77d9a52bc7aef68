from __future__ import annotations

import logging
import mimetypes
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePath

from blobkeeper.core.errors import BlobStorageError, RecordNotFoundError, ValidationError
from blobkeeper.core.hashing import sha256_bytes
from blobkeeper.core.ids import new_image_id
from blobkeeper.core.time import now_utc_iso
from blobkeeper.domain.models.image import ImageBlob
from blobkeeper.infrastructure.blobs.store import IMAGE_SUFFIXES, ImageFileStore, is_image_id
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo

_module_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestResult:
    image: ImageBlob
    status: str
    original_filename: str


@dataclass(slots=True)
class RemoveResult:
    image_id: str
    record_deleted: bool
    file_deleted: bool

    @property
    def already_gone(self) -> bool:
        return not self.record_deleted and not self.file_deleted


@dataclass(slots=True)
class RemoveFailure:
    image_id: str
    error: str


@dataclass(slots=True)
class BatchRemoveResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[RemoveFailure] = field(default_factory=list)


class BlobService:
    """Owns image bytes and image records; the only component allowed to write or delete either."""

    def __init__(
        self,
        image_repo: ImageRepo,
        file_store: ImageFileStore,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.image_repo = image_repo
        self.file_store = file_store
        self.logger = logger or _module_logger

    def ingest(self, content: bytes, original_filename: str) -> IngestResult:
        name = PurePath(original_filename or "").name
        suffix = PurePath(name).suffix.lower()
        if suffix not in IMAGE_SUFFIXES:
            raise ValidationError(
                f"Unsupported image type for {name or '<unnamed>'!r}; expected one of {', '.join(IMAGE_SUFFIXES)}."
            )
        if not content:
            raise ValidationError(f"Upload content is empty: {name}")

        digest_sha256 = sha256_bytes(content)
        try:
            existing = self.image_repo.get_live_by_digest(digest_sha256)
        except sqlite3.Error as exc:
            raise BlobStorageError(f"Unable to look up image digest: {exc}") from exc
        if existing is not None:
            self.logger.info("Duplicate upload %s, reusing image %s", name, existing.id)
            return self._reuse(existing, name)

        now = now_utc_iso()
        image = ImageBlob(
            id=new_image_id(suffix),
            digest_sha256=digest_sha256,
            original_filename=name,
            media_type=mimetypes.guess_type(name)[0] or "application/octet-stream",
            size_bytes=len(content),
            live=True,
            created_at=now,
            last_ingested_at=now,
        )
        try:
            self.file_store.write(image.id, content)
        except OSError as exc:
            raise BlobStorageError(f"Unable to store image bytes for {name}: {exc}") from exc

        try:
            self.image_repo.insert(image)
        except sqlite3.IntegrityError:
            # A concurrent upload of the same bytes committed first.
            self._discard_file(image.id)
            winner = self.image_repo.get_live_by_digest(digest_sha256)
            if winner is None:
                raise BlobStorageError(f"Image record conflict for digest {digest_sha256} could not be resolved.")
            self.logger.info("Concurrent duplicate upload %s, reusing image %s", name, winner.id)
            return self._reuse(winner, name)
        except sqlite3.Error as exc:
            self._discard_file(image.id)
            raise BlobStorageError(f"Unable to record image {image.id}: {exc}") from exc

        self.logger.info("Stored new image %s (%s, %d bytes)", image.id, name, image.size_bytes)
        return IngestResult(image=image, status="ingested", original_filename=name)

    def remove(self, image_id: str) -> RemoveResult:
        """Delete an image's record and bytes; removing something already gone succeeds."""
        if not is_image_id(image_id):
            self.logger.warning("Ignoring removal of malformed image id: %r", image_id)
            return RemoveResult(image_id=image_id, record_deleted=False, file_deleted=False)

        try:
            # Dead records drop out of dedup and the heap before the bytes go.
            self.image_repo.mark_dead(image_id)
            file_deleted = self.file_store.delete(image_id)
            record_deleted = self.image_repo.delete(image_id)
        except (OSError, sqlite3.Error) as exc:
            raise BlobStorageError(f"Failed to remove image {image_id}: {exc}") from exc

        result = RemoveResult(image_id=image_id, record_deleted=record_deleted, file_deleted=file_deleted)
        if result.already_gone:
            self.logger.warning("Image %s was already removed (no record, no file)", image_id)
        else:
            self.logger.info(
                "Removed image %s (record=%s, file=%s)", image_id, record_deleted, file_deleted
            )
        return result

    def remove_many(self, image_ids: list[str]) -> BatchRemoveResult:
        result = BatchRemoveResult()
        for image_id in image_ids:
            try:
                self.remove(image_id)
            except BlobStorageError as exc:
                self.logger.error("Failed to remove image %s: %s", image_id, exc)
                result.failed.append(RemoveFailure(image_id=image_id, error=str(exc)))
                continue
            result.deleted.append(image_id)
        return result

    def read(self, image_id: str) -> tuple[ImageBlob, Path]:
        image = self.image_repo.get_by_id(image_id) if is_image_id(image_id) else None
        if image is None or not image.live:
            raise RecordNotFoundError(f"Image not found: {image_id}")
        path = self.file_store.path_for(image_id)
        if not path.is_file():
            raise RecordNotFoundError(f"Image file missing for image: {image_id}")
        return image, path

    def list_live(self, limit: int = 100) -> list[ImageBlob]:
        return self.image_repo.list_live(limit=limit)

    def unknown_ids(self, image_ids: list[str]) -> list[str]:
        """Ids this store has never seen; callers accept them, they just never match at sweep time."""
        known = self.image_repo.existing_ids(list(dict.fromkeys(image_ids)))
        return [image_id for image_id in dict.fromkeys(image_ids) if image_id not in known]

    def heap_snapshot(self, cutoff: datetime | None = None) -> set[str]:
        """Every image id the store currently holds.

        That is live records, records already marked dead by an interrupted
        removal, and stored files with no record at all. With ``cutoff`` only
        records last uploaded (or stray files written) before that instant count.
        """
        cutoff_iso = cutoff.isoformat() if cutoff is not None else None
        try:
            stored = self.file_store.list_ids(modified_before=cutoff)
            heap = self.image_repo.list_live_ids(ingested_before=cutoff_iso)
            heap |= self.image_repo.list_dead_ids()
            heap |= stored - self.image_repo.list_all_ids()
        except (OSError, sqlite3.Error) as exc:
            raise BlobStorageError(f"Unable to snapshot stored images: {exc}") from exc
        return heap

    def _reuse(self, image: ImageBlob, name: str) -> IngestResult:
        # Restart the sweep grace period: the uploader is about to reference this id.
        touched_at = now_utc_iso()
        try:
            self.image_repo.touch_ingested(image.id, touched_at)
        except sqlite3.Error as exc:
            raise BlobStorageError(f"Unable to refresh image {image.id}: {exc}") from exc
        image.last_ingested_at = max(image.last_ingested_at, touched_at)
        return IngestResult(image=image, status="duplicate", original_filename=name)

    def _discard_file(self, image_id: str) -> None:
        try:
            self.file_store.delete(image_id)
        except OSError as exc:
            self.logger.warning("Could not discard unreferenced bytes for %s: %s", image_id, exc)
