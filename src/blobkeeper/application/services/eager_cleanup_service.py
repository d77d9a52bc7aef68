from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass

from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.core.config import EAGER_MODE_OFF, EAGER_MODE_SAME_KIND, EAGER_MODES
from blobkeeper.core.errors import BlobStorageError, ConfigurationError, RootCollectionError

_module_logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _CleanupJob:
    candidate_ids: tuple[str, ...]
    kind: str | None


class EagerCleanupService:
    """Best-effort removal of a record's deletion candidates right after its save commits.

    Work runs on a daemon thread so the saving request never waits on it, and
    nothing raised here reaches the caller. This path does not know about other
    record kinds: an image shared with a record of a different kind can be
    removed here, and that removal is permanent. ``mode`` narrows the risk:

    - ``same-kind``: skip candidates still held by a live record of the same kind
    - ``unchecked``: remove every candidate
    - ``off``: drop all jobs and leave reclamation to the sweep
    """

    def __init__(
        self,
        blob_service: BlobService,
        *,
        registry: ImageRootRegistry | None = None,
        mode: str = EAGER_MODE_SAME_KIND,
        logger: logging.Logger | None = None,
    ) -> None:
        if mode not in EAGER_MODES:
            raise ConfigurationError(f"Unknown eager cleanup mode: {mode!r}")
        self.blob_service = blob_service
        self.registry = registry
        self.mode = mode
        self.logger = logger or _module_logger
        self._queue: queue.Queue[_CleanupJob | None] = queue.Queue()
        self._pending = 0
        self._idle = threading.Condition()
        self._stopped = False
        self._worker = threading.Thread(target=self._worker_loop, daemon=True, name="eager-image-cleanup")
        self._worker.start()

    def collect(self, candidate_ids: Iterable[str], *, kind: str | None = None) -> int:
        """Queue candidates for removal and return how many were queued."""
        if self.mode == EAGER_MODE_OFF:
            return 0
        try:
            ids = tuple(dict.fromkeys(i for i in candidate_ids if isinstance(i, str) and i))
        except Exception:
            self.logger.exception("Ignoring unreadable eager cleanup candidates")
            return 0
        if not ids:
            return 0
        # Checked and queued under the lock so shutdown cannot slip a sentinel ahead of this job.
        with self._idle:
            if self._stopped:
                self.logger.warning("Eager cleanup stopped; leaving %d image(s) for the sweep", len(ids))
                return 0
            self._pending += 1
            self._queue.put(_CleanupJob(candidate_ids=ids, kind=kind))
        return len(ids)

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every queued job has been processed; False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(timeout=remaining)
        return True

    def shutdown(self, timeout: float = 2.0) -> None:
        with self._idle:
            if self._stopped:
                return
            self._stopped = True
            self._queue.put(None)
        if self._worker.is_alive():
            self._worker.join(timeout=timeout)

    def _worker_loop(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                break
            try:
                self._process(job)
            except Exception:
                self.logger.exception("Eager image cleanup job failed: %s", ", ".join(job.candidate_ids))
            finally:
                with self._idle:
                    self._pending -= 1
                    self._idle.notify_all()

    def _process(self, job: _CleanupJob) -> None:
        candidate_ids = list(job.candidate_ids)
        if self.mode == EAGER_MODE_SAME_KIND and job.kind and self.registry is not None:
            try:
                still_used = self.registry.collect(job.kind)
            except (KeyError, RootCollectionError) as exc:
                self.logger.warning(
                    "Skipping eager cleanup of %d image(s) for %s: %s", len(candidate_ids), job.kind, exc
                )
                return
            for image_id in candidate_ids:
                if image_id in still_used:
                    self.logger.info("Image %s still used by another %s record, skipping", image_id, job.kind)
            candidate_ids = [image_id for image_id in candidate_ids if image_id not in still_used]

        for image_id in candidate_ids:
            try:
                self.blob_service.remove(image_id)
            except BlobStorageError as exc:
                self.logger.warning("Eager cleanup could not remove image %s: %s", image_id, exc)
