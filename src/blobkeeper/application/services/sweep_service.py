from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta

from blobkeeper.application.services.blob_service import BlobService, RemoveFailure
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.core.time import now_utc, now_utc_iso

_module_logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_MARKING = "marking"
STATE_SWEEPING = "sweeping"


@dataclass(slots=True)
class MarkResult:
    heap: set[str]
    roots: set[str]

    @property
    def orphans(self) -> list[str]:
        return sorted(self.heap - self.roots)


@dataclass(slots=True)
class SweepReport:
    status: str
    trigger: str
    started_at: str
    finished_at: str | None = None
    heap_size: int = 0
    root_size: int = 0
    orphans: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[RemoveFailure] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class SelectedDeleteResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[RemoveFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class OrphanSweepService:
    """Mark-and-sweep over every stored image; the only authority on image liveness.

    Liveness is never stored. Each run snapshots the heap first and enumerates
    the roots afterwards, so a reference committed between the two scans is
    always seen. ``grace_seconds`` keeps images uploaded shortly before the run
    out of the heap while their owning record is still being edited.
    """

    def __init__(
        self,
        blob_service: BlobService,
        registry: ImageRootRegistry,
        *,
        grace_seconds: int = 0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.blob_service = blob_service
        self.registry = registry
        self.grace_seconds = max(0, int(grace_seconds))
        self.logger = logger or _module_logger
        self._run_lock = threading.Lock()
        self._state = STATE_IDLE
        self.last_report: SweepReport | None = None

    @property
    def state(self) -> str:
        return self._state

    def mark(self) -> MarkResult:
        cutoff = now_utc() - timedelta(seconds=self.grace_seconds) if self.grace_seconds else None
        heap = self.blob_service.heap_snapshot(cutoff=cutoff)
        roots = self.registry.collect_all()
        return MarkResult(heap=heap, roots=roots)

    def run(self, trigger: str = "timer") -> SweepReport:
        report = SweepReport(status="skipped", trigger=trigger, started_at=now_utc_iso())
        if not self._run_lock.acquire(blocking=False):
            self.logger.info("Orphan image sweep already running; %s trigger skipped", trigger)
            report.finished_at = now_utc_iso()
            return report

        try:
            self.logger.info("Starting orphan image sweep (%s)", trigger)
            self._state = STATE_MARKING
            try:
                marked = self.mark()
            except Exception as exc:
                self.logger.exception("Orphan image sweep aborted during mark phase")
                report.status = "failed"
                report.error = str(exc)
                return report

            report.heap_size = len(marked.heap)
            report.root_size = len(marked.roots)
            report.orphans = marked.orphans
            self.logger.info(
                "Found %d stored image(s), %d referenced id(s), %d orphan(s)",
                report.heap_size,
                report.root_size,
                len(report.orphans),
            )

            self._state = STATE_SWEEPING
            for image_id in report.orphans:
                try:
                    self.blob_service.remove(image_id)
                except Exception as exc:
                    self.logger.exception("Failed to remove orphan image %s", image_id)
                    report.failed.append(RemoveFailure(image_id=image_id, error=str(exc)))
                    continue
                report.deleted.append(image_id)

            report.status = "completed"
            self.logger.info(
                "Orphan image sweep finished: %d deleted, %d failed", len(report.deleted), len(report.failed)
            )
            return report
        finally:
            report.finished_at = now_utc_iso()
            self.last_report = report
            self._state = STATE_IDLE
            self._run_lock.release()

    def scan(self) -> list[str]:
        """Dry run of the mark phase: orphan ids an operator may review."""
        return self.mark().orphans

    def delete_selected(self, image_ids: list[str]) -> SelectedDeleteResult:
        """Remove the operator-approved ids that are still orphans now; report the rest as skipped."""
        result = SelectedDeleteResult()
        requested = list(dict.fromkeys(i.strip() for i in image_ids if isinstance(i, str) and i.strip()))
        if not requested:
            return result

        with self._run_lock:
            self._state = STATE_MARKING
            try:
                orphans = set(self.mark().orphans)
                self._state = STATE_SWEEPING
                for image_id in requested:
                    if image_id not in orphans:
                        result.skipped.append(image_id)
                        continue
                    batch = self.blob_service.remove_many([image_id])
                    result.deleted.extend(batch.deleted)
                    result.failed.extend(batch.failed)
            finally:
                self._state = STATE_IDLE

        if result.skipped:
            self.logger.info("Skipped %d selected image(s) that are no longer orphans", len(result.skipped))
        return result
