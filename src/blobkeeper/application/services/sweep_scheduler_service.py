from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from blobkeeper.application.services.sweep_service import OrphanSweepService

_module_logger = logging.getLogger(__name__)


def next_run_after(now: datetime, at: tuple[int, int]) -> datetime:
    """Next occurrence of ``HH:MM`` strictly after ``now``, in ``now``'s timezone."""
    hour, minute = at
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class SweepSchedulerService:
    """Runs the orphan sweep once a day and whenever ``trigger()`` is called."""

    def __init__(
        self,
        sweep_service: OrphanSweepService,
        *,
        at: tuple[int, int] = (3, 0),
        logger: logging.Logger | None = None,
    ) -> None:
        self.sweep_service = sweep_service
        self.at = at
        self.logger = logger or _module_logger
        self._wakeup = threading.Event()
        self._stop = threading.Event()
        self._manual_requested = False
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self.next_run: datetime | None = None

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._worker_loop, daemon=True, name="orphan-image-sweep")
        self._worker.start()

    def shutdown(self) -> None:
        self._stop.set()
        self._wakeup.set()
        if self._worker is not None and self._worker.is_alive():
            self._worker.join(timeout=2.0)

    def trigger(self) -> None:
        with self._lock:
            self._manual_requested = True
        self._wakeup.set()

    def _worker_loop(self) -> None:
        self.next_run = next_run_after(datetime.now().astimezone(), self.at)
        self.logger.info("Orphan image sweep scheduled for %s", self.next_run.isoformat())
        while not self._stop.is_set():
            wait_seconds = (self.next_run - datetime.now().astimezone()).total_seconds()
            if wait_seconds > 0:
                self._wakeup.wait(timeout=min(wait_seconds, 60.0))
                self._wakeup.clear()
            if self._stop.is_set():
                break

            with self._lock:
                manual = self._manual_requested
                self._manual_requested = False
            due = datetime.now().astimezone() >= self.next_run
            if not manual and not due:
                continue

            try:
                self.sweep_service.run(trigger="manual" if manual else "timer")
            except Exception:
                self.logger.exception("Scheduled orphan image sweep crashed")
            if due:
                self.next_run = next_run_after(datetime.now().astimezone(), self.at)
                self.logger.info("Next orphan image sweep at %s", self.next_run.isoformat())
