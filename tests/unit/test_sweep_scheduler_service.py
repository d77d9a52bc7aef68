import threading
from datetime import datetime, timedelta, timezone

from blobkeeper.application.services.sweep_scheduler_service import SweepSchedulerService, next_run_after


class _RecordingSweep:
    def __init__(self, fail: bool = False) -> None:
        self.triggers: list[str] = []
        self.fail = fail
        self.ran = threading.Event()

    def run(self, trigger: str = "timer"):
        self.triggers.append(trigger)
        self.ran.set()
        if self.fail:
            raise RuntimeError("sweep exploded")
        return None


def test_next_run_later_today() -> None:
    now = datetime(2024, 5, 1, 1, 30, tzinfo=timezone.utc)

    assert next_run_after(now, (3, 0)) == datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)


def test_next_run_rolls_over_to_tomorrow() -> None:
    now = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)

    assert next_run_after(now, (3, 0)) == datetime(2024, 5, 2, 3, 0, tzinfo=timezone.utc)
    assert next_run_after(now + timedelta(hours=20), (3, 0)) == datetime(2024, 5, 2, 3, 0, tzinfo=timezone.utc)


def test_manual_trigger_runs_sweep_on_worker() -> None:
    sweep = _RecordingSweep()
    scheduler = SweepSchedulerService(sweep, at=(3, 0))
    scheduler.start()
    try:
        scheduler.trigger()
        assert sweep.ran.wait(timeout=5.0)
    finally:
        scheduler.shutdown()

    assert sweep.triggers == ["manual"]
    assert scheduler.next_run is not None


def test_crashing_sweep_does_not_kill_scheduler() -> None:
    sweep = _RecordingSweep(fail=True)
    scheduler = SweepSchedulerService(sweep, at=(3, 0))
    scheduler.start()
    try:
        scheduler.trigger()
        assert sweep.ran.wait(timeout=5.0)
        sweep.ran.clear()
        scheduler.trigger()
        assert sweep.ran.wait(timeout=5.0)
    finally:
        scheduler.shutdown()

    assert sweep.triggers == ["manual", "manual"]


def test_shutdown_without_start_is_safe() -> None:
    SweepSchedulerService(_RecordingSweep()).shutdown()
