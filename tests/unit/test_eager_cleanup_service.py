import threading
from pathlib import Path

import pytest

from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.application.services.eager_cleanup_service import EagerCleanupService
from blobkeeper.application.services.image_roots import ImageRootRegistry
from blobkeeper.core.errors import BlobStorageError, ConfigurationError
from blobkeeper.infrastructure.blobs.store import ImageFileStore
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo
from blobkeeper.infrastructure.db.sqlite import initialize_schema


@pytest.fixture
def blobs(tmp_path: Path) -> BlobService:
    db_path = tmp_path / "blobkeeper.db"
    initialize_schema(db_path)
    return BlobService(ImageRepo(db_path), ImageFileStore(tmp_path / "images"))


def test_collect_removes_candidates_in_background(blobs: BlobService) -> None:
    doomed = blobs.ingest(b"doomed", "doomed.png").image.id
    survivor = blobs.ingest(b"survivor", "survivor.png").image.id
    cleanup = EagerCleanupService(blobs, mode="unchecked")
    try:
        queued = cleanup.collect([doomed, doomed, ""])
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert queued == 1
    assert blobs.heap_snapshot() == {survivor}


def test_same_kind_mode_keeps_images_other_records_hold(blobs: BlobService) -> None:
    shared = blobs.ingest(b"shared", "shared.png").image.id
    dropped = blobs.ingest(b"dropped", "dropped.png").image.id
    registry = ImageRootRegistry()
    registry.register("articles", lambda: [shared])
    cleanup = EagerCleanupService(blobs, registry=registry, mode="same-kind")
    try:
        cleanup.collect([shared, dropped], kind="articles")
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert blobs.heap_snapshot() == {shared}


def test_unchecked_mode_removes_images_other_records_hold(blobs: BlobService) -> None:
    shared = blobs.ingest(b"shared", "shared.png").image.id
    registry = ImageRootRegistry()
    registry.register("articles", lambda: [shared])
    cleanup = EagerCleanupService(blobs, registry=registry, mode="unchecked")
    try:
        cleanup.collect([shared], kind="articles")
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert blobs.heap_snapshot() == set()


def test_failing_same_kind_check_skips_the_job(blobs: BlobService) -> None:
    image_id = blobs.ingest(b"img", "img.png").image.id
    registry = ImageRootRegistry()

    def broken() -> list[str]:
        raise RuntimeError("no such table")

    registry.register("articles", broken)
    cleanup = EagerCleanupService(blobs, registry=registry)
    try:
        cleanup.collect([image_id], kind="articles")
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert blobs.heap_snapshot() == {image_id}


def test_off_mode_queues_nothing(blobs: BlobService) -> None:
    image_id = blobs.ingest(b"img", "img.png").image.id
    cleanup = EagerCleanupService(blobs, mode="off")
    try:
        assert cleanup.collect([image_id]) == 0
        assert cleanup.drain(timeout=1.0)
    finally:
        cleanup.shutdown()

    assert blobs.heap_snapshot() == {image_id}


def test_removal_failures_never_reach_the_caller(blobs: BlobService, monkeypatch) -> None:
    first = blobs.ingest(b"1", "1.png").image.id
    second = blobs.ingest(b"2", "2.png").image.id
    real_remove = blobs.remove

    def flaky_remove(image_id: str):
        if image_id == first:
            raise BlobStorageError("disk unplugged")
        return real_remove(image_id)

    monkeypatch.setattr(blobs, "remove", flaky_remove)
    cleanup = EagerCleanupService(blobs, mode="unchecked")
    try:
        assert cleanup.collect([first, second]) == 2
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert blobs.heap_snapshot() == {first}


def test_unexpected_errors_keep_the_worker_alive(blobs: BlobService, monkeypatch) -> None:
    image_id = blobs.ingest(b"img", "img.png").image.id
    calls: list[str] = []
    real_remove = blobs.remove

    def remove_once_broken(candidate: str):
        calls.append(candidate)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return real_remove(candidate)

    monkeypatch.setattr(blobs, "remove", remove_once_broken)
    cleanup = EagerCleanupService(blobs, mode="unchecked")
    try:
        cleanup.collect([image_id])
        assert cleanup.drain(timeout=5.0)
        cleanup.collect([image_id])
        assert cleanup.drain(timeout=5.0)
    finally:
        cleanup.shutdown()

    assert calls == [image_id, image_id]
    assert blobs.heap_snapshot() == set()


def test_collect_after_shutdown_is_ignored(blobs: BlobService) -> None:
    image_id = blobs.ingest(b"img", "img.png").image.id
    cleanup = EagerCleanupService(blobs, mode="unchecked")
    cleanup.shutdown()

    assert cleanup.collect([image_id]) == 0
    assert blobs.heap_snapshot() == {image_id}
    assert cleanup.drain()


def test_unknown_mode_is_rejected(blobs: BlobService) -> None:
    with pytest.raises(ConfigurationError):
        EagerCleanupService(blobs, mode="aggressive")


def test_drain_returns_when_collect_races_shutdown(blobs: BlobService) -> None:
    image_ids = [blobs.ingest(f"img-{n}".encode(), f"{n}.png").image.id for n in range(4)]
    cleanup = EagerCleanupService(blobs, mode="unchecked")
    start = threading.Barrier(len(image_ids) + 1)

    def collect_repeatedly(image_id: str) -> None:
        start.wait()
        for _ in range(50):
            cleanup.collect([image_id])

    workers = [threading.Thread(target=collect_repeatedly, args=(image_id,)) for image_id in image_ids]
    for worker in workers:
        worker.start()
    start.wait()
    cleanup.shutdown(timeout=10.0)
    for worker in workers:
        worker.join(timeout=10.0)

    # Every accepted job sits ahead of the stop sentinel, so nothing is left pending.
    assert cleanup.drain(timeout=5.0)
    assert cleanup.collect([image_ids[0]]) == 0
