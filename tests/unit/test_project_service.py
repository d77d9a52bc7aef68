from pathlib import Path

import pytest

from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.application.services.project_service import ProjectService
from blobkeeper.core.config import load_paths
from blobkeeper.core.errors import ProjectNotInitializedError
from blobkeeper.infrastructure.blobs.store import ImageFileStore
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo


def test_init_is_repeatable_and_reports_created_paths(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("BLOBKEEPER_HOME", raising=False)
    paths = load_paths(tmp_path)
    service = ProjectService(paths)

    assert service.is_initialized() is False
    with pytest.raises(ProjectNotInitializedError):
        service.require_initialized()

    first = service.init_project()
    second = service.init_project()

    assert first.paths_created == [paths.data_dir, paths.images_dir]
    assert second.paths_created == []
    assert service.is_initialized() is True


def test_stats_count_live_and_dead_images(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("BLOBKEEPER_HOME", raising=False)
    paths = load_paths(tmp_path)
    service = ProjectService(paths)
    service.init_project()
    repo = ImageRepo(paths.db_path)
    blobs = BlobService(repo, ImageFileStore(paths.images_dir))
    blobs.ingest(b"one", "one.png")
    dead = blobs.ingest(b"two", "two.png").image.id
    repo.mark_dead(dead)

    stats = service.stats()

    assert stats.live_images == 1
    assert stats.dead_images == 1
    assert stats.articles == 0
    assert stats.score_evaluations == 0
