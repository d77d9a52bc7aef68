from pathlib import Path

import pytest

from blobkeeper.application.services.project_service import ProjectService
from blobkeeper.application.wiring import ImageLifecycle, build_image_lifecycle
from blobkeeper.core.config import GCSettings, load_paths
from blobkeeper.core.errors import RecordNotFoundError, ValidationError


@pytest.fixture
def lifecycle(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("BLOBKEEPER_HOME", raising=False)
    paths = load_paths(tmp_path)
    ProjectService(paths).init_project()
    built = build_image_lifecycle(
        paths,
        GCSettings(sweep_schedule_enabled=False, sweep_grace_seconds=0),
    )
    yield built
    built.shutdown()


def _upload(lifecycle: ImageLifecycle, data: bytes, name: str) -> str:
    return lifecycle.blob_service.ingest(data, name).image.id


def test_create_keeps_declared_and_embedded_images(lifecycle: ImageLifecycle) -> None:
    cover = _upload(lifecycle, b"cover", "cover.png")
    inline = _upload(lifecycle, b"inline", "inline.jpg")

    result = lifecycle.article_service.create(
        "  Field notes  ",
        content=f'<p>see</p><img src="/images/{inline}">',
        images=[cover],
    )

    assert result.article.title == "Field notes"
    assert result.article.images == [cover, inline]
    stored = lifecycle.article_service.get(result.article.id)
    assert stored.images == [cover, inline]
    assert lifecycle.registry.collect("articles") == {cover, inline}


def test_update_hands_dropped_images_to_eager_cleanup(lifecycle: ImageLifecycle) -> None:
    keep = _upload(lifecycle, b"keep", "keep.png")
    drop = _upload(lifecycle, b"drop", "drop.png")
    article = lifecycle.article_service.create("Draft", images=[keep, drop]).article

    result = lifecycle.article_service.update(
        article.id,
        "Draft",
        content="<p>text only</p>",
        images=[keep, drop],
        deleted_images=[drop],
    )
    assert lifecycle.eager_cleanup.drain(timeout=5.0)

    assert result.reconciliation.keep_ids == [keep]
    assert result.reconciliation.delete_candidates == [drop]
    assert lifecycle.blob_service.heap_snapshot() == {keep}


def test_embedded_image_survives_deletion_request(lifecycle: ImageLifecycle) -> None:
    image_id = _upload(lifecycle, b"a", "a.png")
    article = lifecycle.article_service.create("A", content=f'<img src="{image_id}">').article

    result = lifecycle.article_service.update(
        article.id,
        "A",
        content=f'<img src="{image_id}">',
        images=[],
        deleted_images=[image_id],
    )
    assert lifecycle.eager_cleanup.drain(timeout=5.0)

    assert result.reconciliation.keep_ids == [image_id]
    assert result.reconciliation.delete_candidates == []
    assert lifecycle.blob_service.heap_snapshot() == {image_id}


def test_image_shared_by_two_articles_is_not_removed_eagerly(lifecycle: ImageLifecycle) -> None:
    shared = _upload(lifecycle, b"shared", "shared.png")
    first = lifecycle.article_service.create("First", images=[shared]).article
    lifecycle.article_service.create("Second", images=[shared])

    lifecycle.article_service.update(first.id, "First", images=[], deleted_images=[shared])
    assert lifecycle.eager_cleanup.drain(timeout=5.0)

    assert lifecycle.blob_service.heap_snapshot() == {shared}


def test_delete_releases_every_image(lifecycle: ImageLifecycle) -> None:
    image_id = _upload(lifecycle, b"a", "a.png")
    article = lifecycle.article_service.create("Gone soon", images=[image_id]).article

    reconciliation = lifecycle.article_service.delete(article.id)
    assert lifecycle.eager_cleanup.drain(timeout=5.0)

    assert reconciliation.delete_candidates == [image_id]
    assert lifecycle.blob_service.heap_snapshot() == set()
    with pytest.raises(RecordNotFoundError):
        lifecycle.article_service.get(article.id)
    with pytest.raises(RecordNotFoundError):
        lifecycle.article_service.delete(article.id)


def test_deleted_article_no_longer_counts_as_root(lifecycle: ImageLifecycle) -> None:
    image_id = _upload(lifecycle, b"a", "a.png")
    article = lifecycle.article_service.create("A", images=[image_id]).article
    lifecycle.eager_cleanup.mode = "off"

    lifecycle.article_service.delete(article.id)

    assert lifecycle.registry.collect("articles") == set()
    report = lifecycle.sweep_service.run(trigger="manual")
    assert report.deleted == [image_id]


def test_unknown_image_ids_are_accepted(lifecycle: ImageLifecycle) -> None:
    result = lifecycle.article_service.create("A", images=["never-uploaded.png"])

    assert result.article.images == ["never-uploaded.png"]
    assert lifecycle.sweep_service.run().deleted == []


def test_missing_article_and_blank_title_are_rejected(lifecycle: ImageLifecycle) -> None:
    with pytest.raises(RecordNotFoundError):
        lifecycle.article_service.update("missing", "Title")
    with pytest.raises(ValidationError):
        lifecycle.article_service.create("   ")


def test_list_filters_by_title_and_pages(lifecycle: ImageLifecycle) -> None:
    for title in ("Alpha report", "Beta report", "Gamma"):
        lifecycle.article_service.create(title)

    matching, total = lifecycle.article_service.list(title="report")
    first_page, all_total = lifecycle.article_service.list(limit=2, offset=0)

    assert total == 2
    assert {a.title for a in matching} == {"Alpha report", "Beta report"}
    assert all_total == 3
    assert len(first_page) == 2
