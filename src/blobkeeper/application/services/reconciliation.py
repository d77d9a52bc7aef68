from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from blobkeeper.infrastructure.parsers.image_refs import extract_image_ids_ordered


@dataclass(slots=True)
class Reconciliation:
    """Outcome of a save: what the record keeps and what may be collected eagerly."""

    keep_ids: list[str] = field(default_factory=list)
    delete_candidates: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.delete_candidates


def _ordered_unique(ids: Iterable[str] | None) -> list[str]:
    if not ids:
        return []
    out: list[str] = []
    seen: set[str] = set()
    for raw in ids:
        if not isinstance(raw, str):
            continue
        image_id = raw.strip()
        if not image_id or image_id in seen:
            continue
        seen.add(image_id)
        out.append(image_id)
    return out


def reconcile_images(
    images: Iterable[str] | None,
    deleted_images: Iterable[str] | None,
    content: str | None = None,
) -> Reconciliation:
    """Merge declared image ids with the ids embedded in ``content``.

    The content is ground truth: an id it embeds is always kept and never
    offered for deletion, whatever the client's lists say. Between the two
    client lists, an id declared both kept and deleted counts as deleted.
    """
    deleted = _ordered_unique(deleted_images)
    declared_deleted = set(deleted)
    keep_ids = [image_id for image_id in _ordered_unique(images) if image_id not in declared_deleted]
    kept = set(keep_ids)
    for image_id in extract_image_ids_ordered(content):
        if image_id not in kept:
            kept.add(image_id)
            keep_ids.append(image_id)

    delete_candidates = [image_id for image_id in deleted if image_id not in kept]
    return Reconciliation(keep_ids=keep_ids, delete_candidates=delete_candidates)


def reconcile_deletion(images: Iterable[str] | None) -> Reconciliation:
    """A deleted record keeps nothing; everything it referenced becomes a candidate."""
    return Reconciliation(keep_ids=[], delete_candidates=_ordered_unique(images))
