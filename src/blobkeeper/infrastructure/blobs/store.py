from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from blobkeeper.core.files import ensure_directory, write_bytes_atomic
from blobkeeper.core.hashing import sha256_file

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")
IMAGE_ID_RE = re.compile(r"^[0-9a-zA-Z._-]+\.(?:png|jpe?g|gif|webp|svg)$", flags=re.IGNORECASE)


def is_image_id(value: str) -> bool:
    return bool(IMAGE_ID_RE.match(value)) and not value.startswith(".")


class ImageFileStore:
    """Flat directory of image files keyed by image id."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def ensure_layout(self) -> None:
        ensure_directory(self.base_dir)

    def path_for(self, image_id: str) -> Path:
        if not is_image_id(image_id):
            raise ValueError(f"Not a valid image id: {image_id!r}")
        return self.base_dir / image_id

    def write(self, image_id: str, data: bytes) -> Path:
        self.ensure_layout()
        dst = self.path_for(image_id)
        write_bytes_atomic(data, dst)
        return dst

    def exists(self, image_id: str) -> bool:
        return self.path_for(image_id).is_file()

    def delete(self, image_id: str) -> bool:
        path = self.path_for(image_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_ids(self, modified_before: datetime | None = None) -> set[str]:
        if not self.base_dir.is_dir():
            return set()
        cutoff = modified_before.timestamp() if modified_before is not None else None
        found: set[str] = set()
        for entry in self.base_dir.iterdir():
            if not entry.is_file() or not is_image_id(entry.name):
                continue
            if cutoff is not None and entry.stat().st_mtime >= cutoff:
                continue
            found.add(entry.name)
        return found

    def verify_integrity(self, image_id: str, expected_digest: str) -> bool:
        path = self.path_for(image_id)
        if not path.exists():
            return False
        return sha256_file(path) == expected_digest
