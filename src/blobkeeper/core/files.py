from __future__ import annotations

import os
import uuid
from pathlib import Path


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_bytes_atomic(data: bytes, dst: Path) -> None:
    """Write ``data`` to ``dst`` so readers only ever see the complete file.

    Temp names start with a dot, so directory listings of image ids skip them.
    """
    ensure_directory(dst.parent)
    temp_path = dst.parent / f".{dst.name}.{uuid.uuid4().hex[:8]}.tmp"
    try:
        with temp_path.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, dst)
    finally:
        temp_path.unlink(missing_ok=True)
