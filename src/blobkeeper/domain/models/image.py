from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ImageBlob:
    id: str
    digest_sha256: str
    original_filename: str
    media_type: str
    size_bytes: int
    live: bool
    created_at: str
    # Bumped on every upload of the same bytes; the sweep grace period counts from here.
    last_ingested_at: str
