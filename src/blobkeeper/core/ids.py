from __future__ import annotations

import uuid


def new_record_id() -> str:
    return str(uuid.uuid4())


def new_image_id(suffix: str) -> str:
    """Image ids double as storage file names: ``<uuid4 hex><suffix>``."""
    return f"{uuid.uuid4().hex}{suffix.lower()}"
