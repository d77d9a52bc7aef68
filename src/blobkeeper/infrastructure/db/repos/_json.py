from __future__ import annotations

import json


def dump_id_list(ids: list[str]) -> str:
    return json.dumps(list(ids), ensure_ascii=True)


def load_id_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [item.strip() for item in parsed if isinstance(item, str) and item.strip()]


def load_id_list_strict(raw: str | None) -> list[str]:
    """Like ``load_id_list`` but raises ``ValueError`` on anything but a JSON list of strings.

    Liveness is computed from these lists, so an unreadable one must not count as empty.
    """
    try:
        parsed = json.loads(raw) if raw is not None else None
    except json.JSONDecodeError as exc:
        raise ValueError(f"Unreadable image id list {raw!r}: {exc}") from exc
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError(f"Image id list is not a JSON list of strings: {raw!r}")
    return [item.strip() for item in parsed if item.strip()]
