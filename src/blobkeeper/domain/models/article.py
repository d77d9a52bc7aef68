from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Article:
    id: str
    title: str
    content: str | None
    images: list[str] = field(default_factory=list)
    deleted: bool = False
    created_at: str = ""
    updated_at: str = ""
