from __future__ import annotations

from html.parser import HTMLParser
from urllib.parse import unquote, urlsplit

from blobkeeper.infrastructure.blobs.store import is_image_id


class _ImageSourceCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.sources: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag.lower() != "img":
            return
        for name, value in attrs:
            if name.lower() == "src" and value:
                self.sources.append(value.strip())
                return


def image_id_from_src(src: str) -> str | None:
    """Reduce an ``<img src>`` locator to a bare image id, or None when it cannot name one.

    Accepts ``uuid.png``, ``/images/uuid.png``, ``//host/images/uuid.png`` and
    ``https://host/images/uuid.png?w=100#frag``.
    """
    raw = src.strip()
    if not raw or raw.lower().startswith("data:"):
        return None
    try:
        path = urlsplit(raw).path
    except ValueError:
        return None
    candidate = unquote(path.rsplit("/", 1)[-1])
    return candidate if is_image_id(candidate) else None


def extract_image_ids_ordered(content: str | None) -> list[str]:
    if not content:
        return []
    parser = _ImageSourceCollector()
    parser.feed(content)
    parser.close()

    seen: set[str] = set()
    ordered: list[str] = []
    for src in parser.sources:
        image_id = image_id_from_src(src)
        if image_id is None or image_id in seen:
            continue
        seen.add(image_id)
        ordered.append(image_id)
    return ordered


def extract_image_ids(content: str | None) -> set[str]:
    """Return the set of image ids embedded in rich-text markup via ``<img src>``."""
    return set(extract_image_ids_ordered(content))
