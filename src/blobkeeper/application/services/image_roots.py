from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from blobkeeper.core.errors import RootCollectionError

RootCollector = Callable[[], Iterable[str]]


class ImageRootRegistry:
    """Referencing-record kinds register here how to enumerate the image ids their live records hold."""

    def __init__(self) -> None:
        self._collectors: dict[str, RootCollector] = {}
        self._lock = threading.Lock()

    def register(self, kind: str, collector: RootCollector) -> None:
        with self._lock:
            self._collectors[kind] = collector

    def kinds(self) -> list[str]:
        with self._lock:
            return sorted(self._collectors)

    def collect(self, kind: str) -> set[str]:
        with self._lock:
            collector = self._collectors.get(kind)
        if collector is None:
            raise KeyError(f"No image root collector registered for {kind!r}")
        try:
            return set(collector())
        except Exception as exc:
            raise RootCollectionError(f"Image root collector for {kind!r} failed: {exc}") from exc

    def collect_all(self) -> set[str]:
        """Union of every kind's roots; any failing collector fails the whole collection."""
        roots: set[str] = set()
        for kind in self.kinds():
            roots |= self.collect(kind)
        return roots
