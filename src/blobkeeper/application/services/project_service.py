from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from blobkeeper.core.config import AppPaths
from blobkeeper.core.errors import ProjectNotInitializedError
from blobkeeper.core.files import ensure_directory
from blobkeeper.infrastructure.db.sqlite import initialize_schema, open_db


@dataclass(slots=True)
class InitResult:
    paths_created: list[Path]
    db_path: Path


@dataclass(slots=True)
class ProjectStats:
    live_images: int
    dead_images: int
    articles: int
    score_evaluations: int


class ProjectService:
    """Owns the on-disk layout: data dir, image dir and the SQLite schema."""

    def __init__(self, paths: AppPaths) -> None:
        self.paths = paths

    def init_project(self) -> InitResult:
        """Create missing directories and bring the schema up to date; safe to repeat."""
        missing = [p for p in (self.paths.data_dir, self.paths.images_dir) if not p.exists()]
        for path in (self.paths.data_dir, self.paths.images_dir):
            ensure_directory(path)
        initialize_schema(self.paths.db_path)
        return InitResult(paths_created=missing, db_path=self.paths.db_path)

    def is_initialized(self) -> bool:
        return self.paths.db_path.is_file()

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise ProjectNotInitializedError(
                f"No blobkeeper database at {self.paths.db_path}. Run 'blobkeeper init' first."
            )

    def stats(self) -> ProjectStats:
        self.require_initialized()
        with open_db(self.paths.db_path) as conn:
            live, dead = conn.execute(
                "SELECT COALESCE(SUM(live = 1), 0), COALESCE(SUM(live = 0), 0) FROM images"
            ).fetchone()
            articles = conn.execute("SELECT COUNT(*) FROM articles WHERE deleted = 0").fetchone()[0]
            rules = conn.execute("SELECT COUNT(*) FROM score_evaluations").fetchone()[0]
        return ProjectStats(
            live_images=int(live),
            dead_images=int(dead),
            articles=int(articles),
            score_evaluations=int(rules),
        )
