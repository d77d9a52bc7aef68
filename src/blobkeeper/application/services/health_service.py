from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from blobkeeper.infrastructure.blobs.store import ImageFileStore
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo
from blobkeeper.infrastructure.db.sqlite import open_db

MIN_BUSY_TIMEOUT_MS = 1_000


@dataclass(slots=True)
class DoctorIssue:
    check: str
    level: str
    message: str


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks_run: int
    issues: list[DoctorIssue]
    db_runtime: dict[str, object] = field(default_factory=dict)


class HealthService:
    """Read-only consistency checks over the image database and the image directory."""

    def __init__(self, db_path: Path, images_dir: Path) -> None:
        self.db_path = db_path
        self.image_repo = ImageRepo(db_path)
        self.file_store = ImageFileStore(images_dir)

    def run_doctor(self) -> DoctorReport:
        db_runtime = self._read_db_runtime()
        checks = (
            lambda: self._check_db_runtime(db_runtime),
            self._check_image_files,
            self._check_unique_live_digests,
            self._check_interrupted_removals,
        )
        issues: list[DoctorIssue] = []
        for check in checks:
            issues.extend(check())
        return DoctorReport(
            ok=all(issue.level != "error" for issue in issues),
            checks_run=len(checks),
            issues=issues,
            db_runtime=db_runtime,
        )

    def _read_db_runtime(self) -> dict[str, object]:
        with open_db(self.db_path) as conn:
            journal_mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
            busy_timeout = conn.execute("PRAGMA busy_timeout;").fetchone()[0]
            foreign_keys = conn.execute("PRAGMA foreign_keys;").fetchone()[0]
        return {
            "journal_mode": str(journal_mode).lower(),
            "busy_timeout_ms": int(busy_timeout),
            "foreign_keys": bool(foreign_keys),
        }

    @staticmethod
    def _check_db_runtime(db_runtime: dict[str, object]) -> list[DoctorIssue]:
        issues = []
        if db_runtime["journal_mode"] != "wal":
            issues.append(
                DoctorIssue(
                    "db_runtime",
                    "error",
                    f"journal_mode is {db_runtime['journal_mode']!r}; uploads and sweeps need WAL to run side by side.",
                )
            )
        if int(db_runtime["busy_timeout_ms"]) < MIN_BUSY_TIMEOUT_MS:
            issues.append(
                DoctorIssue(
                    "db_runtime",
                    "warning",
                    f"busy_timeout is {db_runtime['busy_timeout_ms']}ms; set BLOBKEEPER_SQLITE_BUSY_TIMEOUT_MS >= {MIN_BUSY_TIMEOUT_MS}.",
                )
            )
        return issues

    def _check_image_files(self) -> list[DoctorIssue]:
        issues = []
        for image in self.image_repo.list_live(limit=1_000_000):
            if not self.file_store.exists(image.id):
                issues.append(DoctorIssue("image_integrity", "error", f"Missing file for image {image.id}"))
            elif not self.file_store.verify_integrity(image.id, image.digest_sha256):
                issues.append(DoctorIssue("image_integrity", "error", f"Digest mismatch for image {image.id}"))
        return issues

    def _check_unique_live_digests(self) -> list[DoctorIssue]:
        return [
            DoctorIssue("image_dedup", "warning", f"{count} live images share sha256 {digest}")
            for digest, count in self.image_repo.count_duplicate_live_digests()
        ]

    def _check_interrupted_removals(self) -> list[DoctorIssue]:
        dead = self.image_repo.list_dead_ids()
        if not dead:
            return []
        return [
            DoctorIssue(
                "image_lifecycle",
                "warning",
                f"{len(dead)} image record(s) are mid-removal; the next sweep will finish them.",
            )
        ]
