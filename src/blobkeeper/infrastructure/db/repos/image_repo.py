from __future__ import annotations

from pathlib import Path

from blobkeeper.domain.models.image import ImageBlob
from blobkeeper.infrastructure.db.sqlite import open_db


class ImageRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def insert(self, image: ImageBlob) -> None:
        """Insert a record; raises ``sqlite3.IntegrityError`` when a live record already owns the digest."""
        with open_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO images (
                    id,
                    digest_sha256,
                    original_filename,
                    media_type,
                    size_bytes,
                    live,
                    created_at,
                    last_ingested_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    image.id,
                    image.digest_sha256,
                    image.original_filename,
                    image.media_type,
                    image.size_bytes,
                    1 if image.live else 0,
                    image.created_at,
                    image.last_ingested_at,
                ),
            )
            conn.commit()

    def get_live_by_digest(self, digest_sha256: str) -> ImageBlob | None:
        with open_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM images WHERE digest_sha256 = ? AND live = 1",
                (digest_sha256,),
            ).fetchone()
        return self._to_model(row) if row else None

    def get_by_id(self, image_id: str) -> ImageBlob | None:
        with open_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM images WHERE id = ?",
                (image_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def mark_dead(self, image_id: str) -> bool:
        with open_db(self.db_path) as conn:
            cur = conn.execute("UPDATE images SET live = 0 WHERE id = ?", (image_id,))
            conn.commit()
        return cur.rowcount > 0

    def delete(self, image_id: str) -> bool:
        with open_db(self.db_path) as conn:
            cur = conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
            conn.commit()
        return cur.rowcount > 0

    def list_live(self, limit: int = 100) -> list[ImageBlob]:
        with open_db(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM images
                WHERE live = 1
                ORDER BY created_at DESC, id ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def touch_ingested(self, image_id: str, at: str) -> bool:
        with open_db(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE images SET last_ingested_at = ? WHERE id = ? AND last_ingested_at < ?",
                (at, image_id, at),
            )
            conn.commit()
        return cur.rowcount > 0

    def list_live_ids(self, ingested_before: str | None = None) -> set[str]:
        """Live ids, optionally only those nobody has uploaded since ``ingested_before``."""
        with open_db(self.db_path) as conn:
            if ingested_before is None:
                rows = conn.execute("SELECT id FROM images WHERE live = 1").fetchall()
            else:
                rows = conn.execute(
                    "SELECT id FROM images WHERE live = 1 AND last_ingested_at < ?",
                    (ingested_before,),
                ).fetchall()
        return {str(row["id"]) for row in rows}

    def list_all_ids(self) -> set[str]:
        with open_db(self.db_path) as conn:
            rows = conn.execute("SELECT id FROM images").fetchall()
        return {str(row["id"]) for row in rows}

    def list_dead_ids(self) -> set[str]:
        with open_db(self.db_path) as conn:
            rows = conn.execute("SELECT id FROM images WHERE live = 0").fetchall()
        return {str(row["id"]) for row in rows}

    def existing_ids(self, image_ids: list[str]) -> set[str]:
        if not image_ids:
            return set()
        placeholders = ", ".join("?" for _ in image_ids)
        with open_db(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT id FROM images WHERE id IN ({placeholders})",
                tuple(image_ids),
            ).fetchall()
        return {str(row["id"]) for row in rows}

    def count_duplicate_live_digests(self) -> list[tuple[str, int]]:
        with open_db(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT digest_sha256, COUNT(*) AS n
                FROM images
                WHERE live = 1
                GROUP BY digest_sha256
                HAVING COUNT(*) > 1
                """
            ).fetchall()
        return [(str(row["digest_sha256"]), int(row["n"])) for row in rows]

    @staticmethod
    def _to_model(row) -> ImageBlob:
        return ImageBlob(
            id=row["id"],
            digest_sha256=row["digest_sha256"],
            original_filename=row["original_filename"],
            media_type=row["media_type"],
            size_bytes=int(row["size_bytes"] or 0),
            live=bool(row["live"]),
            created_at=row["created_at"],
            last_ingested_at=row["last_ingested_at"],
        )
