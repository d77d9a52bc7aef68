from __future__ import annotations

from pathlib import Path

from blobkeeper.domain.models.article import Article
from blobkeeper.infrastructure.db.repos._json import dump_id_list, load_id_list, load_id_list_strict
from blobkeeper.infrastructure.db.sqlite import open_db


class ArticleRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def insert(self, article: Article) -> None:
        with open_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO articles (id, title, content, images_json, deleted, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    article.id,
                    article.title,
                    article.content,
                    dump_id_list(article.images),
                    1 if article.deleted else 0,
                    article.created_at,
                    article.updated_at,
                ),
            )
            conn.commit()

    def update(self, article: Article) -> bool:
        with open_db(self.db_path) as conn:
            cur = conn.execute(
                """
                UPDATE articles
                SET title = ?, content = ?, images_json = ?, updated_at = ?
                WHERE id = ? AND deleted = 0
                """,
                (
                    article.title,
                    article.content,
                    dump_id_list(article.images),
                    article.updated_at,
                    article.id,
                ),
            )
            conn.commit()
        return cur.rowcount > 0

    def soft_delete(self, article_id: str, deleted_at: str) -> bool:
        with open_db(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE articles SET deleted = 1, updated_at = ? WHERE id = ? AND deleted = 0",
                (deleted_at, article_id),
            )
            conn.commit()
        return cur.rowcount > 0

    def get_by_id(self, article_id: str, *, include_deleted: bool = False) -> Article | None:
        query = "SELECT * FROM articles WHERE id = ?"
        if not include_deleted:
            query += " AND deleted = 0"
        with open_db(self.db_path) as conn:
            row = conn.execute(query, (article_id,)).fetchone()
        return self._to_model(row) if row else None

    def list(self, *, limit: int = 100, offset: int = 0, title: str = "") -> tuple[list[Article], int]:
        where = "deleted = 0"
        params: list[object] = []
        if title:
            where += " AND title LIKE ?"
            params.append(f"%{title}%")
        with open_db(self.db_path) as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM articles WHERE {where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"""
                SELECT * FROM articles
                WHERE {where}
                ORDER BY updated_at DESC, id ASC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            ).fetchall()
        return [self._to_model(row) for row in rows], int(total)

    def list_live_image_ids(self) -> set[str]:
        with open_db(self.db_path) as conn:
            rows = conn.execute("SELECT images_json FROM articles WHERE deleted = 0").fetchall()
        in_use: set[str] = set()
        for row in rows:
            in_use.update(load_id_list_strict(row["images_json"]))
        return in_use

    @staticmethod
    def _to_model(row) -> Article:
        return Article(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            images=load_id_list(row["images_json"]),
            deleted=bool(row["deleted"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
