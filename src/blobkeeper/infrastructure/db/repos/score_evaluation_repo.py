from __future__ import annotations

from pathlib import Path

from blobkeeper.domain.models.score_evaluation import ScoreEvaluation
from blobkeeper.infrastructure.db.repos._json import dump_id_list, load_id_list, load_id_list_strict
from blobkeeper.infrastructure.db.sqlite import open_db


class ScoreEvaluationRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def replace_all(self, evaluations: list[ScoreEvaluation]) -> int:
        with open_db(self.db_path) as conn:
            conn.execute("DELETE FROM score_evaluations")
            conn.executemany(
                """
                INSERT INTO score_evaluations (id, min_score, max_score, evaluation_text, images_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        item.id,
                        item.min_score,
                        item.max_score,
                        item.evaluation_text,
                        dump_id_list(item.images),
                        item.created_at,
                    )
                    for item in evaluations
                ],
            )
            conn.commit()
        return len(evaluations)

    def list(self) -> list[ScoreEvaluation]:
        with open_db(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM score_evaluations ORDER BY min_score ASC, id ASC"
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def list_live_image_ids(self) -> set[str]:
        with open_db(self.db_path) as conn:
            rows = conn.execute("SELECT images_json FROM score_evaluations").fetchall()
        in_use: set[str] = set()
        for row in rows:
            in_use.update(load_id_list_strict(row["images_json"]))
        return in_use

    @staticmethod
    def _to_model(row) -> ScoreEvaluation:
        return ScoreEvaluation(
            id=row["id"],
            min_score=float(row["min_score"]),
            max_score=float(row["max_score"]),
            evaluation_text=row["evaluation_text"],
            images=load_id_list(row["images_json"]),
            created_at=row["created_at"],
        )
