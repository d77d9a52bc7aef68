from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field

from blobkeeper import __version__
from blobkeeper.application.services.health_service import HealthService
from blobkeeper.application.services.project_service import ProjectService
from blobkeeper.application.services.score_evaluation_service import ScoreEvaluationInput
from blobkeeper.application.wiring import build_image_lifecycle
from blobkeeper.core.config import AppPaths, GCSettings, load_gc_settings
from blobkeeper.core.errors import (
    BlobKeeperError,
    BlobStorageError,
    RecordNotFoundError,
    RootCollectionError,
    ValidationError,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ArticleSaveRequest(_CamelModel):
    title: str
    content: str | None = None
    images: list[str] = Field(default_factory=list)
    deleted_images: list[str] = Field(default_factory=list, alias="deletedImages")


class ScoreEvaluationItemRequest(_CamelModel):
    min_score: float = Field(alias="minScore")
    max_score: float = Field(alias="maxScore")
    evaluation_text: str | None = Field(default=None, alias="evaluationText")
    images: list[str] = Field(default_factory=list)
    deleted_images: list[str] = Field(default_factory=list, alias="deletedImages")


class ScoreEvaluationReplaceRequest(BaseModel):
    items: list[ScoreEvaluationItemRequest]


class OrphanDeleteRequest(BaseModel):
    filenames: list[str]


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _http_error(exc: BlobKeeperError) -> HTTPException:
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (BlobStorageError, RootCollectionError)):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def create_app(paths: AppPaths, settings: GCSettings | None = None) -> FastAPI:
    app = FastAPI(title="blobkeeper", version=__version__)
    gc_settings = settings or load_gc_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    project_service = ProjectService(paths)
    project_service.init_project()
    lifecycle = build_image_lifecycle(paths, gc_settings)
    app.state.lifecycle = lifecycle

    if gc_settings.sweep_schedule_enabled:
        lifecycle.scheduler.start()

    @app.on_event("shutdown")
    def _shutdown_image_lifecycle() -> None:
        lifecycle.shutdown()

    @app.post("/api/init")
    def api_init() -> dict[str, Any]:
        result = project_service.init_project()
        return {
            "ok": True,
            "db_path": str(result.db_path),
            "paths_created": [str(p) for p in result.paths_created],
        }

    @app.get("/api/doctor")
    def api_doctor() -> dict[str, Any]:
        report = HealthService(db_path=paths.db_path, images_dir=paths.images_dir).run_doctor()
        return {"ok": True, "report": _jsonable(report)}

    @app.post("/api/upload/image")
    async def api_upload_image(file: UploadFile = File(...)) -> dict[str, Any]:
        content = await file.read()
        try:
            result = lifecycle.blob_service.ingest(content, file.filename or "")
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {
            "ok": True,
            "status": result.status,
            "originalName": result.original_filename,
            "url": result.image.id,
            "image": _jsonable(result.image),
        }

    @app.get("/api/images")
    def api_images(limit: int = Query(default=100, ge=1, le=100000)) -> dict[str, Any]:
        images = [_jsonable(i) for i in lifecycle.blob_service.list_live(limit=limit)]
        return {"ok": True, "count": len(images), "images": images}

    @app.get("/api/images/{image_id}/content")
    def api_image_content(image_id: str) -> FileResponse:
        try:
            image, path = lifecycle.blob_service.read(image_id)
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        response = FileResponse(path, media_type=image.media_type)
        response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        return response

    @app.get("/api/articles")
    def api_articles(
        page: int = Query(default=1, ge=1),
        page_size: int = Query(default=20, ge=1, le=1000, alias="pageSize"),
        title: str = Query(default=""),
    ) -> dict[str, Any]:
        articles, total = lifecycle.article_service.list(
            limit=page_size,
            offset=(page - 1) * page_size,
            title=title,
        )
        return {
            "ok": True,
            "list": _jsonable(articles),
            "total": total,
            "page": page,
            "pageSize": page_size,
        }

    @app.post("/api/articles")
    def api_article_create(req: ArticleSaveRequest) -> dict[str, Any]:
        try:
            result = lifecycle.article_service.create(
                req.title,
                content=req.content,
                images=req.images,
                deleted_images=req.deleted_images,
            )
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "article": _jsonable(result.article)}

    @app.get("/api/articles/{article_id}")
    def api_article_detail(article_id: str) -> dict[str, Any]:
        try:
            article = lifecycle.article_service.get(article_id)
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "article": _jsonable(article)}

    @app.put("/api/articles/{article_id}")
    def api_article_update(article_id: str, req: ArticleSaveRequest) -> dict[str, Any]:
        try:
            result = lifecycle.article_service.update(
                article_id,
                req.title,
                content=req.content,
                images=req.images,
                deleted_images=req.deleted_images,
            )
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "article": _jsonable(result.article)}

    @app.delete("/api/articles/{article_id}")
    def api_article_delete(article_id: str) -> dict[str, Any]:
        try:
            lifecycle.article_service.delete(article_id)
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "delete": True}

    @app.get("/api/score-evaluations")
    def api_score_evaluations() -> dict[str, Any]:
        rules = lifecycle.score_evaluation_service.list()
        return {"ok": True, "list": _jsonable(rules)}

    @app.post("/api/score-evaluations")
    def api_score_evaluations_replace(req: ScoreEvaluationReplaceRequest) -> dict[str, Any]:
        items = [
            ScoreEvaluationInput(
                min_score=item.min_score,
                max_score=item.max_score,
                evaluation_text=item.evaluation_text,
                images=item.images,
                deleted_images=item.deleted_images,
            )
            for item in req.items
        ]
        try:
            result = lifecycle.score_evaluation_service.replace_all(items)
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "count": len(result.evaluations), "list": _jsonable(result.evaluations)}

    @app.post("/api/system/orphan-images/list")
    def api_orphan_images_list() -> dict[str, Any]:
        try:
            orphans = lifecycle.sweep_service.scan()
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {"ok": True, "list": orphans}

    @app.post("/api/system/orphan-images/delete")
    def api_orphan_images_delete(req: OrphanDeleteRequest) -> dict[str, Any]:
        try:
            result = lifecycle.sweep_service.delete_selected(req.filenames)
        except BlobKeeperError as exc:
            raise _http_error(exc) from exc
        return {
            "ok": True,
            "deleted": result.deleted,
            "failed": [{"filename": f.image_id, "error": f.error} for f in result.failed],
            "skipped": result.skipped,
        }

    @app.post("/api/system/orphan-images/sweep")
    def api_orphan_images_sweep() -> dict[str, Any]:
        report = lifecycle.sweep_service.run(trigger="manual")
        return {"ok": report.status != "failed", "report": _jsonable(report)}

    return app
