from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from blobkeeper.application.services.project_service import ProjectService
from blobkeeper.application.wiring import ImageLifecycle, build_image_lifecycle
from blobkeeper.core.config import AppPaths, GCSettings, load_gc_settings


@dataclass(slots=True)
class CLIContext:
    paths: AppPaths
    console: Console

    def project(self) -> ProjectService:
        return ProjectService(self.paths)

    def require_project(self) -> None:
        self.project().require_initialized()

    def lifecycle(self, settings: GCSettings | None = None) -> ImageLifecycle:
        """Wire the image lifecycle for one command; the caller must call ``shutdown()``."""
        self.require_project()
        return build_image_lifecycle(self.paths, settings or load_gc_settings())
