from __future__ import annotations

import argparse
from pathlib import Path

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from blobkeeper.application.services.blob_service import BlobService
from blobkeeper.cli.context import CLIContext
from blobkeeper.core.errors import BlobStorageError, ValidationError
from blobkeeper.infrastructure.blobs.store import ImageFileStore
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("ingest", help="Upload one or more image files into the store")
    parser.add_argument("paths", nargs="+", help="Local image paths to ingest")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ctx.require_project()

    service = BlobService(ImageRepo(ctx.paths.db_path), ImageFileStore(ctx.paths.images_dir))

    table = Table(title="Ingest Results")
    table.add_column("File", overflow="fold")
    table.add_column("Status")
    table.add_column("Image ID", overflow="fold")

    exit_code = 0
    paths = [Path(p).expanduser() for p in args.paths]

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=ctx.console,
    )

    with progress:
        task = progress.add_task("Ingesting", total=len(paths))
        for p in paths:
            try:
                if not p.is_file():
                    raise ValidationError(f"File not found: {p}")
                result = service.ingest(p.read_bytes(), p.name)
                table.add_row(str(p), result.status, result.image.id)
            except (ValidationError, BlobStorageError, OSError) as exc:
                table.add_row(str(p), "error", str(exc))
                exit_code = 1
            finally:
                progress.advance(task, 1)

    ctx.console.print(table)
    return exit_code
