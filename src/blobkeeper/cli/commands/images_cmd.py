from __future__ import annotations

import argparse

from rich.table import Table

from blobkeeper.cli.context import CLIContext
from blobkeeper.infrastructure.db.repos.image_repo import ImageRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("images", help="List stored images")
    parser.add_argument("--limit", type=int, default=50)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ctx.require_project()

    images = ImageRepo(ctx.paths.db_path).list_live(limit=args.limit)

    table = Table(title=f"Images ({len(images)})")
    table.add_column("ID")
    table.add_column("Original Name")
    table.add_column("Media Type")
    table.add_column("Size")
    table.add_column("Digest (sha256)", overflow="fold")

    for image in images:
        table.add_row(
            image.id,
            image.original_filename,
            image.media_type,
            str(image.size_bytes),
            image.digest_sha256,
        )

    ctx.console.print(table)
    return 0
