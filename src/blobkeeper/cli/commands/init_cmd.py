from __future__ import annotations

import argparse

from rich.panel import Panel

from blobkeeper.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("init", help="Create the data directory, image directory and database")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    project = ctx.project()
    result = project.init_project()
    stats = project.stats()

    for path in result.paths_created:
        ctx.console.print(f"[green]Created[/green] {path}")

    ctx.console.print(
        Panel.fit(
            f"Database: {result.db_path}\n"
            f"Images dir: {ctx.paths.images_dir}\n"
            f"Live images: {stats.live_images}\n"
            f"Articles: {stats.articles}\n"
            f"Score evaluations: {stats.score_evaluations}",
            title="blobkeeper ready" if result.paths_created else "blobkeeper already initialized",
        )
    )
    return 0
