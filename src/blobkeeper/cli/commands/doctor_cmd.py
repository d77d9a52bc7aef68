from __future__ import annotations

import argparse

from rich.table import Table

from blobkeeper.application.services.health_service import HealthService
from blobkeeper.cli.context import CLIContext

_LEVEL_STYLE = {"error": "red", "warning": "yellow"}


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("doctor", help="Check database settings and stored image integrity")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero on warnings as well as errors")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    project = ctx.project()
    project.require_initialized()
    project.init_project()

    report = HealthService(db_path=ctx.paths.db_path, images_dir=ctx.paths.images_dir).run_doctor()
    stats = project.stats()

    ctx.console.print(
        f"{report.checks_run} checks over {stats.live_images} live image(s); "
        f"journal_mode={report.db_runtime['journal_mode']}, busy_timeout={report.db_runtime['busy_timeout_ms']}ms"
    )
    if not report.issues:
        ctx.console.print("[green]No issues found[/green]")
        return 0

    table = Table(title=f"Doctor Issues ({len(report.issues)})")
    table.add_column("Level")
    table.add_column("Check")
    table.add_column("Message", overflow="fold")
    for issue in report.issues:
        style = _LEVEL_STYLE.get(issue.level, "white")
        table.add_row(f"[{style}]{issue.level}[/{style}]", issue.check, issue.message)
    ctx.console.print(table)

    if not report.ok:
        return 1
    return 1 if args.strict else 0
