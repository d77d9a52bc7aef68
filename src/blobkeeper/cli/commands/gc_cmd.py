from __future__ import annotations

import argparse
from dataclasses import replace

from rich.panel import Panel
from rich.table import Table

from blobkeeper.cli.context import CLIContext
from blobkeeper.core.config import load_gc_settings


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("gc", help="Find and remove images no record references")
    gc_sub = parser.add_subparsers(dest="gc_command", required=True)

    scan = gc_sub.add_parser("scan", help="List orphan images without deleting anything")
    scan.set_defaults(handler=run_scan)

    delete = gc_sub.add_parser("delete", help="Delete selected orphan images")
    delete.add_argument("image_ids", nargs="+", help="Image ids taken from 'gc scan'")
    delete.set_defaults(handler=run_delete)

    sweep = gc_sub.add_parser("sweep", help="Run a full mark-and-sweep now")
    sweep.add_argument(
        "--grace-seconds",
        type=int,
        default=None,
        help="Ignore images younger than this (default: BLOBKEEPER_SWEEP_GRACE_SECONDS)",
    )
    sweep.set_defaults(handler=run_sweep)


def run_scan(args: argparse.Namespace, ctx: CLIContext) -> int:
    lifecycle = ctx.lifecycle()
    try:
        orphans = lifecycle.sweep_service.scan()
    finally:
        lifecycle.shutdown()

    table = Table(title=f"Orphan Images ({len(orphans)})")
    table.add_column("Image ID", overflow="fold")
    for image_id in orphans:
        table.add_row(image_id)
    ctx.console.print(table)
    return 0


def run_delete(args: argparse.Namespace, ctx: CLIContext) -> int:
    lifecycle = ctx.lifecycle()
    try:
        result = lifecycle.sweep_service.delete_selected(args.image_ids)
    finally:
        lifecycle.shutdown()

    table = Table(title="Delete Results")
    table.add_column("Image ID", overflow="fold")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for image_id in result.deleted:
        table.add_row(image_id, "[green]deleted[/green]", "")
    for image_id in result.skipped:
        table.add_row(image_id, "[yellow]skipped[/yellow]", "still referenced or not stored")
    for failure in result.failed:
        table.add_row(failure.image_id, "[red]failed[/red]", failure.error)
    ctx.console.print(table)
    return 1 if result.failed else 0


def run_sweep(args: argparse.Namespace, ctx: CLIContext) -> int:
    settings = load_gc_settings()
    if args.grace_seconds is not None:
        settings = replace(settings, sweep_grace_seconds=max(0, args.grace_seconds))
    lifecycle = ctx.lifecycle(settings)
    try:
        report = lifecycle.sweep_service.run(trigger="manual")
    finally:
        lifecycle.shutdown()

    ctx.console.print(
        Panel.fit(
            f"Status: {report.status}\n"
            f"Stored images: {report.heap_size}\n"
            f"Referenced ids: {report.root_size}\n"
            f"Orphans: {len(report.orphans)}\n"
            f"Deleted: {len(report.deleted)}\n"
            f"Failed: {len(report.failed)}",
            title="Sweep Summary",
        )
    )
    if report.error:
        ctx.console.print(f"[red]{report.error}[/red]")
    return 0 if report.status == "completed" and not report.failed else 1
