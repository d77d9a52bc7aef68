from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from blobkeeper import __version__
from blobkeeper.cli.commands import (
    doctor_cmd,
    gc_cmd,
    images_cmd,
    ingest_cmd,
    init_cmd,
    web_cmd,
)
from blobkeeper.cli.context import CLIContext
from blobkeeper.core.config import load_paths
from blobkeeper.core.errors import BlobKeeperError
from blobkeeper.core.logging import configure_logging

logger = logging.getLogger(__name__)

_COMMAND_MODULES = (init_cmd, ingest_cmd, images_cmd, gc_cmd, doctor_cmd, web_cmd)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blobkeeper",
        description="Deduplicated image store with reference reconciliation and orphan collection",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Directory holding the .blobkeeper data dir (default: current working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logs")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in _COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    ctx = CLIContext(paths=load_paths(args.project_root), console=Console())
    logger.debug("Running %s against %s", args.command, ctx.paths.data_dir)

    try:
        return args.handler(args, ctx)
    except BlobKeeperError as exc:
        logger.error(str(exc))
        return 1
    except KeyboardInterrupt:
        ctx.console.print("[yellow]Interrupted[/yellow]")
        return 130
