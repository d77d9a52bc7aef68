from __future__ import annotations

import argparse
import logging
from dataclasses import replace

import uvicorn

from blobkeeper.cli.context import CLIContext
from blobkeeper.core.config import load_gc_settings
from blobkeeper.web.app import create_app

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("web", help="Serve the HTTP API with the sweep scheduler running")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument(
        "--no-sweep-schedule",
        action="store_true",
        help="Do not start the daily orphan sweep (manual sweeps still work)",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    settings = load_gc_settings()
    if args.no_sweep_schedule:
        settings = replace(settings, sweep_schedule_enabled=False)
    logger.info(
        "Serving %s on %s:%d (eager cleanup: %s, daily sweep: %s)",
        ctx.paths.data_dir,
        args.host,
        args.port,
        settings.eager_mode,
        "%02d:%02d" % settings.sweep_at if settings.sweep_schedule_enabled else "off",
    )
    uvicorn.run(create_app(ctx.paths, settings), host=args.host, port=args.port)
    return 0
