from __future__ import annotations

import argparse
import sys
from typing import List, Optional

import uvicorn

from .api import create_app
from .config import build_repository, build_storage, configure_logging, load_settings
from .errors import PipelineError
from .processes.border_fix import fix_all_background_unified, fix_image, fix_section


def _fix_border(args: argparse.Namespace) -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    storage = build_storage(settings)
    repository = build_repository(settings)
    bucket = settings.storage_bucket

    if args.all:
        summary = fix_all_background_unified(storage=storage, repository=repository, bucket=bucket)
        print("Summary")
        print(f"  fixed:   {summary.fixed}")
        print(f"  skipped: {summary.skipped} (no red border)")
        print(f"  errors:  {summary.errors}")
        return 1 if summary.errors else 0

    if not args.target:
        print("fix-border needs a path, URL or section id (or --all)", file=sys.stderr)
        return 2

    try:
        if args.target.isdigit():
            outcome = fix_section(int(args.target), storage=storage, repository=repository, bucket=bucket)
        else:
            outcome = fix_image(args.target, storage=storage, bucket=bucket)
    except (PipelineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if outcome.error:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1
    if outcome.fixed:
        print(f"Fixed: {outcome.new_url}")
    else:
        print("No red border detected")
    return 0


def _serve(args: argparse.Namespace) -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="masked-edit-core")
    sub = parser.add_subparsers(dest="command", required=True)

    fix = sub.add_parser("fix-border", help="Detect and repair red border artifacts")
    fix.add_argument("target", nargs="?", help="image path, image URL or section id")
    fix.add_argument("--all", action="store_true", help="scan every background-unified image")
    fix.set_defaults(func=_fix_border)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_serve)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
