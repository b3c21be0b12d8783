"""Wren CLI — asset classification, dev server, and route listing.

Entry point registered as ``wren`` in ``pyproject.toml``::

    [project.scripts]
    wren = "wren.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``wren`` command."""
    parser = argparse.ArgumentParser(
        prog="wren",
        description="Wren: resumable streaming page renderer.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- wren classify ----------------------------------------------------
    classify_parser = subparsers.add_parser(
        "classify", help="Categorize build chunks into essential and dynamic assets",
    )
    classify_parser.add_argument("bundle", help="Bundle graph JSON ({chunk file: chunk})")
    classify_parser.add_argument("--out", required=True, help="Categorized manifest to write")
    classify_parser.add_argument(
        "--manifest", default=None, help="Bundler manifest.json, to key output by source module",
    )
    classify_parser.add_argument(
        "--sites", default=None, help='JSON list of async import sites [{"module": ..., "ssr": ...}]',
    )
    classify_parser.add_argument(
        "--scan", default=None, help="Source directory to scan for split(() => import(...)) calls",
    )

    # -- wren run ---------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Serve an app with uvicorn")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    run_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # -- wren routes ------------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered pages")
    routes_parser.add_argument("app", help="Import string (e.g. myapp:app)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "classify":
        from wren.cli._classify import run_classify

        run_classify(args)
    elif args.command == "run":
        from wren.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from wren.cli._routes import run_routes

        run_routes(args)
