"""``wren run`` — serve an app with uvicorn."""

import argparse
import sys

from wren.cli._resolve import resolve_app


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and serve it.

    With ``--reload`` the import string is handed to uvicorn so code
    changes take effect.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    from wren.server.dev import run_server as serve

    app._ensure_frozen()
    serve(
        app,
        args.host or app.config.host,
        args.port or app.config.port,
        reload=args.reload,
        app_path=args.app,
        log_level=app.config.log_level,
    )
