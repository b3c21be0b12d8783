"""``wren routes`` — list registered pages.

Prints every page with its full path, name, and data fetcher.
"""

import argparse
import sys

from wren.cli._resolve import resolve_app


def run_routes(args: argparse.Namespace) -> None:
    """Resolve ``args.app``, freeze it, and print a PATH / PAGE / FETCH table."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = app.router.routes
    if not routes:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str]] = []
    for path, route in routes:
        page_name = getattr(route.page, "__name__", str(route.page))
        if route.name:
            page_name = f"{page_name} ({route.name})"
        fetch_name = getattr(route.fetch, "__name__", "-") if route.fetch else "-"
        rows.append((path, page_name, fetch_name))

    max_path = max(max(len(r[0]) for r in rows), 4)  # "PATH" header
    max_page = max(max(len(r[1]) for r in rows), 4)  # "PAGE" header

    fmt = f"{{:<{max_path}}}  {{:<{max_page}}}  {{}}"
    print(fmt.format("PATH", "PAGE", "FETCH"))
    sep_len = max_path + max_page + 4 + max(len(r[2]) for r in rows)
    print("-" * min(sep_len, 80))
    for row in rows:
        print(fmt.format(*row))
