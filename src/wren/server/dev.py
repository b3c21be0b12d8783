"""Serve a wren App with uvicorn.

uvicorn is an optional dependency (``pip install wren[server]``); it is
imported only when a server is actually started.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("wren.server")


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    app_path: str | None = None,
    log_level: str = "info",
) -> None:
    """Start uvicorn with the given App.

    With ``reload`` and an ``app_path`` import string, uvicorn re-imports
    the app on code changes; a live App object cannot be reloaded, so
    reload is dropped when no import string is available.
    """
    try:
        import uvicorn
    except ImportError as exc:
        msg = "Serving requires uvicorn: pip install 'wren[server]'"
        raise RuntimeError(msg) from exc

    target: object = app
    if reload and app_path is not None:
        target = app_path
    elif reload:
        logger.warning("Auto-reload needs an import string; starting without reload")
        reload = False

    uvicorn.run(target, host=host, port=port, reload=reload, log_level=log_level)
