"""Terminal error formatting for wren.

Replaces raw ``logger.exception()`` with diagnostics that highlight the
useful frames. Verbosity is controlled by the ``WREN_TRACEBACK``
environment variable:

- ``compact`` (default): error summary plus up to five application frames
- ``full``: the complete Python traceback
- ``minimal``: one line with the innermost location
"""

from __future__ import annotations

import logging
import os
import traceback as _traceback
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wren.http.request import Request

logger = logging.getLogger("wren.server")

_STDLIB_PREFIX = os.path.dirname(os.__file__)


def _is_app_frame(filename: str) -> bool:
    """True if the frame is from the application (not stdlib/site-packages/wren)."""
    if "site-packages" in filename or filename.startswith("<"):
        return False
    if f"{os.sep}wren{os.sep}" in filename:
        return False
    return not filename.startswith(_STDLIB_PREFIX)


def format_compact_traceback(exc: BaseException) -> str:
    """Error summary plus application frames only.

    Falls back to the last three frames when none are application frames.
    """
    tb = exc.__traceback__
    frames = _traceback.extract_tb(tb) if tb else []
    app_frames = [f for f in frames if _is_app_frame(f.filename)]
    display_frames = app_frames if app_frames else frames[-3:]

    parts = [f"{type(exc).__name__}: {exc}"]
    if display_frames:
        parts.append("  Trace (app frames):")
        for frame in display_frames[-5:]:
            parts.append(f"    {frame.filename}:{frame.lineno} in {frame.name}")
            if frame.line:
                parts.append(f"      {frame.line.strip()}")
    return "\n".join(parts)


def format_minimal_error(exc: BaseException) -> str:
    """One-line error summary."""
    tb = exc.__traceback__
    frames = _traceback.extract_tb(tb) if tb else []
    last = frames[-1] if frames else None
    location = f" at {last.filename}:{last.lineno}" if last else ""
    return f"{type(exc).__name__}{location}: {exc}"


def log_error(exc: BaseException, request: Request | None = None, *, status: int = 500) -> None:
    """Log an internal error at the verbosity chosen by ``WREN_TRACEBACK``.

    ``request`` is optional: the sender logs mid-stream failures without one.
    """
    prefix = f"{status} {request.method} {request.path}" if request is not None else "Server error"
    style = os.environ.get("WREN_TRACEBACK", "compact").lower()

    if style == "full":
        logger.error(prefix, exc_info=exc)
    elif style == "minimal":
        logger.error("%s: %s", prefix, format_minimal_error(exc))
    else:
        logger.error("%s\n%s", prefix, format_compact_traceback(exc))
