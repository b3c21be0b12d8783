"""Error handling pipeline for wren requests.

Maps HTTPError exceptions and unexpected failures to Response objects,
using registered error handlers or minimal defaults. Only reached before
the first response byte; failures after that are handled by the sender.
"""

import inspect
import logging
import traceback
from collections.abc import Callable
from typing import Any

from markupsafe import escape

from wren.errors import HTTPError
from wren.http.request import Request
from wren.http.response import Response
from wren.server.terminal_errors import log_error

logger = logging.getLogger("wren.server")


def default_error_page(status: int, detail: str) -> str:
    return (
        "<!DOCTYPE html>"
        f'<html><body><div class="wren-error" data-status="{status}">'
        f"{escape(detail)}</div></body></html>"
    )


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
) -> Response:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc)
    args, and may be sync or async. A string result becomes an HTML body.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result

    if isinstance(result, Response):
        return result
    return Response(body=str(result))


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc)
        # keep the exception's status unless the handler chose one
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    detail = exc.detail or f"Error {exc.status}"
    if debug and exc.detail:
        detail = f"{exc.status}: {exc.detail}"

    response = Response(body=default_error_page(exc.status, detail), status=exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    log_error(exc, request)

    handler = error_handlers.get(500) or error_handlers.get(type(exc))
    if handler is not None:
        response = await call_error_handler(handler, request, exc)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if debug:
        trace = "".join(traceback.format_exception(exc))
        body = (
            "<!DOCTYPE html><html><body>"
            f'<pre class="wren-error" data-status="500">{escape(trace)}</pre>'
            "</body></html>"
        )
        return Response(body=body, status=500)

    return Response(body=default_error_page(500, "Internal Server Error"), status=500)
