"""ASGI handler — translates ASGI scope/messages to wren types.

The only component that touches raw ASGI for a request. Converts the
scope to a typed Request, renders through the orchestrator, maps errors
raised before the first byte to responses, and hands the result to the
sender.
"""

from collections.abc import Callable
from contextvars import Token
from typing import Any

from wren._internal.asgi import Receive, Scope, Send
from wren.context import request_var
from wren.errors import HTTPError
from wren.http.request import Request
from wren.http.response import Response, StreamingResponse
from wren.render.orchestrator import RenderOrchestrator
from wren.server.errors import handle_http_error, handle_internal_error
from wren.server.sender import send_response, send_streaming_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    orchestrator: RenderOrchestrator,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> None:
    """Process a single HTTP request through the render pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    token: Token[Request] = request_var.set(request)

    response: Response | StreamingResponse
    try:
        try:
            response = await orchestrator.render(request)
        except HTTPError as exc:
            response = await handle_http_error(exc, request, error_handlers, debug)
        except Exception as exc:
            response = await handle_internal_error(exc, request, error_handlers, debug)

        head = request.method == "HEAD"
        if isinstance(response, StreamingResponse):
            await send_streaming_response(response, send, receive, debug=debug, head=head)
        else:
            await send_response(response, send, head=head)
    finally:
        request_var.reset(token)
