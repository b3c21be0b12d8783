"""ASGI response sending — translates wren Response types to ASGI messages.

Handles both standard single-body responses and chunked streaming
responses. Streaming runs alongside a disconnect watcher: when the client
goes away, only this response's producer is cancelled.
"""

import logging
import traceback

import anyio
from markupsafe import escape

from wren._internal.asgi import Receive, Send, is_disconnect
from wren.http.response import Response, StreamingResponse
from wren.server.terminal_errors import log_error

logger = logging.getLogger("wren.server")

STREAM_ERROR_MARKER = "<!-- wren: render error -->"


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def _raw_headers(content_type: str, headers: tuple[tuple[str, str], ...]) -> list[tuple[bytes, bytes]]:
    raw = [(b"content-type", content_type.encode("latin-1"))]
    raw.extend((name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers)
    return raw


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a wren Response into ASGI send() calls."""
    raw_headers = _raw_headers(response.content_type, response.headers)
    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})
    await send({"type": "http.response.body", "body": b"" if head else body})


async def _close(chunks: object) -> None:
    aclose = getattr(chunks, "aclose", None)
    if aclose is not None:
        with anyio.CancelScope(shield=True):
            await aclose()


def _error_chunk(exc: BaseException, debug: bool) -> bytes:
    if not debug:
        return STREAM_ERROR_MARKER.encode("utf-8")
    trace = escape("".join(traceback.format_exception(exc)))
    return (
        f'<pre class="wren-error" data-status="500" style="white-space:pre-wrap">{trace}</pre>'
    ).encode("utf-8")


async def send_streaming_response(
    response: StreamingResponse,
    send: Send,
    receive: Receive | None = None,
    *,
    debug: bool = False,
    head: bool = False,
) -> None:
    """Send a streaming response via chunked transfer encoding.

    Sends headers immediately, then each chunk as an ASGI body message
    with ``more_body=True``, and closes with an empty body. On a
    mid-stream error, logs it and emits an HTML comment but never sends
    the closing body, so the server drops the connection and the client
    sees an incomplete transfer. On client disconnect, stops producing
    and sends nothing more.
    """
    raw_headers = _raw_headers(response.content_type, response.headers)
    raw_headers.append((b"transfer-encoding", b"chunked"))

    # No content-length; chunked transfer encoding signals body boundaries
    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})

    chunks = response.chunks
    if head:
        await _close(chunks)
        await send({"type": "http.response.body", "body": b"", "more_body": False})
        return

    disconnected = False
    failed = False

    async def watch_disconnect(scope: anyio.CancelScope) -> None:
        nonlocal disconnected
        assert receive is not None
        while True:
            message = await receive()
            if is_disconnect(message):
                disconnected = True
                scope.cancel()
                return

    try:
        async with anyio.create_task_group() as tg:
            if receive is not None:
                tg.start_soon(watch_disconnect, tg.cancel_scope)
            try:
                async for chunk in chunks:
                    if chunk:
                        await send({"type": "http.response.body", "body": chunk, "more_body": True})
            except Exception as exc:
                failed = True
                log_error(exc)
                await send({
                    "type": "http.response.body",
                    "body": _error_chunk(exc, debug),
                    "more_body": True,
                })
            tg.cancel_scope.cancel()
    finally:
        await _close(chunks)

    if disconnected:
        logger.debug("Client disconnected mid-stream; render cancelled")
        return
    if failed:
        # body left unterminated; the server closes the connection
        return

    await send({"type": "http.response.body", "body": b"", "more_body": False})
