"""Wren exception hierarchy.

Shared across the router, asset layer, caches, renderer, and ASGI handler
so every module raises and catches the same types.
"""

from dataclasses import dataclass


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when app or route configuration is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


class ManifestError(WrenError):
    """Raised when a build manifest is missing or malformed."""


class PrerenderError(WrenError):
    """Raised when the one-time shell prerender cannot complete.

    The orchestrator catches this and degrades to an uncached render.
    """


class FetchTimeout(WrenError):  # noqa: N818
    """A boundary data fetch did not settle within ``fetch_timeout``."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"Fetch for {key!r} did not settle within {timeout:g}s")
        self.key = key
        self.timeout = timeout


@dataclass(frozen=True, slots=True)
class HTTPError(WrenError):
    """An error that maps directly to an HTTP status code.

    Only meaningful before the first response byte is sent; afterwards
    the status line is gone and the stream can only be cut short.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — pages are served for GET and HEAD only.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
