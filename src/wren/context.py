"""Request-scoped context.

Provides:
- ``request_var``: the current ``Request`` for this task.
- ``PageContext``: what page builders and data fetchers receive.

Page builders run once per path while the shell is prerendered and the
result is reused for every later request, so their ``PageContext`` has
no request and no query. Data fetchers run per request and see both.
"""

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from wren.http.request import Request
from wren.routing.route import RouteMatch

request_var: ContextVar[Request] = ContextVar("wren_request")
"""The current request. Set by the ASGI handler before dispatch."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


@dataclass(frozen=True, slots=True)
class PageContext:
    """Path, params and (for fetchers) the request being rendered."""

    path: str
    params: Mapping[str, Any]
    match: RouteMatch
    request: Request | None = None
    query: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def url(self) -> str:
        if self.request is not None:
            return self.request.url
        return self.path

    @classmethod
    def for_shell(cls, path: str, match: RouteMatch) -> "PageContext":
        return cls(path=path, params=match.path_params, match=match)

    @classmethod
    def for_request(cls, request: Request, match: RouteMatch) -> "PageContext":
        return cls(
            path=request.path,
            params=match.path_params,
            match=match,
            request=request,
            query=request.query,
        )
