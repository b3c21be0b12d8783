"""Immutable HTTP request.

Frozen metadata parsed once from the ASGI scope. Pages never read the
request body, so only the pieces the renderer needs are kept: method,
path, query, headers, and the route's path params.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any
from urllib.parse import parse_qsl

from wren._internal.asgi import Receive


def _parse_headers(raw: Any) -> Mapping[str, str]:
    """Lower-cased header mapping; the first occurrence of a name wins."""
    headers: dict[str, str] = {}
    for name, value in raw:
        key = name.decode("latin-1").lower()
        if key not in headers:
            headers[key] = value.decode("latin-1")
    return MappingProxyType(headers)


def _parse_query(query_string: bytes) -> Mapping[str, str]:
    query: dict[str, str] = {}
    for key, value in parse_qsl(query_string.decode("latin-1"), keep_blank_values=True):
        query.setdefault(key, value)
    return MappingProxyType(query)


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``query`` keeps the first value of each parameter. ``path_params`` is
    empty until the router has matched the path (see ``with_params``).
    """

    method: str
    path: str
    query: Mapping[str, str]
    headers: Mapping[str, str]
    query_string: bytes = b""
    path_params: Mapping[str, Any] = field(default_factory=dict)
    client: tuple[str, int] | None = None

    # Private: ASGI receive callable, used for disconnect detection
    _receive: Receive | None = field(default=None, repr=False, compare=False)

    @property
    def url(self) -> str:
        """Path plus query string, as the client sent it."""
        if self.query_string:
            return f"{self.path}?{self.query_string.decode('latin-1')}"
        return self.path

    def with_params(self, path_params: Mapping[str, Any]) -> Request:
        """Return a copy carrying the matched route's path params."""
        return replace(self, path_params=MappingProxyType(dict(path_params)))

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive | None = None) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        client = scope.get("client")
        query_string = scope.get("query_string", b"")
        return cls(
            method=scope["method"],
            path=scope["path"],
            query=_parse_query(query_string),
            headers=_parse_headers(scope.get("headers", ())),
            query_string=query_string,
            client=tuple(client) if client else None,
            _receive=receive,
        )
