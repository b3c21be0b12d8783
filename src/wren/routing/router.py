"""Compiled router with trie-based path matching.

A route tree is flattened at registration time: every route that has a
page is inserted under its full path, remembering the chain of ancestors
it was reached through. The trie is frozen by ``compile()``.
"""

import re
from dataclasses import dataclass

from wren.errors import ConfigurationError, MethodNotAllowed, NotFound
from wren.routing.params import CONVERTERS, convert_param
from wren.routing.route import PathSegment, Route, RouteMatch

PAGE_METHODS = frozenset({"GET", "HEAD"})


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/product"          -> [PathSegment("product")]
        "/product/{id}"     -> [PathSegment("product"), PathSegment("{id}", is_param=True, ...)]
        "/product/{id:int}" -> [..., PathSegment("{id:int}", is_param=True, param_type="int")]
        "/docs/{rest:path}" -> [..., PathSegment("{rest:path}", is_param=True, param_type="path")]
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if part.startswith("<") and part.endswith(">"):
            msg = (
                f"Route {path!r} uses <param> syntax; wren expects {{param}} "
                f"(e.g. {{id}} or {{id:int}})."
            )
            raise ConfigurationError(msg)
        if part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            if ":" in inner:
                param_name, param_type = inner.split(":", 1)
            else:
                param_name = inner
                param_type = "str"
            if param_type not in CONVERTERS:
                msg = f"Route {path!r} uses unknown converter {param_type!r}."
                raise ConfigurationError(msg)
            segments.append(
                PathSegment(
                    value=part,
                    is_param=True,
                    param_name=param_name,
                    param_type=param_type,
                )
            )
        else:
            segments.append(PathSegment(value=part))
    return segments


def join_paths(prefix: str, path: str) -> str:
    """Join a parent route path and a (relative) child path."""
    joined = "/".join(p for p in (prefix.strip("/"), path.strip("/")) if p)
    return f"/{joined}"


@dataclass(frozen=True, slots=True)
class _Entry:
    """A page registered at a trie node."""

    route: Route
    chain: tuple[Route, ...]
    pattern: str


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("catch_all", "children", "entry", "param_child")

    def __init__(self) -> None:
        # Static segment children: "product" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single parameter child (only one param pattern per level)
        self.param_child: _ParamEdge | None = None
        # Catch-all (path converter), consumes the rest of the path
        self.catch_all: _CatchAllEdge | None = None
        self.entry: _Entry | None = None


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """A catch-all (path) edge — consumes remaining path."""

    param_name: str
    entry: _Entry


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(Route("/product", children=(Route("{id:int}", page=product_page),)))
        router.compile()
        match = router.match("GET", "/product/42")
        match.path_params  # {"id": 42}
    """

    __slots__ = ("_compiled", "_entries", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False
        self._entries: list[_Entry] = []

    def add(self, route: Route, *, prefix: str = "", parents: tuple[Route, ...] = ()) -> None:
        """Add a route (and, recursively, its children). Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        full_path = join_paths(prefix, route.path)
        chain = (*parents, route)

        if route.page is not None:
            self._insert(_Entry(route=route, chain=chain, pattern=full_path))
        elif not route.children:
            msg = f"Route {full_path!r} has neither a page nor children."
            raise ConfigurationError(msg)

        for child in route.children:
            self.add(child, prefix=full_path, parents=chain)

    def _insert(self, entry: _Entry) -> None:
        node = self._root
        for seg in parse_path(entry.pattern):
            if seg.is_param and seg.param_type == "path":
                if node.catch_all is not None:
                    msg = f"Duplicate catch-all route {entry.pattern!r}."
                    raise ConfigurationError(msg)
                node.catch_all = _CatchAllEdge(param_name=seg.param_name or "path", entry=entry)
                self._entries.append(entry)
                return

            if seg.is_param:
                if node.param_child is None:
                    pattern, _ = CONVERTERS[seg.param_type]
                    node.param_child = _ParamEdge(
                        param_name=seg.param_name or "",
                        param_type=seg.param_type,
                        regex=re.compile(f"^{pattern}$"),
                        node=_TrieNode(),
                    )
                elif (
                    node.param_child.param_name != seg.param_name
                    or node.param_child.param_type != seg.param_type
                ):
                    msg = (
                        f"Route {entry.pattern!r} conflicts with an existing "
                        f"parameter {{{node.param_child.param_name}:{node.param_child.param_type}}}."
                    )
                    raise ConfigurationError(msg)
                node = node.param_child.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        if node.entry is not None:
            msg = f"Duplicate route {entry.pattern!r}."
            raise ConfigurationError(msg)
        node.entry = entry
        self._entries.append(entry)

    @property
    def routes(self) -> list[tuple[str, Route]]:
        """All registered pages as ``(full_path, route)`` pairs, in registration order."""
        return [(entry.pattern, entry.route) for entry in self._entries]

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path against the compiled routes.

        Returns a ``RouteMatch`` with converted path params on success.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method
        is not GET or HEAD.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        result = self._match_node(self._root, parts, 0, {})

        if result is None:
            raise NotFound(f"No route matches {method} {path!r}")

        entry, raw_params = result
        if method not in PAGE_METHODS:
            raise MethodNotAllowed(PAGE_METHODS)

        return RouteMatch(
            route=entry.route,
            chain=entry.chain,
            path_params=self._convert(entry, raw_params),
            pattern=entry.pattern,
        )

    @staticmethod
    def _convert(entry: _Entry, raw: dict[str, str]) -> dict[str, object]:
        types = {
            seg.param_name: seg.param_type
            for seg in parse_path(entry.pattern)
            if seg.is_param and seg.param_name
        }
        return {name: convert_param(value, types.get(name, "str")) for name, value in raw.items()}

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[_Entry, dict[str, str]] | None:
        """Recursively match path parts against the trie."""
        # All parts consumed: return this node's page
        if index == len(parts):
            if node.entry is not None:
                return node.entry, params
            return None

        part = parts[index]

        # 1. Try static child first (exact match)
        if part in node.children:
            result = self._match_node(node.children[part], parts, index + 1, params)
            if result is not None:
                return result

        # 2. Try parameter child
        if node.param_child is not None:
            edge = node.param_child
            if edge.regex.match(part):
                new_params = {**params, edge.param_name: part}
                result = self._match_node(edge.node, parts, index + 1, new_params)
                if result is not None:
                    return result

        # 3. Try catch-all
        if node.catch_all is not None:
            remaining = "/".join(parts[index:])
            return node.catch_all.entry, {**params, node.catch_all.param_name: remaining}

        return None
