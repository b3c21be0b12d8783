"""Render tree nodes.

Page builders return a tree of these. Everything is static HTML except
``Boundary``: a region whose content depends on data (or on a lazily
loaded chunk) and is streamed in after the shell.

Usage::

    def product_page(ctx):
        return h("main", {"class": "product"},
            h("h1", None, "Product"),
            Boundary(
                key=lambda ctx: f"product:{ctx.params['id']}",
                fetch=load_product,
                render=lambda p: h("p", None, p["name"]),
                fallback=h("p", {"class": "skeleton"}, "Loading..."),
                chunk="src/components/ProductCard.jsx",
            ),
        )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from markupsafe import Markup

from wren._internal.invoke import invoke
from wren._internal.types import Fetcher


@dataclass(frozen=True, slots=True)
class Text:
    """Escaped text."""

    value: str


@dataclass(frozen=True, slots=True)
class Raw:
    """Trusted HTML, emitted verbatim."""

    html: str


@dataclass(frozen=True, slots=True)
class Element:
    tag: str
    attrs: Mapping[str, Any] = field(default_factory=dict)
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class Fragment:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class Boundary:
    """An async region of the page.

    ``key`` names the data fetch (a string, or a callable of the
    ``PageContext``); boundaries sharing a key share one fetch. ``render``
    turns the fetched value into nodes, ``fallback`` is shown in the shell
    until then. ``chunk`` is the manifest key of the code the region needs.
    With ``ssr=False`` the server only ever renders the fallback and the
    client loads the region itself.
    """

    render: Callable[[Any], Any]
    fallback: Any = None
    key: str | Callable[..., str] | None = None
    fetch: Fetcher | None = None
    chunk: str | None = None
    ssr: bool = True
    error: Callable[[BaseException], Any] | None = None
    id: str | None = None

    def resolve_key(self, ctx: Any) -> str | None:
        if callable(self.key):
            return self.key(ctx)
        return self.key


Node: TypeAlias = Text | Raw | Element | Fragment | Boundary


def to_node(child: Any) -> Node | None:
    """Coerce a child value into a node (``None``/``False`` render nothing)."""
    if child is None or child is False or child is True:
        return None
    if isinstance(child, Text | Raw | Element | Fragment | Boundary):
        return child
    if isinstance(child, Markup):
        return Raw(str(child))
    if isinstance(child, str):
        return Text(child)
    if isinstance(child, int | float):
        return Text(str(child))
    if isinstance(child, Iterable):
        return Fragment(_children(child))
    msg = f"Cannot render {type(child).__name__!r} as a node"
    raise TypeError(msg)


def _children(children: Iterable[Any]) -> tuple[Node, ...]:
    nodes: list[Node] = []
    for child in children:
        node = to_node(child)
        if node is not None:
            nodes.append(node)
    return tuple(nodes)


def h(tag: str, attrs: Mapping[str, Any] | None = None, *children: Any) -> Element:
    """Build an element. Strings become escaped text, ``Markup`` stays raw."""
    return Element(tag=tag, attrs=dict(attrs or {}), children=_children(children))


def fragment(*children: Any) -> Fragment:
    return Fragment(_children(children))


# -- Route-level data --


def route_data_key(ctx: Any) -> str:
    """Default fetch key for route data: ``route:`` plus the URL."""
    return f"route:{ctx.url}"


async def fetch_route_data(ctx: Any) -> Any:
    """Run the matched route's nearest data fetcher."""
    fetcher = ctx.match.fetcher
    if fetcher is None:
        msg = f"No data fetcher on route {ctx.match.pattern!r}"
        raise LookupError(msg)
    return await invoke(fetcher, ctx)


def route_data(
    render: Callable[[Any], Any],
    *,
    fallback: Any = None,
    key: str | Callable[..., str] | None = None,
    chunk: str | None = None,
    error: Callable[[BaseException], Any] | None = None,
    id: str | None = None,
) -> Boundary:
    """A boundary rendering the data of the route's own fetcher."""
    return Boundary(
        render=render,
        fallback=fallback,
        key=key or route_data_key,
        fetch=fetch_route_data,
        chunk=chunk,
        error=error,
        id=id,
    )


def lazy(
    render: Callable[[Any], Any],
    chunk: str,
    *,
    fallback: Any = None,
    ssr: bool = True,
    id: str | None = None,
) -> Boundary:
    """A code-split region without data (``render`` receives ``None``)."""
    return Boundary(render=render, fallback=fallback, chunk=chunk, ssr=ssr, id=id)
