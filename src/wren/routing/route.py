"""Route, PathSegment and RouteMatch frozen dataclasses."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from wren._internal.types import Fetcher, PageBuilder


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``  (is_param=False)
    Param:   ``/{id}``   (is_param=True, param_name="id")
    Typed:   ``/{id:int}`` (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class Route:
    """A node of the route tree.

    ``path`` of a child is relative to its parent (``"{id:int}"`` under
    ``"/product"``). ``page`` builds the render tree for the matched path;
    a route without one only groups children. ``fetch`` is the route-level
    data fetcher read by ``route_data()`` boundaries. ``meta`` holds static
    head tags as attribute mappings (``{"name": "description", "content": ...}``);
    they merge along the matched chain, see ``merge_meta``.
    """

    path: str
    page: PageBuilder | None = None
    fetch: Fetcher | None = None
    children: tuple["Route", ...] = ()
    name: str | None = None
    title: str | None = None
    meta: tuple[Mapping[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match.

    ``chain`` runs from the outermost ancestor to the matched route;
    ``pattern`` is the full, joined route path.
    """

    route: Route
    chain: tuple[Route, ...]
    path_params: Mapping[str, Any]
    pattern: str

    @property
    def fetcher(self) -> Fetcher | None:
        """The nearest data fetcher, searching from the matched route outward."""
        for route in reversed(self.chain):
            if route.fetch is not None:
                return route.fetch
        return None

    @property
    def title(self) -> str | None:
        for route in reversed(self.chain):
            if route.title is not None:
                return route.title
        return None

    @property
    def meta(self) -> tuple[Mapping[str, str], ...]:
        """Head tags of the whole chain, children overriding ancestors."""
        return merge_meta(*(route.meta for route in self.chain))


def _meta_key(attrs: Mapping[str, str]) -> str:
    if "charset" in attrs:
        return "charset"
    for name in ("name", "property", "http-equiv"):
        if attrs.get(name):
            return f"{name}={attrs[name]}"
    return ",".join(f"{k}={v}" for k, v in sorted(attrs.items()))


def merge_meta(*lists: Iterable[Mapping[str, str]]) -> tuple[Mapping[str, str], ...]:
    """Merge head tag lists, outermost first.

    A later tag replaces an earlier one with the same key: ``charset``, else
    the value of ``name``, ``property`` or ``http-equiv``, else the full
    attribute set. The replacement takes the position of the tag it replaces.
    """
    merged: dict[str, Mapping[str, str]] = {}
    for tags in lists:
        for attrs in tags:
            merged[_meta_key(attrs)] = attrs
    return tuple(merged.values())
