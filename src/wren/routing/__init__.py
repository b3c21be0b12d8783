"""Routing — a route tree compiled into a trie with O(path-depth) matching.

Routes (with optional nested children) are registered during setup and
compiled into an immutable lookup structure when the app freezes.
"""

from wren.routing.route import Route, RouteMatch
from wren.routing.router import Router

__all__ = ["Route", "RouteMatch", "Router"]
