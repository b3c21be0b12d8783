"""Rendering: tree nodes, the resumable shell, and the streaming resume pass."""

from wren.render.descriptor import BoundarySlot, Placeholder, ResumeDescriptor
from wren.render.engine import HtmlEngine, RenderEngine
from wren.render.orchestrator import RenderOrchestrator, cache_key_for
from wren.render.tree import Boundary, Element, Fragment, Raw, Text, fragment, h, lazy, route_data

__all__ = [
    "Boundary",
    "BoundarySlot",
    "Element",
    "Fragment",
    "HtmlEngine",
    "Placeholder",
    "Raw",
    "RenderEngine",
    "RenderOrchestrator",
    "ResumeDescriptor",
    "Text",
    "cache_key_for",
    "fragment",
    "h",
    "lazy",
    "route_data",
]
