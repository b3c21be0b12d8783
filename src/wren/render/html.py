"""HTML serialization helpers.

Static nodes serialize to strings here; boundary containers, streamed
fills and the hydration payload script have their formats defined here
too, so the engine and the descriptor agree on them.
"""

import json
from collections.abc import Iterable, Mapping
from typing import Any

from markupsafe import escape

from wren.render.tree import Boundary, Element, Fragment, Raw, Text, to_node

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})

CONTAINER_PREFIX = "wren-b-"
FILL_PREFIX = "wren-f-"


def render_attrs(attrs: Mapping[str, Any]) -> str:
    """Serialize attributes. ``True`` renders the bare name; ``None``/``False`` are dropped.

    A trailing underscore is stripped (``class_`` -> ``class``).
    """
    parts: list[str] = []
    for name, value in attrs.items():
        if value is None or value is False:
            continue
        attr = name.rstrip("_")
        if value is True:
            parts.append(f" {attr}")
        else:
            parts.append(f' {attr}="{escape(str(value))}"')
    return "".join(parts)


def render_static(node: Any) -> str:
    """Serialize a tree with every boundary showing its fallback."""
    node = to_node(node)
    if node is None:
        return ""
    if isinstance(node, Text):
        return str(escape(node.value))
    if isinstance(node, Raw):
        return node.html
    if isinstance(node, Fragment):
        return "".join(render_static(child) for child in node.children)
    if isinstance(node, Boundary):
        return render_static(node.fallback)
    return open_tag(node) + "".join(render_static(c) for c in node.children) + close_tag(node)


def meta_tags(meta: Iterable[Mapping[str, Any]]) -> str:
    return "".join(f"<meta{render_attrs(attrs)}>" for attrs in meta)


def open_tag(node: Element) -> str:
    return f"<{node.tag}{render_attrs(node.attrs)}>"


def close_tag(node: Element) -> str:
    if node.tag.lower() in VOID_ELEMENTS:
        return ""
    return f"</{node.tag}>"


def container_id(boundary_id: str) -> str:
    return f"{CONTAINER_PREFIX}{boundary_id}"


def container_open(boundary_id: str, *, ssr: bool = True) -> str:
    marker = "data-wren-boundary" if ssr else "data-wren-client"
    return f'<div id="{escape(container_id(boundary_id))}" {marker}>'


CONTAINER_CLOSE = "</div>"


def format_fill(html: str, boundary_id: str) -> str:
    """Wrap resolved boundary HTML as a ``<template>`` + ``<script>`` pair.

    The inline script swaps the template content into the boundary's
    container, replacing the fallback.
    """
    target = escape(container_id(boundary_id))
    template_id = escape(f"{FILL_PREFIX}{boundary_id}")
    return (
        f'<template id="{template_id}">{html}</template>'
        f"<script>"
        f'(function(){{var t=document.getElementById("{template_id}"),'
        f'e=document.getElementById("{target}");'
        f"if(t&&e){{e.replaceChildren(t.content.cloneNode(true));t.remove();}}}})();"
        f"</script>"
    )


def default_error(boundary_id: str) -> str:
    return (
        f'<div class="wren-error" data-boundary="{escape(boundary_id)}" role="alert">'
        "Something went wrong while loading this section."
        "</div>"
    )


def json_for_script(data: Any) -> str:
    """JSON safe to embed in a ``<script>`` element."""
    text = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def payload_script(data: Mapping[str, Any], element_id: str) -> str:
    return (
        f'<script id="{escape(element_id)}" type="application/json">'
        f"{json_for_script(dict(data))}</script>"
    )
