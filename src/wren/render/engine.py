"""Two-stage rendering: prerender the shell once, resume it per request.

Pipeline::

    prelude, descriptor = engine.prerender_shell(tree, extractor=extractor)

    1. Walk the tree; static nodes become HTML, each ssr boundary becomes
       a container holding its fallback and a Placeholder segment
    2. Render the document template around the markup (essential assets
       in <head>)

    async for chunk in engine.resume(descriptor, resolutions, extractor=extractor):

    1. Settle every placeholder concurrently (anyio task group)
    2. Render each settled boundary (nested boundaries settle inline)
       and track its chunk
    3. Yield dynamic asset tags for the chunks tracked in step 2
    4. Yield one <template> + <script> fill per placeholder, in
       document order
    5. Yield the hydration payload, then the document end
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Protocol

import anyio

from wren.assets.extractor import ChunkExtractor
from wren.errors import ConfigurationError
from wren.render.descriptor import BoundarySlot, Placeholder, ResumeDescriptor
from wren.render.document import Document
from wren.render.html import (
    CONTAINER_CLOSE,
    close_tag,
    container_open,
    default_error,
    format_fill,
    open_tag,
    payload_script,
    render_static,
)
from wren.render.resolve import Resolutions, Settled
from wren.render.tree import Boundary, Element, Fragment, Raw, Text, to_node

logger = logging.getLogger("wren.render")


class RenderEngine(Protocol):
    """What the orchestrator needs from a renderer."""

    def prerender_shell(
        self,
        tree: Any,
        *,
        extractor: ChunkExtractor,
        title: str | None = None,
        meta: Sequence[Mapping[str, str]] = (),
    ) -> tuple[bytes, ResumeDescriptor]: ...

    def resume(
        self,
        descriptor: ResumeDescriptor,
        resolutions: Resolutions,
        *,
        extractor: ChunkExtractor,
    ) -> AsyncIterator[bytes]: ...


class _ShellBuilder:
    """Accumulates segments while walking a tree for the shell."""

    __slots__ = ("_buffer", "_counter", "registry", "seen", "segments")

    def __init__(self) -> None:
        self.segments: list[str | Placeholder] = []
        self.registry: dict[str, BoundarySlot] = {}
        self.seen: set[str] = set()
        self._buffer: list[str] = []
        self._counter = 0

    def text(self, html: str) -> None:
        if html:
            self._buffer.append(html)

    def flush(self) -> None:
        if self._buffer:
            self.segments.append("".join(self._buffer))
            self._buffer.clear()

    def claim_id(self, boundary: Boundary) -> str:
        if boundary.id is not None:
            boundary_id = boundary.id
        else:
            boundary_id = f"b{self._counter}"
            while boundary_id in self.seen:
                self._counter += 1
                boundary_id = f"b{self._counter}"
            self._counter += 1
        if boundary_id in self.seen:
            msg = f"Duplicate boundary id {boundary_id!r}"
            raise ConfigurationError(msg)
        self.seen.add(boundary_id)
        return boundary_id

    def walk(self, node: Any) -> None:
        node = to_node(node)
        if node is None:
            return
        if isinstance(node, Text | Raw):
            self.text(render_static(node))
        elif isinstance(node, Fragment):
            for child in node.children:
                self.walk(child)
        elif isinstance(node, Boundary):
            self.boundary(node)
        else:
            self.text(open_tag(node))
            for child in node.children:
                self.walk(child)
            self.text(close_tag(node))

    def boundary(self, boundary: Boundary) -> None:
        boundary_id = self.claim_id(boundary)
        fallback_html = render_static(boundary.fallback)
        if not boundary.ssr:
            self.text(container_open(boundary_id, ssr=False) + fallback_html + CONTAINER_CLOSE)
            return
        self.text(container_open(boundary_id))
        self.flush()
        self.segments.append(Placeholder(boundary_id))
        self.registry[boundary_id] = BoundarySlot(boundary_id, boundary, fallback_html)
        self.text(CONTAINER_CLOSE)

    def finish(self) -> tuple[tuple[str | Placeholder, ...], dict[str, BoundarySlot]]:
        self.flush()
        return tuple(self.segments), self.registry


class HtmlEngine:
    """Renders trees to HTML and streams boundary fills as template/script pairs."""

    __slots__ = ("document", "hydration_id")

    def __init__(self, document: Document, *, hydration_id: str = "__WREN_DATA__") -> None:
        self.document = document
        self.hydration_id = hydration_id

    def prerender_shell(
        self,
        tree: Any,
        *,
        extractor: ChunkExtractor,
        title: str | None = None,
        meta: Sequence[Mapping[str, str]] = (),
    ) -> tuple[bytes, ResumeDescriptor]:
        builder = _ShellBuilder()
        builder.walk(tree)
        segments, registry = builder.finish()

        essential = extractor.get_essential_assets()
        head = extractor.link_tags(essential) + extractor.script_tags(essential)
        parts = self.document.render(head=head, title=title, meta=meta)

        descriptor = ResumeDescriptor(
            segments=segments,
            registry=MappingProxyType(registry),
            document_start=parts.start,
            closing=parts.closing,
            document_end=parts.end,
        )
        return descriptor.prelude().encode("utf-8"), descriptor

    async def resume(
        self,
        descriptor: ResumeDescriptor,
        resolutions: Resolutions,
        *,
        extractor: ChunkExtractor,
    ) -> AsyncIterator[bytes]:
        slots = descriptor.placeholders()
        settled: dict[str, Settled] = {}

        async def _settle(slot: BoundarySlot) -> None:
            settled[slot.id] = await resolutions.settle(slot.boundary)

        async with anyio.create_task_group() as tg:
            for slot in slots:
                tg.start_soon(_settle, slot)

        seen = set(descriptor.registry)
        fills: list[str] = []
        for slot in slots:
            html = await self._render_settled(
                slot.id, slot.boundary, settled[slot.id], resolutions, extractor, seen,
            )
            fills.append(format_fill(html, slot.id))

        dynamic = extractor.get_dynamic_assets()
        if dynamic:
            yield (extractor.link_tags(dynamic) + extractor.script_tags(dynamic)).encode("utf-8")
        for fill in fills:
            yield fill.encode("utf-8")
        yield payload_script(resolutions.payload, self.hydration_id).encode("utf-8")
        if descriptor.document_end:
            yield descriptor.document_end.encode("utf-8")

    async def _render_settled(
        self,
        boundary_id: str,
        boundary: Boundary,
        result: Settled,
        resolutions: Resolutions,
        extractor: ChunkExtractor,
        seen: set[str],
    ) -> str:
        if result.ok:
            try:
                content = boundary.render(result.value)
                html = await self._render_content(content, resolutions, extractor, seen)
            except Exception as exc:
                logger.exception("Boundary %r failed to render", boundary_id)
                return self._render_error(boundary_id, boundary, exc)
            extractor.track(boundary.chunk)
            return html
        assert result.error is not None
        return self._render_error(boundary_id, boundary, result.error)

    def _render_error(self, boundary_id: str, boundary: Boundary, error: BaseException) -> str:
        if boundary.error is not None:
            try:
                return render_static(boundary.error(error))
            except Exception:
                logger.exception("Error renderer of boundary %r failed", boundary_id)
        return default_error(boundary_id)

    async def _render_content(
        self,
        node: Any,
        resolutions: Resolutions,
        extractor: ChunkExtractor,
        seen: set[str],
    ) -> str:
        """Render resolved content; nested boundaries are settled inline."""
        node = to_node(node)
        if node is None:
            return ""
        if isinstance(node, Text | Raw):
            return render_static(node)
        if isinstance(node, Fragment):
            return "".join([
                await self._render_content(child, resolutions, extractor, seen)
                for child in node.children
            ])
        if isinstance(node, Element):
            inner = "".join([
                await self._render_content(child, resolutions, extractor, seen)
                for child in node.children
            ])
            return open_tag(node) + inner + close_tag(node)

        if node.id is not None:
            boundary_id = node.id
        else:
            index = len(seen)
            while f"n{index}" in seen:
                index += 1
            boundary_id = f"n{index}"
        if boundary_id in seen:
            msg = f"Duplicate boundary id {boundary_id!r}"
            raise ConfigurationError(msg)
        seen.add(boundary_id)

        if not node.ssr:
            return container_open(boundary_id, ssr=False) + render_static(node.fallback) + CONTAINER_CLOSE
        result = await resolutions.settle(node)
        html = await self._render_settled(boundary_id, node, result, resolutions, extractor, seen)
        return container_open(boundary_id) + html + CONTAINER_CLOSE
