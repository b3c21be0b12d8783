"""The resumable continuation of a prerendered shell.

A ``ResumeDescriptor`` is the shell split at its async boundaries: an
ordered list of static HTML strings and ``Placeholder`` ids, plus a
registry telling the resume pass what each placeholder needs (fetch key,
fetcher, chunk). It is request independent, so a cached descriptor can
be replayed against any later request for the same path.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from wren.render.tree import Boundary


@dataclass(frozen=True, slots=True)
class Placeholder:
    id: str


@dataclass(frozen=True, slots=True)
class BoundarySlot:
    """A pending region of the shell and the fallback HTML it shows meanwhile."""

    id: str
    boundary: Boundary
    fallback_html: str = ""


def _qualname(func: Any) -> str | None:
    if func is None:
        return None
    module = getattr(func, "__module__", None) or ""
    name = getattr(func, "__qualname__", None) or repr(func)
    return f"{module}.{name}" if module else name


@dataclass(frozen=True, slots=True)
class ResumeDescriptor:
    """Segments of the application markup plus the document around it.

    The prelude is ``document_start``, every segment (placeholders showing
    their fallback) and ``closing``; ``document_end`` is sent last, after
    the fills and the hydration payload.
    """

    segments: tuple[str | Placeholder, ...]
    registry: Mapping[str, BoundarySlot] = field(default_factory=lambda: MappingProxyType({}))
    document_start: str = ""
    closing: str = ""
    document_end: str = ""

    def placeholders(self) -> list[BoundarySlot]:
        """Pending slots in document order."""
        return [self.registry[seg.id] for seg in self.segments if isinstance(seg, Placeholder)]

    def prelude(self) -> str:
        body = "".join(
            self.registry[seg.id].fallback_html if isinstance(seg, Placeholder) else seg
            for seg in self.segments
        )
        return f"{self.document_start}{body}{self.closing}"

    def render_complete(self, fills: Mapping[str, str]) -> str:
        """The whole document with each placeholder replaced by its fill (or fallback)."""
        body = "".join(
            fills.get(seg.id, self.registry[seg.id].fallback_html)
            if isinstance(seg, Placeholder)
            else seg
            for seg in self.segments
        )
        return f"{self.document_start}{body}{self.closing}{self.document_end}"

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form; fetchers and keys are recorded by qualified name."""
        return {
            "segments": [
                {"placeholder": seg.id} if isinstance(seg, Placeholder) else seg
                for seg in self.segments
            ],
            "registry": {
                slot_id: {
                    "key": slot.boundary.key if isinstance(slot.boundary.key, str) else _qualname(slot.boundary.key),
                    "fetcher": _qualname(slot.boundary.fetch),
                    "chunk": slot.boundary.chunk,
                    "fallback": slot.fallback_html,
                }
                for slot_id, slot in self.registry.items()
            },
            "documentStart": self.document_start,
            "closing": self.closing,
            "documentEnd": self.document_end,
        }
