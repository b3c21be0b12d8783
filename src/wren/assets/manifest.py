"""Build manifests — the JSON contract between the bundler and the renderer.

Two shapes are read:

- the bundler manifest, ``{key: {"file", "css", "isEntry", ...}}``, where
  ``key`` is the source-module identifier;
- the categorized manifest written by ``wren classify``::

      {
        "essential": {key: entry, ...},
        "ssrTrue":   {key: entry, ...},
        "ssrFalse":  {key: entry, ...},
        "metadata":  {...}
      }

Both are produced once per build and are read-only at runtime.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from wren.errors import ManifestError

logger = logging.getLogger("wren.assets")

CATEGORIES = ("essential", "ssrTrue", "ssrFalse")


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One chunk of the build output, keyed by its source-module identifier."""

    key: str
    file: str
    css: tuple[str, ...] = ()
    is_entry: bool = False
    src: str = ""
    imports: tuple[str, ...] = ()
    dynamic_imports: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, key: str, data: Mapping[str, Any]) -> ManifestEntry:
        if not isinstance(data, Mapping) or "file" not in data:
            msg = f"Manifest entry {key!r} has no 'file'."
            raise ManifestError(msg)
        return cls(
            key=key,
            file=data["file"],
            # ordered-set semantics: keep first occurrence
            css=tuple(dict.fromkeys(data.get("css") or ())),
            is_entry=bool(data.get("isEntry", False)),
            src=data.get("src", "") or "",
            imports=tuple(data.get("imports") or ()),
            dynamic_imports=tuple(data.get("dynamicImports") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "css": list(self.css),
            "isEntry": self.is_entry,
        }
        if self.src:
            data["src"] = self.src
        if self.imports:
            data["imports"] = list(self.imports)
        if self.dynamic_imports:
            data["dynamicImports"] = list(self.dynamic_imports)
        return data


@dataclass(frozen=True, slots=True)
class Assets:
    """An ordered, de-duplicated list of script and stylesheet files."""

    js: tuple[str, ...] = ()
    css: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.js or self.css)


def _freeze_section(raw: Any, category: str) -> Mapping[str, ManifestEntry]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, Mapping):
        msg = f"Manifest category {category!r} must be an object."
        raise ManifestError(msg)
    return MappingProxyType({key: ManifestEntry.from_dict(key, value) for key, value in raw.items()})


@dataclass(frozen=True, slots=True)
class CategorizedManifest:
    """Chunks partitioned into essential and dynamic (``ssrTrue``/``ssrFalse``) sets."""

    essential: Mapping[str, ManifestEntry] = field(default_factory=dict)
    ssr_true: Mapping[str, ManifestEntry] = field(default_factory=dict)
    ssr_false: Mapping[str, ManifestEntry] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def dynamic(self) -> dict[str, ManifestEntry]:
        """Every chunk loaded only behind an async boundary."""
        return {**self.ssr_false, **self.ssr_true}

    def category_of(self, key: str) -> str | None:
        """``"essential"``, ``"ssrTrue"``, ``"ssrFalse"`` or ``None`` for unknown keys."""
        for name, section in zip(CATEGORIES, (self.essential, self.ssr_true, self.ssr_false)):
            if key in section:
                return name
        return None

    def lookup(self, key: str) -> ManifestEntry | None:
        for section in (self.essential, self.ssr_true, self.ssr_false):
            entry = section.get(key)
            if entry is not None:
                return entry
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CategorizedManifest:
        if not isinstance(data, Mapping):
            msg = "Categorized manifest must be a JSON object."
            raise ManifestError(msg)
        return cls(
            essential=_freeze_section(data.get("essential"), "essential"),
            ssr_true=_freeze_section(data.get("ssrTrue"), "ssrTrue"),
            ssr_false=_freeze_section(data.get("ssrFalse"), "ssrFalse"),
            metadata=MappingProxyType(dict(data.get("metadata") or {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "essential": {k: e.to_dict() for k, e in self.essential.items()},
            "ssrTrue": {k: e.to_dict() for k, e in self.ssr_true.items()},
            "ssrFalse": {k: e.to_dict() for k, e in self.ssr_false.items()},
            "metadata": dict(self.metadata),
        }


def read_json(path: str | Path) -> Any:
    """Read a JSON build artefact, raising ``ManifestError`` on any failure."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        msg = f"Manifest not found: {path}"
        raise ManifestError(msg) from exc
    except (OSError, ValueError) as exc:
        msg = f"Could not read manifest {path}: {exc}"
        raise ManifestError(msg) from exc


def load_bundler_manifest(path: str | Path) -> dict[str, ManifestEntry]:
    """Load the bundler's ``manifest.json`` as ``{key: ManifestEntry}``."""
    data = read_json(path)
    if not isinstance(data, Mapping):
        msg = f"Bundler manifest {path} must be a JSON object."
        raise ManifestError(msg)
    return {key: ManifestEntry.from_dict(key, value) for key, value in data.items()}


def write_categorized(manifest: CategorizedManifest, path: str | Path) -> None:
    """Write a categorized manifest, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(manifest.to_dict(), indent=2) + "\n", encoding="utf-8")


class ManifestLoader:
    """Loads the categorized manifest once per process (or per render when reloading).

    In production the parsed manifest is cached for the process lifetime.
    With ``reload=True`` (development) it is re-read on every ``load()``
    since the bundler may rewrite it between renders. With no path the
    loader serves an empty manifest, so apps without a build still render.
    """

    __slots__ = ("_cached", "path", "reload")

    def __init__(self, path: str | Path | None, *, reload: bool = False) -> None:
        self.path = Path(path) if path is not None else None
        self.reload = reload
        self._cached: CategorizedManifest | None = None

    @classmethod
    def from_manifest(cls, manifest: CategorizedManifest) -> ManifestLoader:
        """A loader that always serves *manifest* (tests, embedded builds)."""
        loader = cls(None)
        loader._cached = manifest
        return loader

    def load(self) -> CategorizedManifest:
        if self._cached is not None and not (self.reload and self.path is not None):
            return self._cached
        if self.path is None:
            self._cached = CategorizedManifest()
            return self._cached
        manifest = CategorizedManifest.from_dict(read_json(self.path))
        logger.debug(
            "Loaded manifest %s (%d essential, %d dynamic)",
            self.path, len(manifest.essential), len(manifest.dynamic),
        )
        self._cached = manifest
        return manifest
