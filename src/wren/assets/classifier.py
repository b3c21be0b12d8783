"""Build-time asset classification.

Partitions a compiled chunk graph into *essential* chunks (needed by every
render of an entry) and *dynamic* chunks (needed only when a specific
async boundary runs), then writes the categorized manifest that
``ChunkExtractor`` reads at runtime.

Rules, in order:

1. Entry chunks are essential. Entry status overrides everything else.
2. Essential spreads to everything an essential chunk imports, statically
   or through a plain ``import()``, except into async-boundary targets.
   A chunk reachable this way is essential even if a boundary also uses
   it (shared code).
3. Async-boundary targets not already essential are dynamic, ``ssrTrue``
   or ``ssrFalse`` per their import site. Their static dependencies that
   are not essential stay dynamic with the same sub-category
   (``ssrTrue`` wins when both reach a chunk).
4. Anything left over is essential, so nothing is ever silently dropped.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from wren.assets.manifest import CategorizedManifest, ManifestEntry
from wren.errors import ManifestError

logger = logging.getLogger("wren.assets")

SOURCE_SUFFIXES = (".js", ".jsx", ".ts", ".tsx", ".mjs")

# split(() => import("./Foo"), { ssr: false })
_SPLIT_RE = re.compile(
    r"""split\s*\(\s*\(\)\s*=>\s*import\s*\(\s*['"`]([^'"`]+)['"`]\s*\)\s*(?:,\s*\{([^}]*)\})?\s*\)"""
)
_SSR_RE = re.compile(r"ssr\s*:\s*(true|false)")


@dataclass(frozen=True, slots=True)
class Chunk:
    """One chunk of the compiled module graph."""

    file: str
    is_entry: bool = False
    facade_module_id: str | None = None
    modules: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    dynamic_imports: tuple[str, ...] = ()
    css: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, file: str, data: Mapping[str, Any]) -> Chunk:
        modules = data.get("modules") or ()
        if isinstance(modules, Mapping):
            modules = tuple(modules)
        return cls(
            file=file,
            is_entry=bool(data.get("isEntry", False)),
            facade_module_id=data.get("facadeModuleId"),
            modules=tuple(modules),
            imports=tuple(data.get("imports") or ()),
            dynamic_imports=tuple(data.get("dynamicImports") or ()),
            css=tuple(dict.fromkeys(data.get("css") or ())),
        )


@dataclass(frozen=True, slots=True)
class AsyncImportSite:
    """An async-boundary import: the imported module and whether the shell renders it."""

    module_id: str
    ssr: bool = True


@dataclass(frozen=True, slots=True)
class Classification:
    """Chunk file -> category, before keys are mapped to the bundler manifest."""

    essential: tuple[str, ...]
    ssr_true: tuple[str, ...]
    ssr_false: tuple[str, ...]

    def category_of(self, file: str) -> str | None:
        if file in self.essential:
            return "essential"
        if file in self.ssr_true:
            return "ssrTrue"
        if file in self.ssr_false:
            return "ssrFalse"
        return None


def chunks_from_bundle(bundle: Mapping[str, Any]) -> dict[str, Chunk]:
    """Read a bundle graph (``{file: chunk}``, optionally under ``"chunks"``).

    Non-chunk outputs (``"type": "asset"``) are skipped.
    """
    raw = bundle.get("chunks", bundle)
    if not isinstance(raw, Mapping):
        msg = "Bundle graph must map chunk files to chunk objects."
        raise ManifestError(msg)
    return {
        file: Chunk.from_dict(file, data)
        for file, data in raw.items()
        if isinstance(data, Mapping) and data.get("type", "chunk") == "chunk"
    }


class AssetClassifier:
    """Classifies chunks of one build.

    Usage::

        classifier = AssetClassifier(chunks, sites)
        manifest = classifier.build_manifest(bundler_manifest)
        write_categorized(manifest, "build/.vite/asset-categories.json")
    """

    def __init__(self, chunks: Mapping[str, Chunk], sites: Iterable[AsyncImportSite]) -> None:
        self.chunks = dict(chunks)
        self.sites = tuple(sites)
        self._module_to_chunk = self._map_modules()

    def _map_modules(self) -> dict[str, str]:
        module_to_chunk: dict[str, str] = {}
        for file, chunk in self.chunks.items():
            if chunk.facade_module_id:
                module_to_chunk[chunk.facade_module_id] = file
            for module_id in chunk.modules:
                module_to_chunk.setdefault(module_id, file)
        return module_to_chunk

    def chunk_for(self, module_id: str) -> str | None:
        if module_id in self._module_to_chunk:
            return self._module_to_chunk[module_id]
        return module_id if module_id in self.chunks else None

    def boundary_targets(self) -> dict[str, bool]:
        """Chunk file -> ssr flag for every async-boundary import site."""
        targets: dict[str, bool] = {}
        for site in self.sites:
            file = self.chunk_for(site.module_id)
            if file is None:
                logger.warning("Async import %s is not in any chunk; ignored", site.module_id)
                continue
            targets[file] = targets.get(file, False) or site.ssr
        return targets

    def classify(self) -> Classification:
        targets = self.boundary_targets()

        # Rules 1-2: entries and everything they pull in outside boundaries
        essential: dict[str, None] = {}
        queue = deque(file for file, chunk in self.chunks.items() if chunk.is_entry)
        while queue:
            file = queue.popleft()
            if file in essential or file not in self.chunks:
                continue
            essential[file] = None
            chunk = self.chunks[file]
            queue.extend(chunk.imports)
            queue.extend(dep for dep in chunk.dynamic_imports if dep not in targets)

        # Rule 3: boundary targets and their static dependencies
        dynamic: dict[str, bool] = {}
        for root, ssr in targets.items():
            if root in essential:
                continue
            queue = deque([root])
            while queue:
                file = queue.popleft()
                if file in essential or file not in self.chunks:
                    continue
                if file in dynamic and (dynamic[file] or not ssr):
                    continue
                dynamic[file] = dynamic.get(file, False) or ssr
                queue.extend(self.chunks[file].imports)

        # Rule 4: fail-safe
        for file in self.chunks:
            if file not in essential and file not in dynamic:
                essential[file] = None

        return Classification(
            essential=tuple(essential),
            ssr_true=tuple(f for f, ssr in dynamic.items() if ssr),
            ssr_false=tuple(f for f, ssr in dynamic.items() if not ssr),
        )

    def build_manifest(
        self,
        bundler_manifest: Mapping[str, ManifestEntry] | None = None,
    ) -> CategorizedManifest:
        """Classify and key each chunk by its bundler-manifest key (source module id).

        Chunks without a manifest match keep their file name as key. Entries
        of the bundler manifest flagged ``isEntry`` always end up essential.
        """
        classification = self.classify()
        by_file: dict[str, ManifestEntry] = {}
        for entry in (bundler_manifest or {}).values():
            by_file.setdefault(entry.file, entry)

        sections: dict[str, dict[str, ManifestEntry]] = {name: {} for name in ("essential", "ssrTrue", "ssrFalse")}
        for name, files in (
            ("essential", classification.essential),
            ("ssrTrue", classification.ssr_true),
            ("ssrFalse", classification.ssr_false),
        ):
            for file in files:
                entry = by_file.get(file)
                if entry is None:
                    if bundler_manifest is not None:
                        logger.warning("No manifest match for chunk %s; keyed by file", file)
                    entry = self._entry_from_chunk(file)
                sections[name][entry.key] = entry

        for key, entry in (bundler_manifest or {}).items():
            if entry.is_entry and not any(key in section for section in sections.values()):
                sections["essential"][key] = entry

        return CategorizedManifest(
            essential=sections["essential"],
            ssr_true=sections["ssrTrue"],
            ssr_false=sections["ssrFalse"],
            metadata={
                "generatedAt": datetime.now(UTC).isoformat(),
                "totalAssets": len(self.chunks),
                "dependencyStats": {
                    "essentialModules": len(sections["essential"]),
                    "ssrTrueModules": len(sections["ssrTrue"]),
                    "ssrFalseModules": len(sections["ssrFalse"]),
                },
            },
        )

    def _entry_from_chunk(self, file: str) -> ManifestEntry:
        chunk = self.chunks[file]
        return ManifestEntry(
            key=file,
            file=file,
            css=chunk.css,
            is_entry=chunk.is_entry,
            src=chunk.facade_module_id or "",
            imports=chunk.imports,
            dynamic_imports=chunk.dynamic_imports,
        )


def _resolve_source(importer: Path, target: str) -> str:
    """Resolve a relative import to a module id, trying the usual suffixes."""
    if not target.startswith("."):
        return target
    base = (importer.parent / target).resolve()
    candidates = [base, *(base.with_name(base.name + s) for s in SOURCE_SUFFIXES)]
    candidates.extend(base / f"index{s}" for s in SOURCE_SUFFIXES)
    for candidate in candidates:
        if candidate.is_file():
            return candidate.as_posix()
    return base.as_posix()


def find_split_sites(source: str, importer: Path) -> list[AsyncImportSite]:
    """Find ``split(() => import("..."), {ssr: ...})`` calls in one source file.

    ``ssr`` defaults to true when the options object omits it.
    """
    sites: list[AsyncImportSite] = []
    for match in _SPLIT_RE.finditer(source):
        import_path, options = match.group(1), match.group(2) or ""
        ssr_match = _SSR_RE.search(options)
        ssr = ssr_match is None or ssr_match.group(1) == "true"
        sites.append(AsyncImportSite(_resolve_source(importer, import_path), ssr))
    return sites


def scan_split_sites(root: str | Path) -> list[AsyncImportSite]:
    """Scan a source tree for async-boundary import sites (``node_modules`` skipped)."""
    sites: list[AsyncImportSite] = []
    for path in sorted(Path(root).rglob("*")):
        if path.suffix not in SOURCE_SUFFIXES or "node_modules" in path.parts:
            continue
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning("Could not read %s; skipped", path)
            continue
        if "split" in source:
            sites.extend(find_split_sites(source, path.resolve()))
    return sites
