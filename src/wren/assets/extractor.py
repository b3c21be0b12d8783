"""Per-render asset tracking.

One ``ChunkExtractor`` exists per render. The shell renders essential
assets into ``<head>``; every async boundary that actually renders calls
``track()`` with its chunk key, and once all boundaries have settled the
observed dynamic assets are emitted ahead of the boundary fills.
"""

from __future__ import annotations

import logging
from markupsafe import escape

from wren.assets.manifest import Assets, CategorizedManifest, ManifestLoader

logger = logging.getLogger("wren.assets")


def _is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://", "//", "data:"))


class ChunkExtractor:
    """Tracks the chunks exercised by a single render.

    Usage::

        extractor = ChunkExtractor(loader, public_path="/assets/")
        extractor.initialize()
        head = extractor.link_tags(extractor.get_essential_assets())
        extractor.track("src/pages/Product.jsx")
        tail = extractor.script_tags(extractor.get_dynamic_assets())
    """

    __slots__ = ("_manifest", "_observed", "loader", "modulepreload", "public_path")

    def __init__(
        self,
        loader: ManifestLoader,
        *,
        public_path: str = "/assets/",
        modulepreload: bool = True,
    ) -> None:
        self.loader = loader
        self.public_path = public_path if public_path.endswith("/") else f"{public_path}/"
        self.modulepreload = modulepreload
        self._manifest: CategorizedManifest | None = None
        # insertion-ordered set of tracked chunk keys
        self._observed: dict[str, None] = {}

    @property
    def manifest(self) -> CategorizedManifest:
        if self._manifest is None:
            self.initialize()
        assert self._manifest is not None
        return self._manifest

    def initialize(self) -> None:
        """Load the categorized manifest (a no-op on the process cache in production)."""
        self._manifest = self.loader.load()

    @property
    def observed(self) -> tuple[str, ...]:
        return tuple(self._observed)

    def track(self, chunk_key: str | None) -> None:
        """Record that the boundary importing *chunk_key* rendered in this pass."""
        if not chunk_key:
            return
        if chunk_key in self.manifest.essential:
            return
        if chunk_key not in self.manifest.ssr_true and chunk_key not in self.manifest.ssr_false:
            logger.debug("Untracked chunk %r: not in the dynamic manifest", chunk_key)
            return
        self._observed.setdefault(chunk_key, None)

    def get_essential_assets(self) -> Assets:
        """Assets every render of this build needs, in manifest order."""
        return _collect(self.manifest.essential.values())

    def get_dynamic_assets(self) -> Assets:
        """Assets of the boundaries tracked in this render only.

        Each tracked chunk contributes its own file and stylesheets, in the
        order the chunks were first tracked. Dynamic imports of a tracked
        chunk are not followed: a chunk whose boundary never rendered here
        is left for the client to load. Anything that is also essential is
        left out, so no file is emitted twice. Client-only (``ssrFalse``)
        chunks contribute their stylesheets but never a script.
        """
        manifest = self.manifest
        essential = self.get_essential_assets()
        assets = _collect(manifest.dynamic[key] for key in self._observed)
        client_only = {manifest.ssr_false[key].file for key in self._observed if key in manifest.ssr_false}
        return Assets(
            js=tuple(f for f in assets.js if f not in essential.js and f not in client_only),
            css=tuple(f for f in assets.css if f not in essential.css),
        )

    def url(self, file: str) -> str:
        if _is_absolute(file):
            return file
        return f"{self.public_path}{file.lstrip('/')}"

    def script_tags(self, assets: Assets) -> str:
        """``<link rel="modulepreload">`` plus ``<script type="module">`` per script."""
        tags: list[str] = []
        for file in assets.js:
            src = escape(self.url(file))
            if self.modulepreload:
                tags.append(f'<link rel="modulepreload" href="{src}">')
            tags.append(f'<script type="module" src="{src}"></script>')
        return "".join(tags)

    def link_tags(self, assets: Assets) -> str:
        """One ``<link rel="stylesheet">`` per stylesheet."""
        return "".join(
            f'<link rel="stylesheet" href="{escape(self.url(file))}">'
            for file in assets.css
        )


def _collect(entries) -> Assets:
    js: dict[str, None] = {}
    css: dict[str, None] = {}
    for entry in entries:
        if entry.file.endswith(".css"):
            css.setdefault(entry.file, None)
        else:
            js.setdefault(entry.file, None)
        for sheet in entry.css:
            css.setdefault(sheet, None)
    return Assets(js=tuple(js), css=tuple(css))
