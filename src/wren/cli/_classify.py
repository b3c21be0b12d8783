"""``wren classify`` — build-time asset classification.

Reads the bundle graph (and optionally the bundler manifest and the
async import sites), writes the categorized manifest the runtime loads.
"""

import argparse
import logging
import sys
from collections.abc import Mapping
from typing import Any

from wren.assets.classifier import AssetClassifier, AsyncImportSite, chunks_from_bundle, scan_split_sites
from wren.assets.manifest import load_bundler_manifest, read_json, write_categorized
from wren.errors import ManifestError

logger = logging.getLogger("wren.cli")


def _read_sites(path: str) -> list[AsyncImportSite]:
    data: Any = read_json(path)
    if not isinstance(data, list):
        msg = f"Import sites file {path} must be a JSON list."
        raise ManifestError(msg)
    sites: list[AsyncImportSite] = []
    for item in data:
        if isinstance(item, str):
            sites.append(AsyncImportSite(item))
        elif isinstance(item, Mapping) and "module" in item:
            sites.append(AsyncImportSite(item["module"], bool(item.get("ssr", True))))
        else:
            msg = f"Invalid import site {item!r} in {path}."
            raise ManifestError(msg)
    return sites


def run_classify(args: argparse.Namespace) -> None:
    """Classify ``args.bundle`` and write ``args.out``."""
    try:
        chunks = chunks_from_bundle(read_json(args.bundle))
        sites: list[AsyncImportSite] = []
        if args.sites:
            sites.extend(_read_sites(args.sites))
        if args.scan:
            sites.extend(scan_split_sites(args.scan))
        logger.debug("Classifying with %d async import sites", len(sites))
        bundler_manifest = load_bundler_manifest(args.manifest) if args.manifest else None
    except ManifestError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    manifest = AssetClassifier(chunks, sites).build_manifest(bundler_manifest)
    write_categorized(manifest, args.out)

    print(
        f"Classified {len(chunks)} chunks: "
        f"{len(manifest.essential)} essential, "
        f"{len(manifest.ssr_true)} ssrTrue, "
        f"{len(manifest.ssr_false)} ssrFalse -> {args.out}"
    )
