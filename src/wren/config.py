"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, manifest_path="build/.vite/asset-categories.json")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Assets
    manifest_path: str | Path | None = None  # Categorized manifest written by `wren classify`
    public_path: str = "/assets/"
    modulepreload: bool = True

    # Document template
    template_dir: str | Path | None = None  # Directory holding a document.html override
    autoescape: bool = True
    lang: str = "en"
    hydration_global: str = "__WREN_DATA__"

    # Prerender cache (always bypassed when debug=True)
    prerender_cache: bool = True
    prerender_timeout: float = 5.0
    prerender_single_flight: bool = True

    # Data fetching
    fetch_timeout: float | None = 10.0
    promise_cache_size: int = 100

    # Logging
    log_level: str = "info"

    @property
    def use_prerender_cache(self) -> bool:
        """Whether shells are cached; development renders are always fresh."""
        return self.prerender_cache and not self.debug
