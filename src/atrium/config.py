"""Site configuration.

AtriumConfig is a frozen dataclass. It is immutable after creation and
avoids string-key dict lookups.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from atrium.content.page import ContentConventions


@dataclass(frozen=True, slots=True)
class PathValidation:
    """Outcome of checking the configured library path."""

    valid: bool
    error: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AtriumConfig:
    """Site configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AtriumConfig(library_path="/srv/library", debug=True)
    """

    # Content library
    library_path: str | Path | None = None
    platform_dir: str = "platform"
    content_extension: str = ".md"
    index_stem: str = "_index"
    home_stem: str = "index"
    hidden_prefix: str = "_"

    # Caching
    cache_ttl: int = 3600
    cache_dir: str | Path | None = None  # None = in-process memory cache

    # Listing and navigation
    items_per_page: int = 24
    nav_max_depth: int = 3
    home_label: str = "Home"
    menu_name: str = "Atrium"
    menu_location: str = "atrium-primary"
    site_name: str = "Atrium"

    # Rendering
    base_url: str = ""
    template_dir: str | Path | None = None  # Theme overrides, searched before built-ins
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Read API
    api_prefix: str = "/api/atrium"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "info"

    # Security
    secret_key: str = ""
    login_url: str = "/login"

    def has_library_path(self) -> bool:
        """True if a library path is configured at all."""
        return bool(self.library_path)

    @property
    def content_root(self) -> Path | None:
        """The directory pages are loaded from, or ``None`` if unconfigured."""
        if not self.library_path:
            return None
        return Path(self.library_path) / self.platform_dir

    def conventions(self) -> ContentConventions:
        """File-naming conventions used to turn paths into routes."""
        return ContentConventions(
            extension=self.content_extension,
            index_stem=self.index_stem,
            home_stem=self.home_stem,
            hidden_prefix=self.hidden_prefix,
        )

    def url_for(self, route: str) -> str:
        """Absolute (or site-relative) URL for a route."""
        return f"{self.base_url.rstrip('/')}{route}"

    def validate_library_path(self) -> PathValidation:
        """Check the library path and its required platform directory.

        Checks run in order and stop at the first failure.
        """
        if not self.library_path:
            return PathValidation(valid=False, error="Library path not configured.")

        path = Path(self.library_path)
        if not path.exists():
            return PathValidation(valid=False, error=f"Library path {path} does not exist.")
        if not path.is_dir():
            return PathValidation(valid=False, error=f"Library path {path} is not a directory.")
        if not os.access(path, os.R_OK):
            return PathValidation(valid=False, error=f"Library path {path} is not readable.")

        platform = path / self.platform_dir
        if not platform.is_dir():
            return PathValidation(
                valid=False,
                error=f"Library path {path} is missing required /{self.platform_dir}/ directory.",
            )

        return PathValidation(
            valid=True,
            details={
                "library_path": str(path),
                "platform_path": str(platform),
                "platform_readable": os.access(platform, os.R_OK),
            },
        )
