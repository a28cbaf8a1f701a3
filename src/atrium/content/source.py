"""Content source — scan, load, and check the platform directory.

Walks the content root in a fixed lexicographic order so repeated loads
of the same files produce identical trees.
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from atrium.content.page import (
    DEFAULT_CONVENTIONS,
    ContentConventions,
    Page,
    normalize_route,
    parse_page,
    route_segments,
)
from atrium.errors import FrontmatterError

logger = logging.getLogger("atrium.content")


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Structural problems found in the content directory."""

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    pages: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "pages": self.pages,
        }


@dataclass(frozen=True, slots=True)
class ContentSource:
    """A directory of content files.

    ``root`` may be ``None`` when no library path is configured; every
    read operation then returns an empty result.
    """

    root: Path | None
    conventions: ContentConventions = DEFAULT_CONVENTIONS

    def is_valid(self) -> bool:
        """True if the root is set, exists, is a directory, and is readable."""
        if self.root is None:
            return False
        return self.root.is_dir() and os.access(self.root, os.R_OK)

    def scan(self) -> list[Path]:
        """Every content file beneath the root, sorted by full path.

        Returns an empty list rather than raising when the root is
        missing or unreadable.
        """
        if not self.is_valid():
            return []
        assert self.root is not None
        try:
            files = [
                path
                for path in self._walk(self.root)
                if path.suffix == self.conventions.extension
            ]
        except OSError:
            logger.warning("Could not scan content root %s", self.root, exc_info=True)
            return []
        return sorted(files, key=str)

    def _walk(self, directory: Path) -> Iterator[Path]:
        for entry in directory.iterdir():
            if entry.is_dir():
                yield from self._walk(entry)
            elif entry.is_file():
                yield entry

    def _parse(self, path: Path) -> Page | None:
        assert self.root is not None
        try:
            return parse_page(path, self.root, self.conventions)
        except (OSError, UnicodeDecodeError, FrontmatterError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None

    def load_pages(self) -> dict[str, Page]:
        """Parse every content file, keyed by route.

        Unparseable files and pages without a title are skipped. When two
        files derive the same route, the later one in scan order wins.
        """
        pages: dict[str, Page] = {}
        for path in self.scan():
            page = self._parse(path)
            if page is None:
                continue
            if not page.title:
                logger.warning("Skipping %s: missing required 'title'", path)
                continue
            if page.route in pages:
                logger.warning(
                    "Route %s from %s replaces %s",
                    page.route,
                    path,
                    pages[page.route].file_path,
                )
            pages[page.route] = page
        return pages

    def load_page(self, route: str) -> Page | None:
        """Load a single page straight from disk, bypassing the tree.

        Tries the directory index first, then a plain file.
        """
        if not self.is_valid():
            return None
        assert self.root is not None

        relative = "/".join(route_segments(normalize_route(route)))
        conv = self.conventions
        candidates = [
            self.root / relative / f"{conv.index_stem}{conv.extension}",
            self.root / f"{relative}{conv.extension}" if relative else None,
        ]
        for candidate in candidates:
            if candidate is not None and candidate.is_file():
                return self._parse(candidate)
        return None

    def structure(self) -> dict[str, Any]:
        """Nested view of directories and content files under the root."""
        if not self.is_valid():
            return {}
        assert self.root is not None
        return self._structure(self.root)

    def _structure(self, directory: Path) -> dict[str, Any]:
        result: dict[str, Any] = {}
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return result
        for entry in entries:
            if entry.is_dir():
                result[entry.name] = {"type": "directory", "children": self._structure(entry)}
            elif entry.suffix == self.conventions.extension:
                result[entry.name] = {"type": "file", "path": str(entry)}
        return result

    def validate(self) -> ValidationReport:
        """Check every content file and report problems without raising."""
        errors: list[str] = []
        warnings: list[str] = []
        count = 0
        for path in self.scan():
            assert self.root is not None
            try:
                page = parse_page(path, self.root, self.conventions)
            except FrontmatterError as exc:
                errors.append(f"Page at {path} has invalid front matter: {exc}.")
                continue
            except (OSError, UnicodeDecodeError) as exc:
                errors.append(f"Page at {path} could not be read: {exc}.")
                continue

            if not page.title:
                errors.append(f'Page at {path} missing required "title" field.')
                continue
            count += 1
            if not page.artifact_type:
                warnings.append(f"Page at {path} has no artifact type (derived or explicit).")

        return ValidationReport(errors=tuple(errors), warnings=tuple(warnings), pages=count)

    def stats(self) -> dict[str, Any]:
        """Counts by kind and artifact type, plus the deepest route."""
        pages = self.load_pages()
        by_type: dict[str, int] = {}
        index_pages = 0
        landing_pages = 0
        max_depth = 0
        for page in pages.values():
            if page.is_index:
                index_pages += 1
            elif page.has_filter:
                landing_pages += 1
            key = page.artifact_type or ""
            by_type[key] = by_type.get(key, 0) + 1
            max_depth = max(max_depth, page.depth)

        return {
            "total_pages": len(pages),
            "index_pages": index_pages,
            "landing_pages": landing_pages,
            "by_artifact_type": by_type,
            "max_depth": max_depth,
        }
