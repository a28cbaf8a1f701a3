"""Page tree — linked, ordered, cached view of every page.

Construction is a pure function from loaded pages to an immutable
``TreeSnapshot``. ``PageTree`` owns the snapshot currently served and
swaps in a new one only after a build completes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from atrium.cache import TransientCache
from atrium.content.page import Page, normalize_route, route_parent
from atrium.content.source import ContentSource
from atrium.errors import SnapshotError

logger = logging.getLogger("atrium.tree")


def sort_key(page: Page) -> tuple[int, str, str]:
    """Sibling order: ``sort_order``, then title ignoring case.

    The route settles any remaining tie so the order is total.
    """
    return (page.sort_order, page.title.lower(), page.route)


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    title: str
    route: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "route": self.route}


@dataclass(frozen=True, slots=True)
class TreeSnapshot:
    """Every page keyed by route, plus the ordered root routes."""

    pages: Mapping[str, Page]
    roots: tuple[str, ...]
    built_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "pages": {route: page.to_dict() for route, page in self.pages.items()},
            "roots": list(self.roots),
            "built_at": self.built_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> TreeSnapshot:
        """Restore a snapshot written by ``to_dict()``.

        Raises ``SnapshotError`` unless ``pages``, ``roots`` and
        ``built_at`` are all present and well formed.
        """
        if not isinstance(data, dict):
            msg = "Cached tree is not a mapping"
            raise SnapshotError(msg)
        raw_pages = data.get("pages")
        roots = data.get("roots")
        built_at = data.get("built_at")
        if not isinstance(raw_pages, dict) or not raw_pages:
            msg = "Cached tree has no 'pages'"
            raise SnapshotError(msg)
        if not isinstance(roots, list) or not isinstance(built_at, str):
            msg = "Cached tree is missing 'roots' or 'built_at'"
            raise SnapshotError(msg)

        pages: dict[str, Page] = {}
        for route, raw in raw_pages.items():
            page = Page.from_dict(raw)
            if page.route != route:
                msg = f"Cached page keyed {route!r} has route {page.route!r}"
                raise SnapshotError(msg)
            pages[route] = page

        for route in roots:
            if route not in pages:
                msg = f"Cached root {route!r} is not a known page"
                raise SnapshotError(msg)
        for page in pages.values():
            if page.parent is not None and page.parent not in pages:
                msg = f"Cached page {page.route!r} has unknown parent {page.parent!r}"
                raise SnapshotError(msg)

        return cls(pages=MappingProxyType(pages), roots=tuple(roots), built_at=built_at)


def build_snapshot(pages: Mapping[str, Page], built_at: str) -> TreeSnapshot:
    """Link *pages* into a tree.

    Each page is attached to its nearest existing ancestor, found by
    stripping trailing segments from its declared parent down to ``/``.
    With a home page that is normally the only root; pages whose chain
    runs out become roots too. Children and roots are ordered by
    ``sort_key``.
    """
    # Staging arena: mutable child lists, frozen into Pages at the end.
    children: dict[str, list[str]] = {route: [] for route in pages}
    parents: dict[str, str | None] = {}

    for route, page in pages.items():
        parent = page.parent
        while parent is not None and (parent not in pages or parent == route):
            parent = route_parent(parent)
        parents[route] = parent
        if parent is not None:
            children[parent].append(route)

    def order(route: str) -> tuple[int, str, str]:
        return sort_key(pages[route])

    linked = {
        route: page.with_relations(parents[route], sorted(children[route], key=order))
        for route, page in pages.items()
    }
    roots = sorted(
        (route for route, page in linked.items() if page.parent is None or page.parent not in linked),
        key=order,
    )
    return TreeSnapshot(pages=MappingProxyType(linked), roots=tuple(roots), built_at=built_at)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


class PageTree:
    """Serves the current ``TreeSnapshot`` and rebuilds it on demand.

    Usage::

        tree = PageTree(ContentSource(root), MemoryCache())
        tree.build()
        tree.get_page("/reports/")
    """

    CACHE_KEY = "atrium.page_tree"

    __slots__ = ("_cache", "_home_label", "_snapshot", "_source", "_ttl")

    def __init__(
        self,
        source: ContentSource,
        cache: TransientCache,
        *,
        ttl: int = 3600,
        home_label: str = "Home",
    ) -> None:
        self._source = source
        self._cache = cache
        self._ttl = ttl
        self._home_label = home_label
        self._snapshot: TreeSnapshot | None = None

    @property
    def source(self) -> ContentSource:
        return self._source

    # -- Build --

    def build(self, force: bool = False) -> bool:
        """Load from cache, or scan and link every page.

        Returns ``False`` (and keeps any previous snapshot) when no pages
        could be loaded.
        """
        if not force and self._load_from_cache():
            return True

        if not self._source.is_valid():
            logger.warning("Content root %s is not a readable directory", self._source.root)
            return False

        pages = self._source.load_pages()
        if not pages:
            logger.warning("No pages found under %s", self._source.root)
            return False

        snapshot = build_snapshot(pages, built_at=_timestamp())
        self._snapshot = snapshot
        self._save_to_cache(snapshot)
        logger.info(
            "Built page tree: %d pages, %d roots",
            len(snapshot.pages),
            len(snapshot.roots),
        )
        return True

    def ensure_built(self) -> TreeSnapshot | None:
        """Return the snapshot, attempting a single build if there is none."""
        if self._snapshot is None:
            self.build()
        return self._snapshot

    def _load_from_cache(self) -> bool:
        cached = self._cache.get(self.CACHE_KEY)
        if cached is None:
            logger.debug("Page tree cache miss")
            return False
        try:
            snapshot = TreeSnapshot.from_dict(cached)
        except SnapshotError as exc:
            logger.debug("Discarding cached page tree: %s", exc)
            return False
        self._snapshot = snapshot
        logger.debug("Page tree loaded from cache (%d pages)", len(snapshot.pages))
        return True

    def _save_to_cache(self, snapshot: TreeSnapshot) -> None:
        try:
            self._cache.set(self.CACHE_KEY, snapshot.to_dict(), self._ttl)
        except OSError:
            logger.warning("Could not write page tree cache", exc_info=True)

    def clear_cache(self) -> None:
        """Drop the cached entry and forget the in-memory snapshot."""
        self._cache.delete(self.CACHE_KEY)
        self._snapshot = None

    # -- State --

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    @property
    def built_at(self) -> str | None:
        return self._snapshot.built_at if self._snapshot is not None else None

    @property
    def snapshot(self) -> TreeSnapshot | None:
        return self._snapshot

    # -- Lookups --

    def pages(self) -> Mapping[str, Page]:
        snapshot = self.ensure_built()
        return snapshot.pages if snapshot is not None else MappingProxyType({})

    def get_page(self, route: str) -> Page | None:
        """Look up a page by route, normalizing slashes first."""
        return self.pages().get(normalize_route(route))

    def roots(self) -> list[Page]:
        snapshot = self.ensure_built()
        if snapshot is None:
            return []
        return [snapshot.pages[route] for route in snapshot.roots]

    def routes(self) -> list[str]:
        return list(self.pages())

    def get_children(self, route: str) -> list[Page]:
        pages = self.pages()
        page = pages.get(normalize_route(route))
        if page is None:
            return []
        return [pages[child] for child in page.children if child in pages]

    def get_breadcrumbs(self, route: str) -> list[Breadcrumb]:
        """Home, then each ancestor from the top, then the page itself.

        The home page itself is represented by the Home crumb.
        """
        pages = self.pages()
        trail: list[Breadcrumb] = []
        current = pages.get(normalize_route(route))
        while current is not None and current.route != "/":
            trail.append(Breadcrumb(title=current.title, route=current.route))
            current = pages.get(current.parent) if current.parent else None
        trail.append(Breadcrumb(title=self._home_label, route="/"))
        trail.reverse()
        return trail

    def stats(self) -> dict[str, Any]:
        snapshot = self._snapshot
        return {
            "total_pages": len(snapshot.pages) if snapshot else 0,
            "root_pages": len(snapshot.roots) if snapshot else 0,
            "built": snapshot is not None,
            "built_at": snapshot.built_at if snapshot else None,
        }

    def to_list(self) -> list[dict[str, Any]]:
        """Nested ``title``/``route``/``artifact_type``/``children`` export."""
        pages = self.pages()

        def export(route: str) -> dict[str, Any]:
            page = pages[route]
            return {
                "title": page.title,
                "route": page.route,
                "artifact_type": page.artifact_type,
                "children": [export(child) for child in page.children if child in pages],
            }

        return [export(page.route) for page in self.roots()]
