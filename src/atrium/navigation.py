"""Navigation — the nav-visible projection of the page tree.

Built by walking the tree from its roots and dropping every page with
``show_in_nav`` false together with its whole subtree. Cached apart from
the tree and mirrored into a ``MenuStore`` after each fresh build.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from kida.template import Markup

from atrium.cache import TransientCache
from atrium.content.page import Page, normalize_route
from atrium.content.tree import PageTree
from atrium.errors import SnapshotError

logger = logging.getLogger("atrium.navigation")


@dataclass(frozen=True, slots=True)
class NavItem:
    """One visible entry in the navigation tree."""

    title: str
    route: str
    url: str
    depth: int = 0
    access_level: str = "public"
    has_children: bool = False  # the page has children, visible or not
    children: tuple[NavItem, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "route": self.route,
            "url": self.url,
            "depth": self.depth,
            "access_level": self.access_level,
            "has_children": self.has_children,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Any) -> NavItem:
        if not isinstance(data, dict):
            msg = "Cached navigation item is not a mapping"
            raise SnapshotError(msg)
        try:
            children = data.get("children") or []
            return cls(
                title=str(data["title"]),
                route=str(data["route"]),
                url=str(data["url"]),
                depth=int(data.get("depth", 0)),
                access_level=str(data.get("access_level") or "public"),
                has_children=bool(data.get("has_children", False)),
                children=tuple(cls.from_dict(child) for child in children),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Cached navigation item is malformed: {exc}"
            raise SnapshotError(msg) from exc


def is_current_or_ancestor(item_route: str, current_route: str) -> bool:
    """True if *item_route* is the current route or one of its ancestors.

    Ancestry is a prefix match on a segment boundary: ``/a/`` contains
    ``/a/b/`` but not ``/ab/``.
    """
    if not current_route:
        return False
    if item_route == current_route:
        return True
    return current_route.startswith(item_route.rstrip("/") + "/")


# -- External menu store --


@dataclass(frozen=True, slots=True)
class MenuEntry:
    id: int
    title: str
    url: str
    parent_id: int | None = None
    position: int = 0


class MenuStore(Protocol):
    """Host-side menu storage that navigation is mirrored into."""

    def get_or_create_menu(self, name: str) -> str: ...

    def list_items(self, menu_id: str) -> list[MenuEntry]: ...

    def delete_item(self, menu_id: str, item_id: int) -> None: ...

    def add_item(
        self,
        menu_id: str,
        *,
        title: str,
        url: str,
        parent_id: int | None,
        position: int,
    ) -> int: ...

    def assign_location(self, location: str, menu_id: str) -> None: ...


@dataclass(slots=True)
class MemoryMenuStore:
    """``MenuStore`` kept in process memory."""

    menus: dict[str, list[MenuEntry]] = field(default_factory=dict)
    locations: dict[str, str] = field(default_factory=dict)
    _next_id: int = 1

    def get_or_create_menu(self, name: str) -> str:
        self.menus.setdefault(name, [])
        return name

    def list_items(self, menu_id: str) -> list[MenuEntry]:
        return list(self.menus.get(menu_id, []))

    def delete_item(self, menu_id: str, item_id: int) -> None:
        self.menus[menu_id] = [e for e in self.menus.get(menu_id, []) if e.id != item_id]

    def add_item(
        self,
        menu_id: str,
        *,
        title: str,
        url: str,
        parent_id: int | None,
        position: int,
    ) -> int:
        entry = MenuEntry(self._next_id, title, url, parent_id, position)
        self._next_id += 1
        self.menus.setdefault(menu_id, []).append(entry)
        return entry.id

    def assign_location(self, location: str, menu_id: str) -> None:
        self.locations[location] = menu_id


# -- Navigation --


class Navigation:
    """Nav-visible tree with lookup, counting, and HTML rendering."""

    CACHE_KEY = "atrium.navigation"

    __slots__ = (
        "_cache",
        "_items",
        "_menu_location",
        "_menu_name",
        "_menu_store",
        "_tree",
        "_ttl",
        "_url_for",
    )

    def __init__(
        self,
        tree: PageTree,
        cache: TransientCache,
        *,
        ttl: int = 3600,
        menu_store: MenuStore | None = None,
        menu_name: str = "Atrium",
        menu_location: str = "atrium-primary",
        url_for: Callable[[str], str] | None = None,
    ) -> None:
        self._tree = tree
        self._cache = cache
        self._ttl = ttl
        self._menu_store: MenuStore = menu_store if menu_store is not None else MemoryMenuStore()
        self._menu_name = menu_name
        self._menu_location = menu_location
        self._url_for = url_for or (lambda route: route)
        self._items: tuple[NavItem, ...] | None = None

    @property
    def menu_store(self) -> MenuStore:
        return self._menu_store

    # -- Build --

    def build(self, force: bool = False) -> bool:
        """Project the page tree into navigation items.

        A fresh (non-cached) build also resyncs the external menu.
        """
        snapshot = self._tree.ensure_built()
        if snapshot is None:
            return False

        if not force and self._load_from_cache():
            return True

        items = self._project(snapshot.pages, snapshot.roots, depth=0)
        self._items = items
        self._save_to_cache(items)
        logger.info("Built navigation: %d items", count_items(items))
        self._sync_menu(items)
        return True

    def _project(
        self,
        pages: Mapping[str, Page],
        routes: Sequence[str],
        depth: int,
    ) -> tuple[NavItem, ...]:
        items: list[NavItem] = []
        for route in routes:
            page = pages.get(route)
            if page is None or not page.show_in_nav:
                continue
            items.append(
                NavItem(
                    title=page.nav_title,
                    route=page.route,
                    url=self._url_for(page.route),
                    depth=depth,
                    access_level=page.access_level,
                    has_children=bool(page.children),
                    children=self._project(pages, page.children, depth + 1),
                )
            )
        return tuple(items)

    def _load_from_cache(self) -> bool:
        cached = self._cache.get(self.CACHE_KEY)
        if not isinstance(cached, dict) or not isinstance(cached.get("items"), list):
            logger.debug("Navigation cache miss")
            return False
        try:
            items = tuple(NavItem.from_dict(item) for item in cached["items"])
        except SnapshotError as exc:
            logger.debug("Discarding cached navigation: %s", exc)
            return False
        self._items = items
        return True

    def _save_to_cache(self, items: tuple[NavItem, ...]) -> None:
        try:
            self._cache.set(self.CACHE_KEY, {"items": [i.to_dict() for i in items]}, self._ttl)
        except OSError:
            logger.warning("Could not write navigation cache", exc_info=True)

    def _sync_menu(self, items: tuple[NavItem, ...]) -> None:
        """Replace every entry of the managed menu, then bind its location."""
        store = self._menu_store
        menu_id = store.get_or_create_menu(self._menu_name)
        for entry in store.list_items(menu_id):
            store.delete_item(menu_id, entry.id)
        self._add_menu_items(menu_id, items, parent_id=None)
        store.assign_location(self._menu_location, menu_id)
        logger.info("Synced menu %r to location %r", self._menu_name, self._menu_location)

    def _add_menu_items(
        self,
        menu_id: str,
        items: Sequence[NavItem],
        parent_id: int | None,
    ) -> None:
        for position, item in enumerate(items, start=1):
            entry_id = self._menu_store.add_item(
                menu_id,
                title=item.title,
                url=item.url,
                parent_id=parent_id,
                position=position,
            )
            if item.children:
                self._add_menu_items(menu_id, item.children, parent_id=entry_id)

    def clear_cache(self) -> None:
        self._cache.delete(self.CACHE_KEY)
        self._items = None

    # -- Lookups --

    @property
    def is_built(self) -> bool:
        return self._items is not None

    def items(self) -> tuple[NavItem, ...]:
        """The full navigation tree, building it once if needed."""
        if self._items is None:
            self.build()
        return self._items or ()

    def primary(self) -> list[NavItem]:
        """Top-level items without their children."""
        return [replace(item, children=()) for item in self.items()]

    def find(self, route: str) -> NavItem | None:
        """The item at *route* anywhere in the tree."""
        return _find(normalize_route(route), self.items())

    def submenu(self, route: str) -> tuple[NavItem, ...]:
        item = self.find(route)
        return item.children if item is not None else ()

    def section(self, route: str) -> list[NavItem]:
        item = self.find(route)
        return [item] if item is not None else []

    def count(self) -> int:
        return count_items(self.items())

    def stats(self) -> dict[str, Any]:
        items = self._items or ()
        return {
            "total_items": count_items(items),
            "root_items": len(items),
            "built": self._items is not None,
        }

    def to_list(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.items()]

    # -- Rendering --

    def render(
        self,
        items: Sequence[NavItem] | None = None,
        current_route: str = "",
        max_depth: int = 3,
    ) -> Markup:
        """Render items as nested ``<ul>`` lists, at most *max_depth* deep."""
        if items is None:
            items = self.items()
        if not items:
            return Markup("")
        return Markup(_render_list(items, current_route, 0, max_depth))


def _find(route: str, items: Sequence[NavItem]) -> NavItem | None:
    for item in items:
        if item.route == route:
            return item
        found = _find(route, item.children)
        if found is not None:
            return found
    return None


def count_items(items: Sequence[NavItem]) -> int:
    """Recursive item count."""
    return sum(1 + count_items(item.children) for item in items)


def _render_list(items: Sequence[NavItem], current_route: str, depth: int, max_depth: int) -> str:
    if depth >= max_depth:
        return ""

    css = "atrium-nav atrium-nav-primary" if depth == 0 else "atrium-nav atrium-nav-submenu"
    parts = [f'<ul class="{css}">']
    for item in items:
        classes = ["atrium-nav-item"]
        if is_current_or_ancestor(item.route, current_route):
            classes.append("atrium-nav-item-current")
        if item.children:
            classes.append("atrium-nav-item-has-children")

        aria = ' aria-current="page"' if item.route == current_route else ""
        parts.append(
            f'<li class="{" ".join(classes)}">'
            f'<a href="{html.escape(item.url, quote=True)}"{aria}>{html.escape(item.title)}</a>'
        )
        if item.children:
            parts.append(_render_list(item.children, current_route, depth + 1, max_depth))
        parts.append("</li>")
    parts.append("</ul>")
    return "".join(parts)
