"""Page record and route derivation.

A ``Page`` is built from one content file. Its route, slug, depth, and
declared parent come from the file's path relative to the content root;
everything else comes from the front matter. ``children`` is only ever
filled in by the page tree.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any

from atrium.content.frontmatter import split_frontmatter
from atrium.errors import FrontmatterError, SnapshotError


@dataclass(frozen=True, slots=True)
class ContentConventions:
    """How file names map onto routes."""

    extension: str = ".md"
    index_stem: str = "_index"  # a directory's own page
    home_stem: str = "index"  # root-level file that becomes "/"
    hidden_prefix: str = "_"  # directories dropped from routes and navigation


DEFAULT_CONVENTIONS = ContentConventions()


# -- Route helpers --


def route_segments(route: str) -> list[str]:
    """Non-empty segments of a route or path."""
    return [part for part in route.split("/") if part]


def normalize_route(route: str) -> str:
    """Canonical ``/a/b/`` form. Empty and ``//`` become ``/``."""
    segments = route_segments(route)
    if not segments:
        return "/"
    return "/" + "/".join(segments) + "/"


def route_slug(route: str) -> str:
    """``/reports/q1/`` -> ``reports-q1``; the home route is ``root``."""
    trimmed = route.strip("/")
    if not trimmed:
        return "root"
    return trimmed.replace("/", "-")


def route_depth(route: str) -> int:
    return len(route_segments(route))


def route_parent(route: str) -> str | None:
    """The route one segment up. ``/reports/`` -> ``/``; ``/`` has none."""
    segments = route_segments(route)
    if not segments:
        return None
    return normalize_route("/".join(segments[:-1]))


def _is_hidden(segment: str, conventions: ContentConventions) -> bool:
    prefix = conventions.hidden_prefix
    return bool(prefix) and segment.startswith(prefix)


def derive_route(relative_path: str, conventions: ContentConventions = DEFAULT_CONVENTIONS) -> str:
    """Turn a path relative to the content root into a canonical route.

    Examples::

        "index.md"              -> "/"
        "reports/_index.md"     -> "/reports/"
        "reports/q1.md"         -> "/reports/q1/"
        "_site/about.md"        -> "/about/"

    Hidden directories disappear from the route; their contents move up
    one level. Applying this to a route it produced returns that route.
    """
    path = relative_path.replace("\\", "/").strip("/")
    if conventions.extension and path.endswith(conventions.extension):
        path = path[: -len(conventions.extension)]

    segments = route_segments(path)
    if not segments:
        return "/"

    *directories, stem = segments
    visible = [d for d in directories if not _is_hidden(d, conventions)]
    if stem != conventions.index_stem:
        visible.append(stem)

    if visible == [conventions.home_stem]:
        return "/"
    return normalize_route("/".join(visible))


# -- Page --


@dataclass(frozen=True, slots=True)
class Page:
    """An immutable page. Replaced, never mutated, when the tree links it."""

    route: str
    slug: str
    title: str
    nav_title: str = ""
    description: str = ""
    body: str = ""
    file_path: str = ""
    artifact_type: str | None = None
    filter: Mapping[str, Any] = field(default_factory=dict)
    sort_order: int = 0
    depth: int = 0
    is_index: bool = False
    show_in_nav: bool = True
    parent: str | None = None
    children: tuple[str, ...] = ()
    access_level: str = "public"

    def __post_init__(self) -> None:
        if not self.nav_title:
            object.__setattr__(self, "nav_title", self.title)

    @property
    def is_listing(self) -> bool:
        """True if rendering this page queries a provider for items."""
        return bool(self.artifact_type)

    @property
    def has_filter(self) -> bool:
        return bool(self.filter)

    def with_relations(self, parent: str | None, children: Sequence[str]) -> Page:
        """Copy with the tree-resolved parent and ordered children."""
        return replace(self, parent=parent, children=tuple(children))

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form used by the cache and the read API."""
        return {
            "route": self.route,
            "slug": self.slug,
            "title": self.title,
            "nav_title": self.nav_title,
            "description": self.description,
            "body": self.body,
            "file_path": self.file_path,
            "artifact_type": self.artifact_type,
            "filter": dict(self.filter),
            "sort_order": self.sort_order,
            "depth": self.depth,
            "is_index": self.is_index,
            "show_in_nav": self.show_in_nav,
            "parent": self.parent,
            "children": list(self.children),
            "access_level": self.access_level,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Page:
        """Rebuild a page from ``to_dict()`` output.

        Raises ``SnapshotError`` when required keys are missing or mistyped.
        """
        try:
            route = data["route"]
            title = data["title"]
            children = data.get("children", [])
            page_filter = data.get("filter") or {}
        except (KeyError, TypeError, AttributeError) as exc:
            msg = f"Cached page is missing {exc}"
            raise SnapshotError(msg) from exc
        if not isinstance(route, str) or not isinstance(title, str):
            msg = "Cached page has a non-string route or title"
            raise SnapshotError(msg)
        if not isinstance(children, list) or not isinstance(page_filter, dict):
            msg = f"Cached page {route!r} has malformed children or filter"
            raise SnapshotError(msg)

        return cls(
            route=route,
            slug=str(data.get("slug") or route_slug(route)),
            title=title,
            nav_title=str(data.get("nav_title") or ""),
            description=str(data.get("description") or ""),
            body=str(data.get("body") or ""),
            file_path=str(data.get("file_path") or ""),
            artifact_type=data.get("artifact_type") or None,
            filter=page_filter,
            sort_order=_as_int(data.get("sort_order")),
            depth=_as_int(data.get("depth")),
            is_index=bool(data.get("is_index", False)),
            show_in_nav=bool(data.get("show_in_nav", True)),
            parent=data.get("parent") or None,
            children=tuple(str(child) for child in children),
            access_level=str(data.get("access_level") or "public"),
        )


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def json_safe(value: Any) -> Any:
    """*value* as the cache will hand it back: dates become ISO strings,
    mapping keys become strings, tuples become lists.
    """
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if value is None or isinstance(value, (str, int, float)):
        return value
    return str(value)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def build_page(
    relative_path: str,
    meta: Mapping[str, Any],
    body: str,
    *,
    conventions: ContentConventions = DEFAULT_CONVENTIONS,
    file_path: str = "",
) -> Page:
    """Build a page from parsed front matter and its relative path.

    Raises ``FrontmatterError`` if ``filter`` is present but not a mapping.
    """
    route = derive_route(relative_path, conventions)
    segments = route_segments(relative_path.replace("\\", "/"))
    directories = segments[:-1]
    stem = Path(segments[-1]).stem if segments else ""

    page_filter = meta.get("filter")
    if page_filter is None:
        page_filter = {}
    elif not isinstance(page_filter, dict):
        msg = "Front matter 'filter' must be a mapping"
        raise FrontmatterError(msg)
    page_filter = json_safe(page_filter)

    if "artifact_type" in meta:
        artifact_type = _as_text(meta["artifact_type"]) or None
    elif directories:
        artifact_type = directories[0]  # first folder name, verbatim
    else:
        # root-level files are typed by their own name; the home page has none
        artifact_type = None if route == "/" else stem

    in_hidden_dir = any(_is_hidden(d, conventions) for d in directories)
    show_in_nav = meta.get("show_in_nav")
    sort_order = meta.get("sort_order")
    if sort_order is None:
        sort_order = meta.get("nav_order")

    return Page(
        route=route,
        slug=route_slug(route),
        title=_as_text(meta.get("title")),
        nav_title=_as_text(meta.get("nav_title")),
        description=_as_text(meta.get("description")),
        body=body,
        file_path=file_path,
        artifact_type=artifact_type,
        filter=page_filter,
        sort_order=_as_int(sort_order),
        depth=route_depth(route),
        is_index=stem == conventions.index_stem,
        show_in_nav=not in_hidden_dir if show_in_nav is None else bool(show_in_nav),
        parent=route_parent(route),
        access_level=_as_text(meta.get("access_level")) or "public",
    )


def parse_page(
    path: Path,
    root: Path,
    conventions: ContentConventions = DEFAULT_CONVENTIONS,
) -> Page:
    """Read and parse one content file beneath *root*.

    Raises ``OSError``/``UnicodeDecodeError`` for unreadable files and
    ``FrontmatterError`` for malformed metadata.
    """
    meta, body = split_frontmatter(path.read_text(encoding="utf-8"))
    relative = path.relative_to(root).as_posix()
    return build_page(relative, meta, body, conventions=conventions, file_path=str(path))
