"""Content loading — pages from Markdown files, linked into a tree."""

from atrium.content.page import (
    ContentConventions,
    Page,
    build_page,
    derive_route,
    normalize_route,
    parse_page,
)
from atrium.content.source import ContentSource, ValidationReport
from atrium.content.tree import Breadcrumb, PageTree, TreeSnapshot, build_snapshot

__all__ = [
    "Breadcrumb",
    "ContentConventions",
    "ContentSource",
    "Page",
    "PageTree",
    "TreeSnapshot",
    "ValidationReport",
    "build_page",
    "build_snapshot",
    "derive_route",
    "normalize_route",
    "parse_page",
]
