"""Tests for atrium.content.page: route derivation and the Page record."""

import json
from datetime import date

import pytest

from atrium.content.page import (
    ContentConventions,
    Page,
    build_page,
    derive_route,
    normalize_route,
    route_depth,
    route_parent,
    route_slug,
)
from atrium.errors import FrontmatterError, SnapshotError


class TestNormalizeRoute:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", "/"),
            ("/", "/"),
            ("//", "/"),
            ("reports", "/reports/"),
            ("/reports", "/reports/"),
            ("reports/q1/", "/reports/q1/"),
            ("//reports//q1//", "/reports/q1/"),
        ],
    )
    def test_canonical_form(self, raw: str, expected: str) -> None:
        assert normalize_route(raw) == expected

    def test_idempotent(self) -> None:
        route = normalize_route("a/b")
        assert normalize_route(route) == route


class TestDeriveRoute:
    @pytest.mark.parametrize(
        ("relative", "expected"),
        [
            ("index.md", "/"),
            ("about.md", "/about/"),
            ("reports/_index.md", "/reports/"),
            ("reports/q1.md", "/reports/q1/"),
            ("guides/setup/install.md", "/guides/setup/install/"),
            ("_drafts/secret.md", "/secret/"),
            ("reports/_archive/old.md", "/reports/old/"),
            ("reports/index.md", "/reports/index/"),
        ],
    )
    def test_paths(self, relative: str, expected: str) -> None:
        assert derive_route(relative) == expected

    def test_windows_separators(self) -> None:
        assert derive_route("reports\\q1.md") == "/reports/q1/"

    def test_applied_to_own_output(self) -> None:
        route = derive_route("reports/q1.md")
        assert derive_route(route) == route

    def test_custom_conventions(self) -> None:
        conventions = ContentConventions(extension=".txt", index_stem="README", home_stem="home")
        assert derive_route("docs/README.txt", conventions) == "/docs/"
        assert derive_route("home.txt", conventions) == "/"


class TestRouteHelpers:
    def test_slug(self) -> None:
        assert route_slug("/") == "root"
        assert route_slug("/reports/q1/") == "reports-q1"

    def test_depth_counts_segments(self) -> None:
        assert route_depth("/") == 0
        assert route_depth("/reports/") == 1
        assert route_depth("/reports/q1/") == 2

    def test_parent(self) -> None:
        assert route_parent("/") is None
        assert route_parent("/reports/") == "/"
        assert route_parent("/reports/q1/") == "/reports/"


class TestBuildPage:
    def test_fields_from_path(self) -> None:
        page = build_page("reports/q1.md", {"title": "Q1"}, "Body")
        assert page.route == "/reports/q1/"
        assert page.slug == "reports-q1"
        assert page.depth == 2
        assert page.parent == "/reports/"
        assert page.is_index is False
        assert page.body == "Body"

    def test_index_file(self) -> None:
        page = build_page("reports/_index.md", {"title": "Reports"}, "")
        assert page.route == "/reports/"
        assert page.is_index is True

    def test_artifact_type_from_first_folder(self) -> None:
        page = build_page("guides/setup/install.md", {"title": "Install"}, "")
        assert page.artifact_type == "guides"

    def test_root_file_typed_by_its_name(self) -> None:
        assert build_page("about.md", {"title": "About"}, "").artifact_type == "about"
        assert build_page("index.md", {"title": "Home"}, "").artifact_type is None
        assert build_page("_index.md", {"title": "Home"}, "").artifact_type is None

    def test_explicit_artifact_type_wins(self) -> None:
        page = build_page("reports/_index.md", {"title": "R", "artifact_type": "report"}, "")
        assert page.artifact_type == "report"

    def test_blank_artifact_type_clears_it(self) -> None:
        page = build_page("reports/_index.md", {"title": "R", "artifact_type": ""}, "")
        assert page.artifact_type is None

    def test_nav_title_defaults_to_title(self) -> None:
        assert build_page("a.md", {"title": "A"}, "").nav_title == "A"
        assert build_page("a.md", {"title": "A", "nav_title": "Short"}, "").nav_title == "Short"

    def test_nav_order_fallback(self) -> None:
        assert build_page("a.md", {"title": "A", "nav_order": 3}, "").sort_order == 3
        assert build_page("a.md", {"title": "A", "sort_order": 1, "nav_order": 3}, "").sort_order == 1

    def test_bad_sort_order_is_zero(self) -> None:
        assert build_page("a.md", {"title": "A", "sort_order": "soon"}, "").sort_order == 0

    def test_hidden_folder_hides_from_nav(self) -> None:
        page = build_page("_drafts/secret.md", {"title": "Secret"}, "")
        assert page.show_in_nav is False

    def test_show_in_nav_overrides_hidden_folder(self) -> None:
        page = build_page("_drafts/secret.md", {"title": "Secret", "show_in_nav": True}, "")
        assert page.show_in_nav is True

    def test_access_level_default(self) -> None:
        assert build_page("a.md", {"title": "A"}, "").access_level == "public"
        assert build_page("a.md", {"title": "A", "access_level": "member"}, "").access_level == "member"

    def test_filter_must_be_mapping(self) -> None:
        with pytest.raises(FrontmatterError, match="filter"):
            build_page("a.md", {"title": "A", "filter": ["x"]}, "")

    def test_filter_kept(self) -> None:
        page = build_page("a.md", {"title": "A", "filter": {"year": 2024}}, "")
        assert page.has_filter
        assert page.filter == {"year": 2024}

    def test_filter_values_are_plain_json(self) -> None:
        meta = {"title": "A", "filter": {"published": date(2024, 1, 5), 2024: ("a", "b")}}
        page = build_page("a.md", meta, "")
        assert page.filter == {"published": "2024-01-05", "2024": ["a", "b"]}
        assert Page.from_dict(json.loads(json.dumps(page.to_dict()))).filter == page.filter


class TestPageSerialization:
    def test_round_trip(self) -> None:
        page = build_page("reports/q1.md", {"title": "Q1", "filter": {"k": "v"}}, "Body")
        page = page.with_relations("/reports/", ["/reports/q1/a/"])
        assert Page.from_dict(page.to_dict()) == page

    def test_missing_title(self) -> None:
        with pytest.raises(SnapshotError):
            Page.from_dict({"route": "/a/"})

    def test_wrong_types(self) -> None:
        with pytest.raises(SnapshotError):
            Page.from_dict({"route": "/a/", "title": "A", "children": "nope"})
