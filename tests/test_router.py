"""Tests for atrium.routing: path parsing, trie matching, patterns."""

import re

import pytest

from atrium.errors import MethodNotAllowed, NotFound
from atrium.routing import Route, Router, parse_path


def _handler() -> str:
    return "ok"


def _router(*routes: Route) -> Router:
    router = Router()
    for route in routes:
        router.add(route)
    router.compile()
    return router


class TestParsePath:
    def test_static(self) -> None:
        segments = parse_path("/reports/q1/")
        assert [s.value for s in segments] == ["reports", "q1"]
        assert not any(s.is_param for s in segments)

    def test_params(self) -> None:
        segments = parse_path("/source/{artifact_slug}/{id:int}")
        assert segments[1].param_name == "artifact_slug"
        assert segments[2].param_type == "int"

    def test_literal_keeps_braces(self) -> None:
        segments = parse_path("/notes/{draft}/", literal=True)
        assert segments[1].is_param is False
        assert segments[1].value == "{draft}"

    def test_root(self) -> None:
        assert parse_path("/") == []


class TestMatch:
    def test_static_route(self) -> None:
        router = _router(Route("/reports/q1/", _handler, literal=True))
        assert router.match("GET", "/reports/q1/").route.path == "/reports/q1/"

    def test_trailing_slash_optional(self) -> None:
        router = _router(Route("/reports/q1/", _handler))
        assert router.match("GET", "/reports/q1").route.path == "/reports/q1/"

    def test_root_route(self) -> None:
        router = _router(Route("/", _handler))
        assert router.match("GET", "/").path_params == {}

    def test_param_capture(self) -> None:
        router = _router(Route("/source/{artifact_slug}", _handler))
        assert router.match("GET", "/source/my-slug/").path_params == {"artifact_slug": "my-slug"}

    def test_static_before_param(self) -> None:
        router = _router(
            Route("/source/{artifact_slug}", _handler, name="artifact"),
            Route("/source/overview/", _handler, name="page", literal=True),
        )
        assert router.match("GET", "/source/overview/").route.name == "page"
        assert router.match("GET", "/source/other/").route.name == "artifact"

    def test_backtracks_from_static_branch(self) -> None:
        router = _router(
            Route("/source/overview/intro/", _handler, name="page", literal=True),
            Route("/source/{artifact_slug}", _handler, name="artifact"),
        )
        assert router.match("GET", "/source/overview/").route.name == "artifact"

    def test_int_converter(self) -> None:
        router = _router(Route("/items/{id:int}", _handler))
        assert router.match("GET", "/items/42").path_params == {"id": "42"}
        with pytest.raises(NotFound):
            router.match("GET", "/items/abc")

    def test_not_found(self) -> None:
        router = _router(Route("/reports/", _handler))
        with pytest.raises(NotFound):
            router.match("GET", "/reports/q1/")

    def test_method_not_allowed(self) -> None:
        router = _router(Route("/rebuild", _handler, methods=frozenset({"POST"})))
        with pytest.raises(MethodNotAllowed) as excinfo:
            router.match("GET", "/rebuild")
        assert excinfo.value.status == 405
        assert excinfo.value.headers == (("Allow", "POST"),)

    def test_carriers_merge_into_params(self) -> None:
        route = Route(
            "/report/{artifact_slug}",
            _handler,
            carriers={"artifact_type": "report"},
        )
        match = _router(route).match("GET", "/report/r1/")
        assert match.params == {"artifact_type": "report", "artifact_slug": "r1"}
        assert match.path_params == {"artifact_slug": "r1"}


class TestRegistration:
    def test_duplicate_is_rejected(self) -> None:
        router = Router()
        assert router.add(Route("/reports/", _handler, name="first")) is True
        assert router.add(Route("/reports", _handler, name="second")) is False
        router.compile()
        assert router.match("GET", "/reports/").route.name == "first"
        assert [r.name for r in router.routes] == ["first"]

    def test_same_path_other_method(self) -> None:
        router = Router()
        router.add(Route("/items", _handler, methods=frozenset({"GET"})))
        assert router.add(Route("/items", _handler, methods=frozenset({"POST"}))) is True

    def test_add_after_compile(self) -> None:
        router = _router()
        with pytest.raises(RuntimeError):
            router.add(Route("/late", _handler))


class TestPattern:
    @pytest.mark.parametrize(
        ("route", "expected"),
        [
            (Route("/", _handler), "^/$"),
            (Route("/reports/q1/", _handler, literal=True), "^/reports/q1/?$"),
            (Route("/source/{artifact_slug}", _handler), "^/source/(?P<artifact_slug>[^/]+)/?$"),
        ],
    )
    def test_pattern(self, route: Route, expected: str) -> None:
        assert route.pattern == expected

    def test_pattern_matches_like_router(self) -> None:
        pattern = re.compile(Route("/source/{artifact_slug}", _handler).pattern)
        assert pattern.match("/source/my-slug/").group("artifact_slug") == "my-slug"
        assert pattern.match("/source/a/b/") is None
