"""Trie-based path matching.

Static segments are tried before parameter segments at every level. A
site that wants an earlier parameter route to win over a later literal
one checks ``match()`` before adding the literal.
"""

import re
from dataclasses import dataclass

from atrium.errors import MethodNotAllowed, NotFound
from atrium.routing.route import CONVERTERS, PathSegment, Route, RouteMatch


def parse_path(path: str, *, literal: bool = False) -> list[PathSegment]:
    """Split a route path into segments.

    Examples::

        "/reports/q1/"              -> [PathSegment("reports"), PathSegment("q1")]
        "/source/{artifact_slug}/"  -> [PathSegment("source"),
                                        PathSegment("{artifact_slug}", is_param=True, ...)]
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if not literal and part.startswith("{") and part.endswith("}"):
            name, _, kind = part[1:-1].partition(":")
            segments.append(
                PathSegment(value=part, is_param=True, param_name=name, param_type=kind or "str")
            )
        else:
            segments.append(PathSegment(value=part))
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        # one parameter edge per level
        self.param_child: _ParamEdge | None = None
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    param_name: str
    regex: re.Pattern[str]
    node: _TrieNode


class Router:
    """Compiled router.

    Usage::

        router = Router()
        router.add(Route("/reports/", handler, literal=True))
        router.add(Route("/source/{artifact_slug}", handler))
        router.compile()
        match = router.match("GET", "/source/my-slug/")
    """

    __slots__ = ("_compiled", "_root", "_routes")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._routes: list[Route] = []
        self._compiled = False

    def add(self, route: Route) -> bool:
        """Add a route. Returns ``False`` if its path and methods are already taken."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        for seg in parse_path(route.path, literal=route.literal):
            if seg.is_param:
                if node.param_child is None:
                    node.param_child = _ParamEdge(
                        param_name=seg.param_name or "",
                        regex=re.compile(f"^{CONVERTERS[seg.param_type]}$"),
                        node=_TrieNode(),
                    )
                node = node.param_child.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        if any(method in node.routes_by_method for method in route.methods):
            return False
        for method in route.methods:
            node.routes_by_method[method] = route
        self._routes.append(route)
        return True

    @property
    def routes(self) -> list[Route]:
        """Every registered route, in registration order."""
        return list(self._routes)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match *method* and *path*.

        Raises ``NotFound`` if no route matches the path and
        ``MethodNotAllowed`` if it matches under other methods only.
        """
        parts = [p for p in path.split("/") if p]
        result = self._match_node(self._root, parts, 0, {})
        if result is None:
            raise NotFound(f"No route matches {method} {path!r}")

        node, params = result
        route = node.routes_by_method.get(method)
        if route is None:
            raise MethodNotAllowed(frozenset(node.routes_by_method))
        return RouteMatch(route=route, path_params=params)

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[_TrieNode, dict[str, str]] | None:
        if index == len(parts):
            return (node, params) if node.routes_by_method else None

        part = parts[index]

        if part in node.children:
            result = self._match_node(node.children[part], parts, index + 1, params)
            if result is not None:
                return result

        edge = node.param_child
        if edge is not None and edge.regex.match(part):
            return self._match_node(edge.node, parts, index + 1, {**params, edge.param_name: part})

        return None
