"""Route definitions and match results."""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

# converter name -> regex for one path segment
CONVERTERS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"\d+",
}


@dataclass(frozen=True, slots=True)
class PathSegment:
    """One segment of a route path.

    Static:  ``reports``
    Param:   ``{artifact_slug}`` (is_param=True, param_name="artifact_slug")
    Typed:   ``{id:int}`` (is_param=True, param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class Route:
    """A route definition.

    ``literal`` routes treat every segment as static text, so a content
    file named ``{draft}.md`` never becomes a parameter. ``carriers`` are
    fixed values handed to the handler alongside captured parameters.
    """

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str] = frozenset({"GET", "HEAD"})
    name: str | None = None
    literal: bool = False
    carriers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def pattern(self) -> str:
        """Equivalent anchored regex; the trailing slash is optional."""
        parts: list[str] = []
        for part in self.path.strip("/").split("/"):
            if not part:
                continue
            if not self.literal and part.startswith("{") and part.endswith("}"):
                name, _, kind = part[1:-1].partition(":")
                parts.append(f"(?P<{name}>{CONVERTERS[kind or 'str']})")
            else:
                parts.append(re.escape(part))
        if not parts:
            return "^/$"
        return "^/" + "/".join(parts) + "/?$"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]

    @property
    def params(self) -> dict[str, str]:
        """Carriers merged with captured path parameters."""
        return {**self.route.carriers, **self.path_params}
