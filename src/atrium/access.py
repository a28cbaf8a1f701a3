"""Page access levels.

Pages declare an ``access_level`` in their front matter. The viewer is
whoever ``AuthMiddleware`` resolved for the request.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from atrium.hooks import Hook, Hooks

PUBLIC = "public"
MEMBER_LEVELS = frozenset({"member", "registered"})
PREMIUM_LEVELS = frozenset({"premium", "subscriber"})

# Capability that lets a signed-in viewer past premium gates.
ELEVATED_CAPABILITY = "read_private"

# Capability required to trigger a rebuild through the API.
MANAGE_CAPABILITY = "manage_options"


@runtime_checkable
class Viewer(Protocol):
    """Minimal viewer protocol.

    Any object with ``id``, ``is_authenticated`` and ``capabilities``
    satisfies this.
    """

    @property
    def id(self) -> str: ...

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def capabilities(self) -> frozenset[str]: ...


@dataclass(frozen=True, slots=True)
class AnonymousViewer:
    """Sentinel for requests nobody is signed in to."""

    id: str = ""
    is_authenticated: bool = False
    capabilities: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class SiteViewer:
    """A signed-in viewer with a fixed set of capabilities."""

    id: str
    capabilities: frozenset[str] = frozenset()
    name: str = ""

    @property
    def is_authenticated(self) -> bool:
        return True


ANONYMOUS = AnonymousViewer()


def default_access(level: str, viewer: Viewer, hooks: Hooks) -> bool:
    """Built-in rule for *level*. Unknown levels are allowed."""
    if level == PUBLIC:
        return True
    if level in MEMBER_LEVELS:
        return viewer.is_authenticated
    if level in PREMIUM_LEVELS:
        if viewer.is_authenticated and ELEVATED_CAPABILITY in viewer.capabilities:
            return True
        return bool(hooks.apply_filters(Hook.CHECK_PREMIUM_ACCESS, False, level, viewer))
    return True


def can_view(level: str, viewer: Viewer, hooks: Hooks) -> bool:
    """Whether *viewer* may see content at *level*, after the ``check_access`` filter."""
    allowed = default_access(level, viewer, hooks)
    return bool(hooks.apply_filters(Hook.CHECK_ACCESS, allowed, level, viewer))
