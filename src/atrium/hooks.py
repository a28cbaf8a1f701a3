"""Extension points: named filters and actions.

A filter receives a value (plus context arguments) and returns the value,
possibly changed. An action receives context arguments and returns
nothing. Callbacks run in ascending priority; equal priorities run in
registration order.

Usage::

    hooks = Hooks()

    @hooks.filter(Hook.ITEMS_PER_PAGE)
    def twelve(per_page, artifact_type):
        return 12 if artifact_type == "report" else per_page

    hooks.apply_filters(Hook.ITEMS_PER_PAGE, 24, "report")  # 12
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

logger = logging.getLogger("atrium.hooks")

DEFAULT_PRIORITY = 10


class Hook(StrEnum):
    """Hook names fired by the dispatcher."""

    # filters
    ITEMS_PER_PAGE = "items_per_page"
    ARTIFACT_QUERY_ARGS = "artifact_query_args"
    ARTIFACT_ITEMS = "artifact_items"
    CHECK_ACCESS = "check_access"
    CHECK_PREMIUM_ACCESS = "check_premium_access"
    UPGRADE_URL = "upgrade_url"
    # actions
    BEFORE_PAGE_RENDER = "before_page_render"
    AFTER_PAGE_RENDER = "after_page_render"
    ARTIFACT_REQUEST = "artifact_request"
    REGISTER_ROUTES = "register_routes"


@dataclass(frozen=True, slots=True)
class _Callback:
    priority: int
    sequence: int
    func: Callable[..., Any]


class Hooks:
    """Ordered registry of filter and action callbacks."""

    __slots__ = ("_actions", "_filters", "_lock", "_sequence")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._filters: dict[str, list[_Callback]] = {}
        self._actions: dict[str, list[_Callback]] = {}
        self._sequence = 0

    def _add(
        self,
        table: dict[str, list[_Callback]],
        name: str,
        func: Callable[..., Any],
        priority: int,
    ) -> None:
        with self._lock:
            self._sequence += 1
            callbacks = [*table.get(name, []), _Callback(priority, self._sequence, func)]
            callbacks.sort(key=lambda cb: (cb.priority, cb.sequence))
            # Replace the list so a concurrent run keeps iterating the old one
            table[name] = callbacks

    # -- Filters --

    def add_filter(
        self, name: str, func: Callable[..., Any], priority: int = DEFAULT_PRIORITY
    ) -> None:
        self._add(self._filters, name, func, priority)

    def filter(
        self, name: str, priority: int = DEFAULT_PRIORITY
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a filter via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add_filter(name, func, priority)
            return func

        return decorator

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        """Thread *value* through every filter registered under *name*."""
        for callback in self._filters.get(name, ()):
            value = callback.func(value, *args)
        return value

    def has_filter(self, name: str) -> bool:
        return bool(self._filters.get(name))

    # -- Actions --

    def add_action(
        self, name: str, func: Callable[..., Any], priority: int = DEFAULT_PRIORITY
    ) -> None:
        self._add(self._actions, name, func, priority)

    def action(
        self, name: str, priority: int = DEFAULT_PRIORITY
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register an action via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add_action(name, func, priority)
            return func

        return decorator

    def do_action(self, name: str, *args: Any) -> None:
        callbacks = self._actions.get(name, ())
        if callbacks:
            logger.debug("Firing %s (%d callbacks)", name, len(callbacks))
        for callback in callbacks:
            callback.func(*args)

    def has_action(self, name: str) -> bool:
        return bool(self._actions.get(name))

    def clear(self, name: str | None = None) -> None:
        """Drop callbacks for one hook name, or for every hook."""
        with self._lock:
            if name is None:
                self._filters.clear()
                self._actions.clear()
            else:
                self._filters.pop(name, None)
                self._actions.pop(name, None)
