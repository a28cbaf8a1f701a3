"""Health status, diagnostic report, and rebuild.

Status is one of three values, checked in order:

- ``inactive``: the library path is unset or fails validation.
- ``degraded``: the platform directory is unusable, no pages were
  loaded, or a content file has structural errors (such as a missing
  title).
- ``structurally_up``: everything above passed.
"""

import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from atrium.config import AtriumConfig
from atrium.content.tree import PageTree
from atrium.navigation import Navigation
from atrium.providers import ProviderRegistry

logger = logging.getLogger("atrium.diagnostics")


class Status(StrEnum):
    INACTIVE = "inactive"
    DEGRADED = "degraded"
    STRUCTURALLY_UP = "structurally_up"


STATUS_LABELS: dict[str, str] = {
    Status.INACTIVE: "Inactive",
    Status.DEGRADED: "Degraded",
    Status.STRUCTURALLY_UP: "Structurally Up",
}


def status_label(status: str) -> str:
    """Human-readable label; unknown values come back unchanged."""
    return STATUS_LABELS.get(status, status)


class Diagnostics:
    """Read-only health checks over a site, plus the rebuild operation."""

    __slots__ = ("_config", "_navigation", "_registry", "_tree")

    def __init__(
        self,
        config: AtriumConfig,
        tree: PageTree,
        navigation: Navigation,
        registry: ProviderRegistry,
    ) -> None:
        self._config = config
        self._tree = tree
        self._navigation = navigation
        self._registry = registry

    def status(self) -> Status:
        if not self._config.has_library_path():
            return Status.INACTIVE
        if not self._config.validate_library_path().valid:
            return Status.INACTIVE

        source = self._tree.source
        if not source.is_valid():
            return Status.DEGRADED

        snapshot = self._tree.ensure_built()
        if snapshot is None or not snapshot.pages:
            return Status.DEGRADED
        if not source.validate().valid:
            return Status.DEGRADED
        return Status.STRUCTURALLY_UP

    def status_label(self) -> str:
        return status_label(self.status())

    # -- Report sections --

    def check_configuration(self) -> dict[str, Any]:
        library_path = self._config.library_path
        result: dict[str, Any] = {
            "valid": False,
            "library_path": str(library_path) if library_path else None,
            "errors": [],
        }
        validation = self._config.validate_library_path()
        if not validation.valid:
            result["errors"].append(validation.error)
            return result
        result["valid"] = True
        result["details"] = validation.details
        return result

    def check_platform(self) -> dict[str, Any]:
        source = self._tree.source
        if not source.is_valid():
            return {
                "valid": False,
                "errors": ["Platform directory not accessible."],
                "warnings": [],
                "stats": {},
            }
        report = source.validate()
        return {
            "valid": report.valid,
            "errors": list(report.errors),
            "warnings": list(report.warnings),
            "stats": source.stats(),
        }

    def check_page_tree(self) -> dict[str, Any]:
        return {
            "built": self._tree.is_built,
            "built_at": self._tree.built_at,
            "stats": self._tree.stats(),
        }

    def check_navigation(self) -> dict[str, Any]:
        return self._navigation.stats()

    def check_providers(self) -> dict[str, Any]:
        return self._registry.stats()

    def full_report(self) -> dict[str, Any]:
        status = self.status()
        return {
            "status": str(status),
            "status_label": status_label(status),
            "generated_at": datetime.now(UTC).isoformat(timespec="seconds"),
            "configuration": self.check_configuration(),
            "platform": self.check_platform(),
            "page_tree": self.check_page_tree(),
            "navigation": self.check_navigation(),
            "providers": self.check_providers(),
        }

    # -- Rebuild --

    def rebuild(self) -> dict[str, Any]:
        """Drop both caches and rebuild the tree, then the navigation."""
        self._tree.clear_cache()
        self._navigation.clear_cache()

        tree_ok = self._tree.build(force=True)
        nav_ok = self._navigation.build(force=True) if tree_ok else False
        status = self.status()
        if tree_ok and nav_ok:
            logger.info("Rebuild complete: %s", status)
        else:
            logger.warning("Rebuild incomplete: %s", status)
        return {
            "success": tree_ok and nav_ok,
            "status": str(status),
            "page_tree": self._tree.stats(),
            "navigation": self._navigation.stats(),
        }
