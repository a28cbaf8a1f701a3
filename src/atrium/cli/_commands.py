"""``atrium status / tree / nav / routes / rebuild``: JSON reports."""

import argparse
import json
import sys
from typing import Any

from atrium.app import Atrium
from atrium.cli._resolve import app_from_args


def _status(app: Atrium) -> tuple[Any, int]:
    return app.diagnostics.full_report(), 0


def _tree(app: Atrium) -> tuple[Any, int]:
    app.tree.ensure_built()
    return {"built_at": app.tree.built_at, "pages": app.tree.to_list()}, 0


def _nav(app: Atrium) -> tuple[Any, int]:
    return {"items": app.navigation.to_list(), "stats": app.navigation.stats()}, 0


def _routes(app: Atrium) -> tuple[Any, int]:
    return app.site.route_table(), 0


def _rebuild(app: Atrium) -> tuple[Any, int]:
    result = app.rebuild()
    return result, 0 if result["success"] else 1


COMMANDS = {
    "status": _status,
    "tree": _tree,
    "nav": _nav,
    "routes": _routes,
    "rebuild": _rebuild,
}


def run_command(args: argparse.Namespace) -> int:
    """Run a report command, print its JSON, and return the exit code."""
    try:
        app = app_from_args(args)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    payload, code = COMMANDS[args.command](app)
    print(json.dumps(payload, indent=2, default=str))
    return code
