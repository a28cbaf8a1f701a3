"""Atrium CLI: inspect, rebuild, and serve a content library.

Entry point registered as ``atrium`` in ``pyproject.toml``::

    [project.scripts]
    atrium = "atrium.cli:main"

Every command accepts ``--library`` (or an ``--app`` import string) and
prints JSON, except ``serve``.
"""

import argparse
import logging
import sys

LOG_LEVELS = ("debug", "info", "warning", "error")


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--library", default=None, help="Content library path")
    parser.add_argument(
        "--app",
        default=None,
        help="Import string for a configured Atrium app (e.g. mysite:app)",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for the on-disk cache (default: in-process memory)",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="warning")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atrium",
        description="Atrium: page trees, navigation, and provider routing from a content library.",
    )
    subparsers = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("status", "Print the diagnostic report"),
        ("tree", "Print the page tree"),
        ("nav", "Print the navigation tree"),
        ("routes", "Print the page and artifact route table"),
        ("rebuild", "Clear caches and rebuild the tree and navigation"),
    ):
        _add_common(subparsers.add_parser(name, help=help_text))

    serve_parser = subparsers.add_parser("serve", help="Serve the site with pounce")
    _add_common(serve_parser)
    serve_parser.add_argument("--host", default=None, help="Bind host address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on file changes")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``atrium`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "serve":
        from atrium.cli._run import run_server

        run_server(args)
        return

    from atrium.cli._commands import run_command

    sys.exit(run_command(args))
