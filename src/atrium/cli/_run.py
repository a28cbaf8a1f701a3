"""``atrium serve``: run the site with the pounce server."""

import argparse
import sys

from atrium.cli._resolve import app_from_args


def run_server(args: argparse.Namespace) -> None:
    try:
        app = app_from_args(args)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    from atrium.server.dev import run_dev_server

    content_root = app.config.content_root
    run_dev_server(
        app,
        args.host or app.config.host,
        args.port or app.config.port,
        reload=args.reload or app.config.debug,
        reload_dirs=(str(content_root),) if content_root is not None else (),
    )
