"""App resolution for CLI commands.

``--app module:attribute`` imports a configured app (providers and hooks
included). Otherwise a bare app is built from ``--library`` and
``--cache-dir``.
"""

import argparse
import importlib
from dataclasses import replace

from atrium.app import Atrium
from atrium.config import AtriumConfig


def resolve_app(import_string: str) -> Atrium:
    """Resolve ``"module:attribute"`` (attribute defaults to ``app``).

    A callable that is not an ``Atrium`` is treated as a factory and called.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the resolved object is not an ``Atrium`` app.
    """
    module_path, _, attr_name = import_string.partition(":")
    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name or "app")

    if callable(obj) and not isinstance(obj, Atrium):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc

    if not isinstance(obj, Atrium):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not an atrium.Atrium app"
        raise TypeError(msg)
    return obj


def app_from_args(args: argparse.Namespace) -> Atrium:
    """The app a command should act on.

    ``--library`` and ``--cache-dir`` override an imported app's config.
    """
    overrides = {
        key: value
        for key, value in (("library_path", args.library), ("cache_dir", args.cache_dir))
        if value is not None
    }
    if args.app:
        app = resolve_app(args.app)
        if not overrides:
            return app
        return Atrium(
            replace(app.config, **overrides),
            registry=app.registry,
            hooks=app.hooks,
            menu_store=app.navigation.menu_store,
        )
    return Atrium(AtriumConfig(log_level=args.log_level, **overrides))
