"""Atrium: a navigable site from a directory of Markdown files.

Pages become routes, directories become sections, and pluggable content
providers serve artifact detail pages under their own slug bases.

Basic usage::

    from atrium import Atrium, AtriumConfig, MemoryProvider, SimpleTypeConfig

    app = Atrium(AtriumConfig(library_path="/srv/library"))
    app.register_provider(
        MemoryProvider(
            "library",
            "Library",
            configs=[SimpleTypeConfig("source", "Source", "Sources", "source")],
        )
    )
    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "AccessVerdict",
    "Atrium",
    "AtriumConfig",
    "AtriumError",
    "ConfigurationError",
    "ContentItem",
    "ContentProvider",
    "Diagnostics",
    "Forbidden",
    "HTTPError",
    "Hook",
    "Hooks",
    "MemoryProvider",
    "MethodNotAllowed",
    "NotFound",
    "Page",
    "PageTree",
    "ProviderRegistry",
    "QueryResult",
    "Redirect",
    "Request",
    "Response",
    "SimpleItem",
    "SimpleTypeConfig",
    "SiteRouter",
    "SiteViewer",
    "TypeConfig",
    "View",
    "current_viewer",
    "get_request",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import atrium`` fast while providing a clean top-level API.
    """
    if name == "Atrium":
        from atrium.app import Atrium

        return Atrium

    if name == "AtriumConfig":
        from atrium.config import AtriumConfig

        return AtriumConfig

    if name == "Request":
        from atrium.http.request import Request

        return Request

    if name in ("Response", "Redirect", "View"):
        from atrium.http import response as _resp

        return getattr(_resp, name)

    if name in ("Page", "PageTree"):
        from atrium import content as _content

        return getattr(_content, name)

    if name in (
        "AccessVerdict",
        "ContentItem",
        "ContentProvider",
        "MemoryProvider",
        "ProviderRegistry",
        "QueryResult",
        "SimpleItem",
        "SimpleTypeConfig",
        "TypeConfig",
    ):
        from atrium import providers as _providers

        return getattr(_providers, name)

    if name in ("Hook", "Hooks"):
        from atrium import hooks as _hooks

        return getattr(_hooks, name)

    if name == "SiteViewer":
        from atrium.access import SiteViewer

        return SiteViewer

    if name == "current_viewer":
        from atrium.middleware.auth import current_viewer

        return current_viewer

    if name == "Diagnostics":
        from atrium.diagnostics import Diagnostics

        return Diagnostics

    if name == "SiteRouter":
        from atrium.dispatch import SiteRouter

        return SiteRouter

    if name == "get_request":
        from atrium.context import get_request

        return get_request

    if name in (
        "AtriumError",
        "ConfigurationError",
        "Forbidden",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
    ):
        from atrium import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
