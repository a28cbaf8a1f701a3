"""Viewer resolution — bearer token first, then the session.

The resolved viewer is stored in a ContextVar and read with
``current_viewer()``. Requests nobody is signed in to get
``AnonymousViewer``, so callers never check for ``None``.

Usage::

    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    app.add_middleware(AuthMiddleware(AuthConfig(
        load_viewer=accounts.by_id,         # (id: str) -> Viewer | None
        verify_token=accounts.by_token,     # (token: str) -> Viewer | None
    )))
"""

from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, ClassVar

from atrium._internal.invoke import invoke
from atrium.access import ANONYMOUS, Viewer
from atrium.errors import ConfigurationError
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.middleware.protocol import Next

type ViewerLoader = Callable[[str], Viewer | None | Awaitable[Viewer | None]]

_viewer_var: ContextVar[Viewer] = ContextVar("atrium_viewer")


def current_viewer() -> Viewer:
    """The viewer for the current request, or ``AnonymousViewer``. Never raises."""
    try:
        return _viewer_var.get()
    except LookupError:
        return ANONYMOUS


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Authentication settings.

    Attributes:
        session_key: Session dict key holding the viewer id.
        token_header: Header carrying bearer tokens.
        token_scheme: Expected scheme prefix.
        load_viewer: Look a viewer up by id (session auth). Sync or async.
        verify_token: Look a viewer up by token (token auth). Sync or async.
    """

    session_key: str = "viewer_id"
    token_header: str = "Authorization"
    token_scheme: str = "Bearer"
    load_viewer: ViewerLoader | None = None
    verify_token: ViewerLoader | None = None


def login(viewer: Viewer, session_key: str = "viewer_id") -> None:
    """Record *viewer* in the session and make it current for this request."""
    from atrium.middleware.sessions import get_session

    session = get_session()
    session.clear()
    session[session_key] = viewer.id
    _viewer_var.set(viewer)


def logout() -> None:
    from atrium.middleware.sessions import get_session

    get_session().clear()
    _viewer_var.set(ANONYMOUS)


class AuthMiddleware:
    """Resolve the viewer, then dispatch.

    Place after ``SessionMiddleware`` when session auth is used.
    """

    __slots__ = ("_config",)

    # Registered as template globals by the app.
    template_globals: ClassVar[dict[str, Any]] = {"current_viewer": current_viewer}

    def __init__(self, config: AuthConfig) -> None:
        if config.load_viewer is None and config.verify_token is None:
            msg = "AuthConfig requires 'load_viewer' or 'verify_token' to be set."
            raise ConfigurationError(msg)
        self._config = config

    def _extract_token(self, request: Request) -> str | None:
        header = request.headers.get(self._config.token_header)
        prefix = f"{self._config.token_scheme} "
        if header is None or not header.startswith(prefix):
            return None
        return header[len(prefix) :].strip() or None

    async def _from_token(self, request: Request) -> Viewer | None:
        if self._config.verify_token is None:
            return None
        token = self._extract_token(request)
        if token is None:
            return None
        return await invoke(self._config.verify_token, token)

    async def _from_session(self) -> Viewer | None:
        if self._config.load_viewer is None:
            return None

        from atrium.middleware.sessions import get_session

        try:
            session = get_session()
        except LookupError:
            msg = "Session auth requires SessionMiddleware before AuthMiddleware."
            raise ConfigurationError(msg) from None

        viewer_id = session.get(self._config.session_key)
        if not viewer_id:
            return None
        return await invoke(self._config.load_viewer, str(viewer_id))

    async def __call__(self, request: Request, next: Next) -> Response:
        viewer = await self._from_token(request)
        if viewer is None:
            viewer = await self._from_session()

        token = _viewer_var.set(viewer if viewer is not None else ANONYMOUS)
        try:
            return await next(request)
        finally:
            _viewer_var.reset(token)
