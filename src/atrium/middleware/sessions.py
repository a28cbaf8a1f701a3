"""Signed cookie sessions.

The session dict is serialized as JSON and signed with ``itsdangerous``.
It lives in a ContextVar for the duration of the request and is read
with ``get_session()``.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadData, URLSafeTimedSerializer

from atrium.errors import ConfigurationError
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.middleware.protocol import Next

_session_var: ContextVar[dict[str, Any] | None] = ContextVar("atrium_session", default=None)


def get_session() -> dict[str, Any]:
    """The current session dict.

    Raises ``LookupError`` outside a request handled by ``SessionMiddleware``.
    """
    session = _session_var.get()
    if session is None:
        msg = "No active session. Add SessionMiddleware before reading the session."
        raise LookupError(msg)
    return session


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """``secret_key`` is required; sessions are signed, not encrypted."""

    secret_key: str
    cookie_name: str = "atrium_session"
    max_age: int = 86400
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionMiddleware:
    """Load the session cookie before dispatch, re-sign it after.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    """

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: SessionConfig) -> None:
        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)
        self._config = config
        self._serializer = URLSafeTimedSerializer(config.secret_key, salt="atrium-session")

    def _load(self, request: Request) -> dict[str, Any]:
        cookie = request.cookies.get(self._config.cookie_name)
        if not cookie:
            return {}
        try:
            data = self._serializer.loads(cookie, max_age=self._config.max_age)
        except BadData:
            return {}
        return data if isinstance(data, dict) else {}

    def dumps(self, session: dict[str, Any]) -> str:
        """Signed cookie value for *session*."""
        return self._serializer.dumps(session)

    async def __call__(self, request: Request, next: Next) -> Response:
        session = self._load(request)
        token = _session_var.set(session)
        try:
            response = await next(request)
        finally:
            _session_var.reset(token)

        cfg = self._config
        return response.with_cookie(
            cfg.cookie_name,
            self.dumps(session),
            max_age=cfg.max_age,
            path=cfg.path,
            secure=cfg.secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )
