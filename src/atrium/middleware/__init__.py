"""Middleware — any ``async (request, next) -> response`` callable.

Built-in middleware:
    SessionMiddleware -- Signed cookie sessions (itsdangerous)
    AuthMiddleware -- Resolves the viewer from a bearer token or the session
"""

from atrium.middleware.auth import AuthConfig, AuthMiddleware, current_viewer
from atrium.middleware.protocol import Middleware, Next
from atrium.middleware.sessions import SessionConfig, SessionMiddleware, get_session

__all__ = [
    "AuthConfig",
    "AuthMiddleware",
    "Middleware",
    "Next",
    "SessionConfig",
    "SessionMiddleware",
    "current_viewer",
    "get_session",
]
