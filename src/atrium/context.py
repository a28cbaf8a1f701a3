"""Request-scoped context via ContextVar.

``request_var`` is set by the ASGI handler before dispatch and reset
after each request. Outside a request, ``get_request()`` raises
``LookupError``.
"""

from contextvars import ContextVar

from atrium.http.request import Request

request_var: ContextVar[Request] = ContextVar("atrium_request")


def get_request() -> Request:
    """Return the current request."""
    return request_var.get()
