"""Middleware protocol and the ``Next`` callable type.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> Response: ...

No base class required.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from atrium.http.request import Request
from atrium.http.response import Response

# The next handler in the middleware chain
type Next = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for atrium middleware.

    Function middleware::

        async def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = await next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")
    """

    async def __call__(self, request: Request, next: Next) -> Response: ...
