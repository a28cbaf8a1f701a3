"""Error handling pipeline for atrium requests.

Maps HTTPError exceptions and unexpected failures to Response objects,
using registered error handlers or plain-text defaults.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from atrium.errors import HTTPError
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.rendering import Renderer
from atrium.server.negotiation import json_response, negotiate

logger = logging.getLogger("atrium.server")

type ErrorHandlers = dict[int | type, Callable[..., Any]]


def wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "application/json" in accept and "text/html" not in accept


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    renderer: Renderer | None,
) -> Response:
    """Invoke a registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    """
    params = list(inspect.signature(handler).parameters.values())
    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result
    return negotiate(result, renderer)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: ErrorHandlers,
    renderer: Renderer | None,
    *,
    api_prefix: str = "",
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    is_api = bool(api_prefix) and request.path.startswith(api_prefix)
    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None and not is_api:
        response = await call_error_handler(handler, request, exc, renderer)
        # Keep the exception's status unless the handler chose its own.
        if response.status == 200:
            response = response.with_status(exc.status)
    elif is_api or wants_json(request):
        response = json_response({"error": exc.detail or str(exc.status)}, exc.status)
    else:
        response = Response(body=exc.detail or f"Error {exc.status}", status=exc.status)

    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: ErrorHandlers,
    renderer: Renderer | None,
    *,
    debug: bool = False,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)

    handler = error_handlers.get(500) or error_handlers.get(type(exc))
    if handler is not None:
        return (await call_error_handler(handler, request, exc, renderer)).with_status(500)

    if debug:
        return Response(
            body=f"Internal Server Error\n\n{type(exc).__name__}: {exc}",
            status=500,
            content_type="text/plain; charset=utf-8",
        )
    return Response(body="Internal Server Error", status=500)
