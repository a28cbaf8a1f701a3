"""Per-request pipeline: scope to ``Request``, middleware, route, response.

HTTP errors raised anywhere in the chain become themed or JSON error
responses; anything else becomes a 500.
"""

import inspect
from collections.abc import Callable
from contextvars import Token
from dataclasses import replace
from typing import Any

from atrium._internal.asgi import Receive, Scope, Send
from atrium._internal.invoke import invoke
from atrium.context import request_var
from atrium.errors import HTTPError
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.middleware.protocol import Next
from atrium.rendering import Renderer
from atrium.routing.route import RouteMatch
from atrium.server.errors import ErrorHandlers, handle_http_error, handle_internal_error
from atrium.server.negotiation import negotiate
from atrium.server.sender import send_response

type Matcher = Callable[[str, str], RouteMatch]


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    match: Matcher,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: ErrorHandlers,
    renderer: Renderer | None = None,
    debug: bool = False,
    api_prefix: str = "",
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    token: Token[Request] = request_var.set(request)

    try:

        async def dispatch(req: Request) -> Response:
            route_match = match(req.method, req.path)
            return await _invoke_handler(route_match, req, renderer)

        handler: Next = dispatch
        for mw in reversed(middleware):
            outer = handler

            async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
                return await _mw(req, _next)

            handler = make_next

        response = await handler(request)

    except HTTPError as exc:
        response = await handle_http_error(
            exc, request, error_handlers, renderer, api_prefix=api_prefix
        )
    except Exception as exc:
        response = await handle_internal_error(exc, request, error_handlers, renderer, debug=debug)
    finally:
        request_var.reset(token)

    await send_response(response, send, head=request.method == "HEAD")


async def _invoke_handler(
    match: RouteMatch,
    request: Request,
    renderer: Renderer | None,
) -> Response:
    """Call the matched handler with the request and its route params."""
    params = match.params
    request = replace(request, path_params=params)
    kwargs = _build_handler_kwargs(match.route.handler, request, params)
    result = await invoke(match.route.handler, **kwargs)
    return negotiate(result, renderer)


def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    params: dict[str, str],
) -> dict[str, Any]:
    """``request`` by name or annotation, then route params by name.

    Params annotated ``int`` are converted when they parse.
    """
    kwargs: dict[str, Any] = {}
    for name, param in inspect.signature(handler, eval_str=True).parameters.items():
        if name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name in params:
            value = params[name]
            if param.annotation is int and value.isdecimal():
                kwargs[name] = int(value)
            else:
                kwargs[name] = value
    return kwargs
