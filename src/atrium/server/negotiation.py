"""Content negotiation: maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

import json as json_module
from typing import Any

from atrium.http.response import Redirect, Response, View
from atrium.rendering import Renderer

JSON_CONTENT_TYPE = "application/json"


def json_response(value: Any, status: int = 200) -> Response:
    return Response(
        body=json_module.dumps(value, default=str),
        status=status,
        content_type=JSON_CONTENT_TYPE,
    )


def negotiate(value: Any, renderer: Renderer | None = None) -> Response:
    """Convert a handler's return value to a Response.

    Dispatch order:

    1. ``Response``         -> pass through
    2. ``Redirect``         -> 302 with Location header
    3. ``View``             -> render via kida -> text/html
    4. ``str``              -> 200, text/html
    5. ``bytes``            -> 200, application/octet-stream
    6. ``dict`` / ``list``  -> 200, application/json
    7. ``(value, int)``     -> negotiate value, override status
    """
    match value:
        case Response():
            return value
        case Redirect():
            return Response(body="", status=value.status).with_header("Location", value.url)
        case View():
            if renderer is None:
                msg = "View return values need a template renderer."
                raise TypeError(msg)
            return Response(body=renderer.render(value.template, value.context), status=value.status)
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return json_response(value)
        case (inner, int() as status):
            return negotiate(inner, renderer).with_status(status)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return a str, bytes, dict, list, View, Redirect, or Response."
            )
            raise TypeError(msg)
