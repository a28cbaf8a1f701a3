"""HTTP responses with a chainable ``.with_*()`` API.

Every transformation returns a new object; nothing is mutated in place.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` directive."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"

    def to_header_value(self) -> str:
        parts = [f"{self.name}={self.value}"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        if self.samesite:
            parts.append(f"SameSite={self.samesite}")
        return "; ".join(parts)


@dataclass(frozen=True, slots=True)
class Response:
    """A complete, single-body HTTP response."""

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()
    cookies: tuple[SetCookie, ...] = ()

    def with_status(self, status: int) -> Response:
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str]) -> Response:
        return replace(self, headers=(*self.headers, *headers.items()))

    def with_cookie(self, name: str, value: str, **options: Any) -> Response:
        return replace(self, cookies=(*self.cookies, SetCookie(name, value, **options)))

    def without_cookie(self, name: str, path: str = "/") -> Response:
        return self.with_cookie(name, "", max_age=0, path=path)

    def header(self, name: str) -> str | None:
        """First value of a response header, case-insensitive."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    def json(self) -> Any:
        return json.loads(self.body_bytes)


@dataclass(frozen=True, slots=True)
class Redirect:
    url: str
    status: int = 302


@dataclass(frozen=True, slots=True)
class View:
    """A template to render with a context.

    Handlers return this; the response negotiator renders it.
    """

    template: str
    context: Mapping[str, Any] = field(default_factory=dict)
    status: int = 200
