"""Atrium exception hierarchy.

Shared across the content loader, page tree, dispatcher, and ASGI handler
so every module raises and catches the same types.
"""

from dataclasses import dataclass


class AtriumError(Exception):
    """Base for all atrium-specific errors."""


class ConfigurationError(AtriumError):
    """Raised when site configuration is invalid.

    Never raised mid-request; a bad library path shows up as the
    ``inactive`` status instead.
    """


class FrontmatterError(AtriumError):
    """A content file's metadata block could not be parsed."""


class SnapshotError(AtriumError):
    """A cached tree or navigation entry does not have the expected shape."""


class TemplateMissingError(AtriumError):
    """A view template could not be located.

    Indicates a deployment defect, so it fails the request with a 500.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Template not found: {name}")
        self.name = name


@dataclass(frozen=True, slots=True)
class HTTPError(AtriumError):
    """An error that maps directly to an HTTP status code.

    Raised by the router or the dispatcher. The ASGI handler catches
    these and turns them into error responses.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no page, artifact, or route matched the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class Forbidden(HTTPError):  # noqa: N818
    """403: the viewer lacks the capability an endpoint requires."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method."""

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
