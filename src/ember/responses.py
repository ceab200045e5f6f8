"""Response primitives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

import msgspec

from .exceptions import HTTPError
from .http import Status
from .serialization import json_decode, json_encode, redact

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from .requests import Request


Handler = Callable[["Request"], Awaitable["Response"]]

DEFAULT_SECURITY_HEADERS: tuple[tuple[str, str], ...] = (
    ("x-content-type-options", "nosniff"),
    ("referrer-policy", "no-referrer"),
    ("x-frame-options", "DENY"),
)

Headers = tuple[tuple[str, str], ...]


class Response(msgspec.Struct, frozen=True):
    """Immutable response payload."""

    status: int = int(Status.OK)
    headers: Headers = ()
    body: bytes = b""

    def with_headers(self, headers: Iterable[tuple[str, str]]) -> "Response":
        """Return a new response with ``headers`` appended."""

        return Response(status=self.status, headers=self.headers + tuple(headers), body=self.body)

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        return json_decode(self.body) if self.body else None


def apply_default_security_headers(
    response: Response,
    *,
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Append default security headers to ``response`` when missing."""

    baseline = tuple(headers or DEFAULT_SECURITY_HEADERS)
    existing = {name.lower() for name, _ in response.headers}
    additions = tuple((name, value) for name, value in baseline if name.lower() not in existing)
    if not additions:
        return response
    return response.with_headers(additions)


async def security_headers_middleware(request: "Request", handler: Handler) -> Response:
    """Ensure responses emitted by ``handler`` include hardened security headers."""

    response = await handler(request)
    return apply_default_security_headers(response)


def PlainTextResponse(
    text: str,
    *,
    status: int = int(Status.OK),
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create a plain text response."""

    combined = (("content-type", "text/plain; charset=utf-8"),) + tuple(headers or ())
    return Response(status=status, headers=combined, body=text.encode("utf-8"))


def HTMLResponse(
    html: str,
    *,
    status: int = int(Status.OK),
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create an HTML response for rendered templates and the application shell."""

    combined = (("content-type", "text/html; charset=utf-8"),) + tuple(headers or ())
    return Response(status=status, headers=combined, body=html.encode("utf-8"))


def JavaScriptResponse(source: str, *, status: int = int(Status.OK)) -> Response:
    return Response(
        status=status,
        headers=(("content-type", "application/javascript; charset=utf-8"),),
        body=source.encode("utf-8"),
    )


def JSONResponse(
    data: Any,
    *,
    status: int = int(Status.OK),
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create a JSON response encoded via :mod:`msgspec`."""

    combined = (("content-type", "application/json"),) + tuple(headers or ())
    return Response(status=status, headers=combined, body=json_encode(redact(data)))


def EmptyResponse(status: int = int(Status.NOT_FOUND)) -> Response:
    """Create a response without a body, used for falsy results and unmatched routes."""

    return Response(status=status, headers=(("content-length", "0"),), body=b"")


def exception_to_response(exc: HTTPError) -> Response:
    return Response(
        status=exc.status,
        headers=(("content-type", "application/json"),),
        body=exc.to_response_body(),
    )


def error_response(status: int, message: str) -> Response:
    """Render a failure that is not an :class:`HTTPError` using the same envelope."""

    return Response(
        status=status,
        headers=(("content-type", "application/json"),),
        body=json_encode({"error": message}),
    )


__all__ = [
    "DEFAULT_SECURITY_HEADERS",
    "EmptyResponse",
    "HTMLResponse",
    "JSONResponse",
    "JavaScriptResponse",
    "PlainTextResponse",
    "Response",
    "apply_default_security_headers",
    "error_response",
    "exception_to_response",
    "security_headers_middleware",
]
