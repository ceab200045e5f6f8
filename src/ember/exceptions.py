"""Framework exception types."""

from __future__ import annotations

from typing import Any

from .http import Status
from .serialization import json_encode


class EmberError(Exception):
    """Base error type."""


class ConfigurationError(EmberError):
    """Raised when controllers, routes or models are declared incorrectly.

    These errors belong to startup: route building and registry loading raise
    them synchronously so the application never begins serving a broken route
    table.
    """


class HTTPError(EmberError):
    """Request-scoped failure rendered as ``{"error": message}``."""

    status: int = int(Status.INTERNAL_SERVER_ERROR)
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, *, status: int | None = None) -> None:
        self.message = message if message is not None else self.default_message
        if status is not None:
            self.status = int(status)
        super().__init__(self.status, self.message)

    def __str__(self) -> str:
        return self.message

    def to_response_body(self) -> bytes:
        return json_encode({"error": self.message})


class BadRequestError(HTTPError):
    status = int(Status.BAD_REQUEST)
    default_message = "Bad Request"


class AuthenticationError(HTTPError):
    """No identity is attached to the request."""

    status = int(Status.UNAUTHORIZED)
    default_message = "Unauthorized"


class AuthorizationError(HTTPError):
    """An identity is present but lacks the required rights."""

    status = int(Status.FORBIDDEN)
    default_message = "Forbidden"


class NotFoundError(HTTPError):
    status = int(Status.NOT_FOUND)
    default_message = "Not Found"


def unauthenticated_error(authenticator: Any | None) -> HTTPError:
    """Return the denial error matching the presence of ``authenticator``.

    A known identity upgrades the denial from 401 to 403.
    """

    if authenticator:
        return AuthorizationError()
    return AuthenticationError()


def error_status(error: BaseException) -> int:
    """Return the HTTP status carried by ``error`` (500 when absent)."""

    status = getattr(error, "status", None)
    if isinstance(status, int) and 100 <= int(status) <= 599:
        return int(status)
    return int(Status.INTERNAL_SERVER_ERROR)


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "BadRequestError",
    "ConfigurationError",
    "EmberError",
    "HTTPError",
    "NotFoundError",
    "error_status",
    "unauthenticated_error",
]
