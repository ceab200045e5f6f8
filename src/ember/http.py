"""Status codes and verbs understood by the router."""

from __future__ import annotations

from enum import IntEnum
from http import HTTPStatus


class Status(IntEnum):
    OK = 200
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    INTERNAL_SERVER_ERROR = 500


# Verbs a controller operation may be bound to.
HTTP_VERBS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


def reason_phrase(status: int) -> str:
    """Standard phrase for ``status``, used as the fallback error message."""

    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return "Unknown Status"


def normalize_verb(verb: str) -> str:
    """Upper-case ``verb`` and reject anything outside :data:`HTTP_VERBS`."""

    normalized = verb.strip().upper()
    if normalized not in HTTP_VERBS:
        raise ValueError(f"Unsupported HTTP verb: {verb!r}")
    return normalized


__all__ = ["HTTP_VERBS", "Status", "normalize_verb", "reason_phrase"]
