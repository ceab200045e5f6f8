"""JSON codec shared by requests, responses and sessions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import msgspec
from msgspec import structs

# Fields that never leave the server, whatever model they belong to.
REDACTED_FIELDS: frozenset[str] = frozenset({"password", "accessToken"})

_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder()


def redact(value: Any) -> Any:
    """Copy ``value`` into plain containers, dropping :data:`REDACTED_FIELDS`."""

    if isinstance(value, msgspec.Struct):
        return redact(structs.asdict(value))
    if isinstance(value, Mapping):
        return {key: redact(item) for key, item in value.items() if key not in REDACTED_FIELDS}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(item) for item in value]
    return value


def json_encode(value: Any) -> bytes:
    return _encoder.encode(value)


def json_decode(data: bytes | str) -> Any:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return _decoder.decode(data)
