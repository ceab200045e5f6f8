"""Request primitives."""

from __future__ import annotations

from http.cookies import CookieError, SimpleCookie
from typing import Any, Mapping, MutableMapping
from urllib.parse import parse_qsl

import msgspec

from .exceptions import BadRequestError
from .serialization import json_decode

# Query keys that carry JSON documents rather than plain strings.
JSON_QUERY_KEYS: frozenset[str] = frozenset({"$options"})


class Request:
    """View of an incoming request plus its per-request session map."""

    __slots__ = (
        "_body",
        "_body_cache",
        "_cookies",
        "_query_params",
        "_raw_query",
        "headers",
        "method",
        "path",
        "path_params",
        "session",
    )

    def __init__(
        self,
        *,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        path_params: Mapping[str, str] | None = None,
        query_string: str | None = None,
        body: bytes | None = None,
        session: MutableMapping[str, Any] | None = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.path_params = dict(path_params or {})
        self._raw_query = query_string or ""
        self._body = body or b""
        self._body_cache: Any = msgspec.UNSET
        self._query_params: MutableMapping[str, list[str]] | None = None
        self._cookies: dict[str, str] | None = None
        self.session: MutableMapping[str, Any] = session if session is not None else {}

    @staticmethod
    def _parse_query(raw: str) -> MutableMapping[str, list[str]]:
        parsed: MutableMapping[str, list[str]] = {}
        for key, value in parse_qsl(raw, keep_blank_values=True):
            parsed.setdefault(key, []).append(value)
        return parsed

    @property
    def query_params(self) -> MutableMapping[str, list[str]]:
        if self._query_params is None:
            self._query_params = self._parse_query(self._raw_query)
        return self._query_params

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            jar: SimpleCookie = SimpleCookie()
            try:
                jar.load(self.headers.get("cookie", ""))
            except CookieError:
                jar = SimpleCookie()
            self._cookies = {name: morsel.value for name, morsel in jar.items()}
        return self._cookies

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def query_map(self) -> dict[str, Any]:
        """Return the query string as a fresh mapping of single values.

        Repeated keys become lists. Keys listed in :data:`JSON_QUERY_KEYS`
        are decoded from JSON when possible.
        """

        result: dict[str, Any] = {}
        for key, values in self.query_params.items():
            value: Any = values[-1] if len(values) == 1 else list(values)
            if key in JSON_QUERY_KEYS and isinstance(value, str):
                try:
                    value = json_decode(value)
                except msgspec.DecodeError as exc:
                    raise BadRequestError(f"Invalid JSON in query parameter {key!r}") from exc
            result[key] = value
        return result

    async def json(self) -> Any:
        """Decode the request body according to its content type.

        JSON bodies are decoded with :mod:`msgspec`; urlencoded forms become a
        flat mapping. An empty body decodes to ``None``.
        """

        if self._body_cache is msgspec.UNSET:
            if not self._body:
                self._body_cache = None
            elif self.headers.get("content-type", "").startswith("application/x-www-form-urlencoded"):
                try:
                    form = self._body.decode()
                except UnicodeDecodeError as exc:
                    raise BadRequestError("Malformed form body") from exc
                self._body_cache = dict(parse_qsl(form, keep_blank_values=True))
            else:
                try:
                    self._body_cache = json_decode(self._body)
                except msgspec.DecodeError as exc:
                    raise BadRequestError("Malformed JSON body") from exc
        return self._body_cache

    def text(self) -> str:
        return self._body.decode()

    def body(self) -> bytes:
        return self._body
