"""Testing helpers."""

from __future__ import annotations

from http.cookies import SimpleCookie
from typing import Any, Mapping
from urllib.parse import urlencode

from .application import EmberApp
from .responses import Response
from .serialization import json_encode


class TestClient:
    """Async test client that executes requests in-process.

    Cookies set by responses are kept and replayed, so a session started by
    one request is visible to the next.
    """

    __test__ = False

    def __init__(self, app: EmberApp) -> None:
        self.app = app
        self.cookies: dict[str, str] = {}

    async def __aenter__(self) -> "TestClient":
        await self.app.startup()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.app.shutdown()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        payload = b""
        request_headers = {key.lower(): value for key, value in (headers or {}).items()}
        if json is not None:
            payload = json_encode(json)
            request_headers.setdefault("content-type", "application/json")
        if self.cookies and "cookie" not in request_headers:
            request_headers["cookie"] = "; ".join(f"{name}={value}" for name, value in self.cookies.items())
        query_string = urlencode(_encode_query(query or {}), doseq=True)
        response = await self.app.dispatch(
            method,
            path,
            query_string=query_string,
            headers=request_headers,
            body=payload,
        )
        self._store_cookies(response)
        return response

    async def get(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request("GET", path, query=query, headers=headers)

    async def post(self, path: str, *, json: Any | None = None, headers: Mapping[str, str] | None = None) -> Response:
        return await self.request("POST", path, json=json, headers=headers)

    async def put(self, path: str, *, json: Any | None = None, headers: Mapping[str, str] | None = None) -> Response:
        return await self.request("PUT", path, json=json, headers=headers)

    async def delete(self, path: str, *, headers: Mapping[str, str] | None = None) -> Response:
        return await self.request("DELETE", path, headers=headers)

    def _store_cookies(self, response: Response) -> None:
        for name, value in response.headers:
            if name.lower() != "set-cookie":
                continue
            jar: SimpleCookie = SimpleCookie()
            jar.load(value)
            for key, morsel in jar.items():
                if morsel["max-age"] in ("0", 0) or not morsel.value:
                    self.cookies.pop(key, None)
                else:
                    self.cookies[key] = morsel.value


def _encode_query(query: Mapping[str, Any]) -> dict[str, Any]:
    # Mappings travel as JSON, the way the generated client sends ``$options``.
    return {
        key: json_encode(value).decode() if isinstance(value, Mapping) else value
        for key, value in query.items()
    }


__all__ = ["TestClient"]
