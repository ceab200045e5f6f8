"""Signed cookie sessions.

The session is a plain mapping serialized as JSON and signed with
``itsdangerous``. The framework itself only touches the ``at`` field, which
bridges the cookie session to the authenticator's access token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http.cookies import SimpleCookie
from typing import Any, Sequence

from itsdangerous import BadData, URLSafeTimedSerializer

from .exceptions import ConfigurationError
from .requests import Request
from .responses import Handler, Response

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "at"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Session cookie configuration. The first key signs, every key verifies."""

    keys: Sequence[str]
    cookie_name: str = "sid"
    max_age: int = 14 * 24 * 3600
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "Lax"


class SessionMiddleware:
    """Load ``request.session`` from the cookie and write it back when it changed."""

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: SessionConfig) -> None:
        keys = [key for key in config.keys if key]
        if not keys:
            raise ConfigurationError("SessionConfig.keys must contain at least one key.")
        self._config = config
        # itsdangerous signs with the last key of the list.
        self._serializer = URLSafeTimedSerializer(list(reversed(keys)), salt="ember.session")

    def load(self, request: Request) -> dict[str, Any]:
        cookie_value = request.cookies.get(self._config.cookie_name)
        if not cookie_value:
            return {}
        try:
            data = self._serializer.loads(cookie_value, max_age=self._config.max_age)
        except BadData:
            logger.debug("Discarding session cookie with an invalid signature")
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def dump(self, session: dict[str, Any]) -> str:
        return self._serializer.dumps(session)

    def _cookie_header(self, value: str, *, expire: bool = False) -> tuple[str, str]:
        cfg = self._config
        jar: SimpleCookie = SimpleCookie()
        jar[cfg.cookie_name] = value
        morsel = jar[cfg.cookie_name]
        morsel["path"] = cfg.path
        morsel["max-age"] = 0 if expire else cfg.max_age
        morsel["samesite"] = cfg.samesite
        if cfg.httponly:
            morsel["httponly"] = True
        if cfg.secure:
            morsel["secure"] = True
        return ("set-cookie", morsel.OutputString())

    async def __call__(self, request: Request, handler: Handler) -> Response:
        session = self.load(request)
        original = dict(session)
        request.session = session
        response = await handler(request)
        if session == original:
            return response
        if not session:
            return response.with_headers((self._cookie_header("", expire=True),))
        return response.with_headers((self._cookie_header(self.dump(dict(session))),))


__all__ = ["ACCESS_TOKEN_KEY", "SessionConfig", "SessionMiddleware"]
