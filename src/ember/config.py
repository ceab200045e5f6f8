"""Application configuration objects."""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

import msgspec
from msgspec import Struct

from .observability import ObservabilityConfig

logger = logging.getLogger(__name__)

DEVELOPMENT_SESSION_KEY = "1038641b2d8e106ea60850034b43d7a9"

_RELAXED_ENVIRONMENTS: frozenset[str] = frozenset({"development", "test"})


class AppConfig(Struct, frozen=True):
    """Typed configuration for an :class:`~ember.application.EmberApp` instance."""

    name: str = "ember"
    environment: str = "development"
    session_keys: tuple[str, ...] = (DEVELOPMENT_SESSION_KEY,)
    session_cookie: str = "sid"
    session_max_age: int = 14 * 24 * 3600
    api_prefix: tuple[str, ...] = ("api",)
    stylesheets: tuple[str, ...] = ()
    scripts: tuple[str, ...] = ()
    templates_directory: str | None = None
    max_request_body_bytes: int | None = 1_048_576
    observability: ObservabilityConfig = ObservabilityConfig()

    @property
    def uses_default_session_key(self) -> bool:
        return self.session_keys == (DEVELOPMENT_SESSION_KEY,)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "AppConfig":
        return msgspec.convert(dict(values), type=cls)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "AppConfig":
        """Build a configuration from ``EMBER_ENV``, ``EMBER_APP_NAME`` and ``SESSION_KEYS``."""

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {"environment": env.get("EMBER_ENV", "development")}
        if env.get("EMBER_APP_NAME"):
            values["name"] = env["EMBER_APP_NAME"]
        raw_keys = env.get("SESSION_KEYS", "")
        keys = tuple(key.strip() for key in raw_keys.split(",") if key.strip())
        if keys:
            values["session_keys"] = keys
        elif values["environment"] not in _RELAXED_ENVIRONMENTS:
            logger.warning("Specify SESSION_KEYS in your environment to properly configure cookie sessions.")
        values.update(overrides)
        return cls.from_mapping(values)


__all__ = ["DEVELOPMENT_SESSION_KEY", "AppConfig"]
