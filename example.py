"""Minimal Ember blog that ships with the framework.

Install the package, then run ``python example.py`` to boot a local app on
Granian. Sign up with ``POST /api/Users`` and the session cookie identifies
you on later requests; ``POST /api/Articles`` then records you as the author
automatically. The generated Angular client is served from
``/scripts/fire-models.js``.

``EMBER_ENV`` and ``SESSION_KEYS`` configure the application, ``EMBER_HOST``
and ``EMBER_PORT`` the listener. Set ``EMBER_TLS_CERT`` and ``EMBER_TLS_KEY``
together to serve over HTTPS.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from ember import (
    AccessControl,
    AppConfig,
    Controller,
    EmberApp,
    Models,
    authenticate,
    automatic_owner,
    has_many,
    has_method,
    is_authenticated,
    owned_by,
    prop,
)
from ember.server import ServerConfig, run


async def _word_count(controller: Any, article_id: str) -> dict[str, int] | None:
    article = await controller.models.Article.get_one({"id": article_id})
    if article is None:
        return None
    return {"words": len(str(article.get("body") or "").split())}


def create_models() -> Models:
    models = Models()
    models.define(
        "User",
        {"email": authenticate(), "name": prop()},
        access_control=AccessControl(update=is_authenticated),
    )
    models.define(
        "Article",
        {
            "title": prop(),
            "body": prop(),
            "author": automatic_owner(),
            "comments": has_many("Comment", owner_key="article"),
            "stats": has_method(_word_count),
        },
        access_control=AccessControl(create=is_authenticated, update=owned_by("author")),
    )
    models.define(
        "Comment",
        {"text": prop(), "article": prop(can_update=False), "writer": automatic_owner()},
        access_control=AccessControl(create=is_authenticated, update=owned_by("writer")),
    )
    return models


def create_app() -> EmberApp:
    """Instantiate the demo blog with its models and a status controller."""

    app = EmberApp(AppConfig.from_env(name="blog"), models=create_models())

    @app.controller(base_path=("api",))
    class StatusController(Controller):
        async def get_status(self) -> dict[str, Any]:
            authenticator = await self.find_authenticator()
            return {"ok": True, "signedIn": authenticator is not None}

    return app


def main() -> None:
    """Boot the Granian development server."""

    logging.basicConfig(level=logging.INFO)
    app = create_app()
    host = os.getenv("EMBER_HOST", "127.0.0.1")
    port = int(os.getenv("EMBER_PORT", "3000"))
    config = ServerConfig(
        host=host,
        port=port,
        certificate_path=os.getenv("EMBER_TLS_CERT") or None,
        private_key_path=os.getenv("EMBER_TLS_KEY") or None,
    )
    scheme = "https" if config.certificate_path and config.private_key_path else "http"
    print("Serving Ember blog example on Granian at %s://%s:%d" % (scheme, host, port))
    run(app, config)


if __name__ == "__main__":
    main()
