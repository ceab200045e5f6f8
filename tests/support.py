"""Shared models and application builders for the Ember tests."""

from __future__ import annotations

from typing import Any

from ember.access_control import AccessControl, is_authenticated, owned_by
from ember.application import EmberApp
from ember.authentication import PasswordHasher
from ember.config import AppConfig
from ember.models import Models, authenticate, automatic_owner, has_many, has_method, prop

TEST_CONFIG = AppConfig(name="blog", environment="test", session_keys=("test-session-key",))


def cheap_hasher() -> PasswordHasher:
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


async def project_summary(controller: Any, project_id: str) -> dict[str, Any] | None:
    project = await controller.models.Project.get_one({"id": project_id})
    if project is None:
        return None
    return {"id": project_id, "title": project["title"].upper()}


def may_add_apps(authenticator: Any, collection_id: str) -> bool:
    return authenticator is not None and authenticator.get("name") != "blocked"


def build_models() -> Models:
    models = Models(password_hasher=cheap_hasher())
    models.define(
        "User",
        {"email": authenticate(), "name": prop()},
        access_control=AccessControl(update=is_authenticated),
    )
    models.define(
        "Post",
        {"title": prop(), "body": prop(), "author": automatic_owner(), "published": prop(can_update=False)},
        access_control=AccessControl(create=is_authenticated, update=owned_by("author")),
    )
    models.define(
        "Note",
        {"text": prop(), "owner": prop()},
        access_control=AccessControl(update=owned_by("owner"), read=is_authenticated),
    )
    models.define(
        "Collection",
        {"title": prop(), "apps": has_many("App", owner_key="collection", can_create=may_add_apps)},
    )
    models.define(
        "App",
        {"name": prop(), "collection": prop(can_update=False), "locked": prop(can_update=False)},
    )
    models.define(
        "Project",
        {"title": prop(), "summary": has_method(project_summary)},
        access_control=AccessControl(create=False),
    )
    return models


def build_app(**kwargs: Any) -> EmberApp:
    return EmberApp(TEST_CONFIG, models=kwargs.pop("models", None) or build_models(), **kwargs)
