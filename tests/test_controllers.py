from __future__ import annotations

import pytest

from ember.controllers import (
    Controller,
    ControllerContext,
    ControllerDefinition,
    OperationSpec,
    ParameterSource,
    PathParam,
    infer_verb,
)
from ember.exceptions import ConfigurationError
from ember.requests import Request
from ember.sessions import ACCESS_TOKEN_KEY
from tests.support import build_models


def test_infer_verb_uses_prefix_table() -> None:
    assert infer_verb("create_user") == ("POST", "user")
    assert infer_verb("update_user") == ("PUT", "user")
    assert infer_verb("delete_user") == ("DELETE", "user")
    assert infer_verb("get_users") == ("GET", "users")
    assert infer_verb("getaway") == ("GET", "getaway")
    assert infer_verb("create") == ("POST", "")
    assert infer_verb("status") == ("GET", "status")


def test_from_class_skips_hooks_private_members_and_base_helpers() -> None:
    class Base(Controller):
        async def get_shared(self) -> str:
            return "shared"

    class Child(Base):
        async def before(self) -> None:
            return None

        def _helper(self) -> None:
            return None

        async def get_items(self) -> list[str]:
            return []

    definition = ControllerDefinition.from_class(Child)

    assert set(definition.operations) == {"get_shared", "get_items"}
    assert definition.factory is Child


def test_operations_reject_variadic_parameters() -> None:
    async def handler(controller, *values) -> None:
        return None

    with pytest.raises(ConfigurationError):
        OperationSpec.conventional("get_values", handler)


def test_definitions_refuse_new_operations_once_finalized() -> None:
    async def handler(controller, item_id: PathParam) -> str:
        return item_id

    definition = ControllerDefinition(name="Items", base_path_components=("api",))
    operation = definition.operation("get_item", handler)
    assert operation.parameters[0].source is ParameterSource.PATH
    with pytest.raises(ConfigurationError):
        definition.operation("get_item", handler)

    definition.finalize()

    with pytest.raises(ConfigurationError):
        definition.operation("get_other", handler)


@pytest.mark.asyncio
async def test_context_resolves_authenticator_from_session_once() -> None:
    models = build_models()
    user = await models.User.create({"email": "ada@example.com", "password": "secret"})
    request = Request(method="GET", path="/", session={ACCESS_TOKEN_KEY: user["accessToken"]})
    context = ControllerContext(models=models, request=request, environment="test")

    first = await context.find_authenticator()
    models.User._rows.clear()
    second = await context.find_authenticator()

    assert first["id"] == user["id"]
    assert second is first


@pytest.mark.asyncio
async def test_context_without_token_has_no_authenticator() -> None:
    context = ControllerContext(models=build_models(), request=Request(method="GET", path="/"), environment="test")

    assert await context.find_authenticator() is None
    assert context.body == {}
    assert context.query == {}
