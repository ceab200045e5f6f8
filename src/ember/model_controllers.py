"""Controllers generated for every exposed model.

Each operation runs the same pipeline: resolve the authenticator, ask the
model's access control, build the where-map, check the properties being
written, then call the model. Denials raise the 401/403 error returned by
:func:`~ember.exceptions.unauthenticated_error`.
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Mapping

from .access_control import resolve_permission
from .controllers import Controller, ControllerContext, ControllerDefinition, OperationSpec, PathParam
from .dispatcher import is_truthy
from .exceptions import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    NotFoundError,
    unauthenticated_error,
)
from .models import ACCESS_TOKEN_PROPERTY, PASSWORD_PROPERTY, Association, Model
from .sessions import ACCESS_TOKEN_KEY

logger = logging.getLogger(__name__)

OPTIONS_KEY = "$options"


def can_update_properties(property_names: Any, model: Model) -> bool:
    """``False`` when any of ``property_names`` is explicitly marked non-updatable."""

    for name in property_names:
        property_ = model.get_property(name)
        if property_ is not None and property_.options.can_update is not None and not property_.options.can_update:
            return False
    return True


class ModelController(Controller):
    """Per-request controller serving the generated routes of one model."""

    def __init__(self, context: ControllerContext, *, model_name: str) -> None:
        super().__init__(context)
        self.model_name = model_name

    @property
    def model(self) -> Model:
        if self.models is None:
            raise ConfigurationError(f"No models available for {self.model_name}")
        return self.models[self.model_name]

    def _body_map(self) -> dict[str, Any]:
        body = self.body
        if body is None:
            return {}
        if not isinstance(body, Mapping):
            raise BadRequestError()
        return dict(body)

    async def _authorize(self, model: Model, kind: str) -> Any:
        authenticator = await self.find_authenticator()
        permitted = await model.get_access_control().check(kind, authenticator)
        if not permitted:
            raise unauthenticated_error(authenticator)
        return authenticator

    def _apply_automatic_owner(self, model: Model, create_map: dict[str, Any], authenticator: Any) -> None:
        automatic = model.options.automatic_property_name
        if not automatic:
            return
        if self.models is None or self.models.get_authenticator() is None:
            raise ConfigurationError(
                "Cannot find authenticator model. Did you declare an authenticator property via `authenticate()`?"
            )
        if is_truthy(create_map.get(automatic)):
            raise BadRequestError("Cannot set automatic property manually.")
        create_map[automatic] = authenticator

    def _update_scope(self, model: Model, authenticator: Any) -> dict[str, Any]:
        where: dict[str, Any] = {}
        key_path = model.get_access_control().get_permission_key_path("update")
        if key_path:
            if model.get_property(key_path) is None:
                raise ConfigurationError(f"Invalid key path `{key_path}`.")
            where[key_path] = authenticator
        automatic = model.options.automatic_property_name
        if automatic:
            where[automatic] = authenticator
        return where

    # ------------------------------------------------------------------ collection
    async def create(self) -> Any:
        model = self.model
        authenticator = await self._authorize(model, "create")
        create_map = self._body_map()
        self._apply_automatic_owner(model, create_map, authenticator)
        instance = await model.create(create_map)
        if model.is_authenticator() and instance:
            self.session[ACCESS_TOKEN_KEY] = instance.get(ACCESS_TOKEN_PROPERTY)
        return instance

    async def find(self) -> Any:
        model = self.model
        await self._authorize(model, "read")
        query_map = dict(self.query)
        options = query_map.pop(OPTIONS_KEY, None) or {}
        if not isinstance(options, Mapping):
            raise BadRequestError(f"{OPTIONS_KEY} must be an object")
        return await model.find(query_map, dict(options))

    async def get(self, id: PathParam) -> Any:
        model = self.model
        await self._authorize(model, "read")
        return await model.get_one({"id": id})

    async def update(self, id: PathParam) -> Any:
        model = self.model
        authenticator = await self._authorize(model, "update")
        where = self._update_scope(model, authenticator)
        where["id"] = id
        changes = self._body_map()
        if not can_update_properties(changes.keys(), model):
            raise BadRequestError()
        instance = await model.update(where, changes)
        if not instance:
            raise unauthenticated_error(authenticator)
        return instance

    async def delete(self, id: PathParam) -> Any:
        raise NotFoundError()

    # ------------------------------------------------------------------ authenticator
    async def get_me(self) -> Any:
        authenticator = await self.find_authenticator()
        if authenticator is None:
            raise AuthenticationError()
        return authenticator

    async def authorize(self) -> Any:
        model = self.model
        credentials = self._body_map()
        identity = model.authenticating_property()
        password = credentials.get(PASSWORD_PROPERTY)
        if identity is None or not credentials.get(identity) or not password:
            raise AuthenticationError()
        # One password is checked against exactly one account.
        if not isinstance(credentials[identity], (str, int)) or isinstance(credentials[identity], bool):
            raise AuthenticationError()
        instance = await model.find_one({identity: credentials[identity]})
        if instance is None or not await self.models.password_hasher.verify(instance.get(PASSWORD_PROPERTY, ""), str(password)):
            logger.debug("Rejected credentials for %s", model.name)
            raise AuthenticationError()
        self.session[ACCESS_TOKEN_KEY] = instance.get(ACCESS_TOKEN_PROPERTY)
        return instance

    # ------------------------------------------------------------------ associations
    async def get_association(self, name: str, id: str) -> Any:
        model = self.model
        await self._authorize(model, "read")
        association = model.get_association(name)
        query_map = dict(self.query)
        options = query_map.pop(OPTIONS_KEY, None) or {}
        if not isinstance(options, Mapping):
            raise BadRequestError(f"{OPTIONS_KEY} must be an object")
        return await association.find(id, query_map, dict(options))

    async def create_association(self, name: str, id: str) -> Any:
        association = self.model.get_association(name)
        related = association.related
        authenticator = await self._authorize(related, "create")
        if association.can_create is not None:
            permitted = association.can_create
            if callable(permitted):
                permitted = await resolve_permission(permitted(authenticator, id))
            if not permitted:
                raise unauthenticated_error(authenticator)
        create_map = self._body_map()
        self._apply_automatic_owner(related, create_map, authenticator)
        return await association.create(id, create_map)

    async def update_association(self, name: str, id: str, association_id: str) -> Any:
        association = self.model.get_association(name)
        related = association.related
        authenticator = await self._authorize(related, "update")
        where = self._update_scope(related, authenticator)
        where = association.scope(id, where)
        where["id"] = association_id
        changes = self._body_map()
        if not can_update_properties(changes.keys(), related) or association.owner_key in changes:
            raise BadRequestError()
        instance = await related.update(where, changes)
        if not instance:
            raise unauthenticated_error(authenticator)
        return instance

    async def get_method_property(self, name: str, id: str) -> Any:
        model = self.model
        await self._authorize(model, "read")
        property_ = model.get_property(name)
        if property_ is None or property_.options.has_method is None:
            raise ConfigurationError(f"Model {model.name} has no method property {name!r}")
        result = property_.options.has_method(self, id)
        if inspect.isawaitable(result):
            result = await result
        return result


def _association_operations(base: str, association: Association) -> list[OperationSpec]:
    name = association.name
    suffix = name[:1].upper() + name[1:]

    async def get_association(controller: ModelController, id: PathParam) -> Any:
        return await controller.get_association(name, id)

    async def create_association(controller: ModelController, id: PathParam) -> Any:
        return await controller.create_association(name, id)

    async def update_association(controller: ModelController, id: PathParam, association_id: PathParam) -> Any:
        return await controller.update_association(name, id, association_id)

    path = f"{base}/:id/{name}"
    return [
        OperationSpec.explicit_route(f"get{suffix}", path, get_association, verb="GET"),
        OperationSpec.explicit_route(f"create{suffix}", path, create_association, verb="POST"),
        OperationSpec.explicit_route(
            f"update{suffix}", f"{path}/:associationID", update_association, verb="PUT"
        ),
    ]


def _method_operation(base: str, name: str) -> OperationSpec:
    async def get_method_property(controller: ModelController, id: PathParam) -> Any:
        return await controller.get_method_property(name, id)

    suffix = name[:1].upper() + name[1:]
    return OperationSpec.explicit_route(f"get{suffix}", f"{base}/:id/{name}", get_method_property, verb="GET")


def model_controller(model: Model, *, base_path: tuple[str, ...] = ("api",)) -> ControllerDefinition:
    """Build the controller definition exposing ``model`` over HTTP."""

    definition = ControllerDefinition(
        name=f"{model.name}ModelController",
        base_path_components=tuple(base_path),
        factory=functools.partial(ModelController, model_name=model.name),
    )
    base = "/" + "/".join(component.strip("/") for component in (*base_path, model.plural) if component.strip("/"))
    plural = model.plural
    singular = model.name
    definition.add_operation(OperationSpec.explicit_route(f"create{singular}", base, ModelController.create, verb="POST"))
    definition.add_operation(OperationSpec.explicit_route(f"get{plural}", base, ModelController.find, verb="GET"))
    if model.is_authenticator():
        definition.add_operation(OperationSpec.explicit_route("getMe", f"{base}/me", ModelController.get_me, verb="GET"))
        definition.add_operation(
            OperationSpec.explicit_route("authorize", f"{base}/authorize", ModelController.authorize, verb="POST")
        )
    item = f"{base}/:id"
    definition.add_operation(OperationSpec.explicit_route(f"get{singular}", item, ModelController.get, verb="GET"))
    definition.add_operation(OperationSpec.explicit_route(f"update{singular}", item, ModelController.update, verb="PUT"))
    definition.add_operation(
        OperationSpec.explicit_route(f"delete{singular}", item, ModelController.delete, verb="DELETE")
    )
    for property_ in model.associations():
        for operation in _association_operations(base, model.get_association(property_.name)):
            definition.add_operation(operation)
    for property_ in model.method_properties():
        definition.add_operation(_method_operation(base, property_.name))
    return definition


__all__ = ["ModelController", "OPTIONS_KEY", "can_update_properties", "model_controller"]
